"""
Checkout — state machine, payment requests and idempotent submission.

    from storefront import checkout as Co

    flow = Co.CheckoutOrchestrator(
        cart, address_book, resolver,
        Co.HttpPaymentGateway(api_url),
        on_confirmed=lambda receipt: show_confirmation(receipt),
    )

    flow.begin()
    flow.confirm_address()
    flow.select_shipping(option)
    flow.proceed_to_payment()
    flow.choose_payment_method(Co.PaymentMethod.PIX)

    details = Co.PaymentDetails(Co.Payer("Ana Souza", "ana@example.com", "123.456.789-09"))
    match await flow.submit(details):
        case Ok(Co.PixCharge(qr_code=code)):
            ...
        case Error(e):
            ...   # flow.state is CHOOSING_PAYMENT_METHOD, cart untouched

Idempotency — one key per attempt:

    "{session_id}:{attempt}"   attempt advances only after a decline,
                               so a retry after a network error reuses it
"""

from storefront.checkout._types import (
    CheckoutState,
    PaymentMethod,
    BOLETO_METHOD_ID,
    DEFAULT_CARD_METHOD_ID,
    DECLINED_STATUSES,
    Payer,
    CardDetails,
    PaymentDetails,
    validate_details,
    PaymentRequest,
    CardReceipt,
    PixCharge,
    BoletoTicket,
    PaymentReceipt,
    PaymentResponseIn,
    parse_receipt,
    CheckoutSession,
)
from storefront.checkout._ledger import (
    RecordState,
    SubmissionRecord,
    LedgerError,
    SubmissionLedger,
    MemoryLedger,
)
from storefront.checkout._payment import (
    IDEMPOTENCY_HEADER,
    RETRYABLE_STATUSES,
    PaymentGateway,
    HttpPaymentGateway,
)
from storefront.checkout._orchestrator import (
    DEFAULT_CONFIRMATION_DELAY,
    ConfirmationHandler,
    CheckoutOrchestrator,
)

__all__ = (
    # Types
    "CheckoutState",
    "PaymentMethod",
    "BOLETO_METHOD_ID",
    "DEFAULT_CARD_METHOD_ID",
    "DECLINED_STATUSES",
    "Payer",
    "CardDetails",
    "PaymentDetails",
    "validate_details",
    "PaymentRequest",
    "CardReceipt",
    "PixCharge",
    "BoletoTicket",
    "PaymentReceipt",
    "PaymentResponseIn",
    "parse_receipt",
    "CheckoutSession",
    # Ledger
    "RecordState",
    "SubmissionRecord",
    "LedgerError",
    "SubmissionLedger",
    "MemoryLedger",
    # Gateway
    "IDEMPOTENCY_HEADER",
    "RETRYABLE_STATUSES",
    "PaymentGateway",
    "HttpPaymentGateway",
    # Orchestrator
    "DEFAULT_CONFIRMATION_DELAY",
    "ConfirmationHandler",
    "CheckoutOrchestrator",
)
