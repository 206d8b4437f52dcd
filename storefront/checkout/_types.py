"""
Checkout types — states, payer details, payment requests and receipts.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto

from kungfu import Result, Ok, Error

from storefront._errors import ValidationError
from storefront._records import OptionalStr, RecordModel
from storefront._types import Money
from storefront.cart import CartLine
from storefront.shipping import (
    PackageItem,
    ShippingAddress,
    ShippingOption,
    build_package,
    normalize_postal_code,
)


# ═══════════════════════════════════════════════════════════════════════════════
# States
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutState(Enum):
    """
    Checkout steps.

        ENTERING_ADDRESS → AWAITING_SHIPPING_QUOTE → SHIPPING_SELECTED
            → CHOOSING_PAYMENT_METHOD → CREDIT_CARD_FLOW | PIX_FLOW | BOLETO_FLOW
            → SUBMITTING → SUCCEEDED | FAILED

    EMPTY_CART is reachable from every non-terminal step.
    """

    ENTERING_ADDRESS = auto()
    AWAITING_SHIPPING_QUOTE = auto()
    SHIPPING_SELECTED = auto()
    CHOOSING_PAYMENT_METHOD = auto()
    CREDIT_CARD_FLOW = auto()
    PIX_FLOW = auto()
    BOLETO_FLOW = auto()
    SUBMITTING = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    EMPTY_CART = auto()

    @property
    def is_payment_flow(self) -> bool:
        return self in _PAYMENT_FLOWS


_PAYMENT_FLOWS = frozenset(
    {CheckoutState.CREDIT_CARD_FLOW, CheckoutState.PIX_FLOW, CheckoutState.BOLETO_FLOW}
)


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    PIX = "pix"
    BOLETO = "boleto"

    @property
    def flow(self) -> CheckoutState:
        match self:
            case PaymentMethod.CREDIT_CARD:
                return CheckoutState.CREDIT_CARD_FLOW
            case PaymentMethod.PIX:
                return CheckoutState.PIX_FLOW
            case PaymentMethod.BOLETO:
                return CheckoutState.BOLETO_FLOW


BOLETO_METHOD_ID = "bolbradesco"
DEFAULT_CARD_METHOD_ID = "credit_card"

# Provider statuses that mean "refused" even on a 2xx response.
DECLINED_STATUSES = frozenset({"rejected", "cancelled"})


# ═══════════════════════════════════════════════════════════════════════════════
# Payer Details
# ═══════════════════════════════════════════════════════════════════════════════

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True, slots=True)
class Payer:
    full_name: str = ""
    email: str = ""
    document: str = ""
    document_type: str = "CPF"

    @property
    def document_digits(self) -> str:
        return _NON_DIGITS.sub("", self.document)

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join(self.full_name.split()[1:])


@dataclass(frozen=True, slots=True)
class CardDetails:
    """
    A tokenized card. The raw card number never reaches this package.

    payment_method_id is the card brand reported by the tokenizer
    ("visa", "master", ...).
    """

    token: str
    payment_method_id: str = DEFAULT_CARD_METHOD_ID
    installments: int = 1
    issuer_id: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentDetails:
    payer: Payer
    card: CardDetails | None = None


def validate_details(
    method: PaymentMethod,
    details: PaymentDetails,
    address: ShippingAddress,
) -> Result[PaymentDetails, ValidationError]:
    """
    Local checks before anything is sent.

    Pix and boleto need a full name (first and last) and a document;
    boleto also needs postal code, street and city. Card needs a token,
    an email and a document.
    """
    payer = details.payer
    match method:
        case PaymentMethod.CREDIT_CARD:
            if details.card is None or not details.card.token.strip():
                return Error(ValidationError("Card details are missing.", field="card"))
            if not payer.email.strip():
                return Error(ValidationError("Email is required.", field="email"))
        case PaymentMethod.PIX | PaymentMethod.BOLETO:
            if len(payer.full_name.split()) < 2:
                return Error(ValidationError("Enter first and last name.", field="full_name"))
    if not payer.document_digits:
        return Error(ValidationError("Document number is required.", field="document"))
    if method is PaymentMethod.BOLETO and not address.is_complete_for_boleto:
        return Error(
            ValidationError("Boleto needs postal code, street and city.", field="address")
        )
    return Ok(details)


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Request
# ═══════════════════════════════════════════════════════════════════════════════


def _amount(value: Money) -> float:
    return float(value.quantize(Decimal("0.01")))


@dataclass(frozen=True, slots=True)
class PaymentRequest:
    """
    Everything the payment API needs to price and charge independently.

    Always carries the full cart snapshot, never a cart reference.
    """

    idempotency_key: str
    method: PaymentMethod
    details: PaymentDetails
    lines: tuple[CartLine, ...]
    shipping: ShippingOption
    address: ShippingAddress
    packages: tuple[PackageItem, ...] = ()

    @classmethod
    def build(
        cls,
        idempotency_key: str,
        method: PaymentMethod,
        details: PaymentDetails,
        lines: tuple[CartLine, ...],
        shipping: ShippingOption,
        address: ShippingAddress,
        package_defaults: PackageItem | None = None,
    ) -> PaymentRequest:
        return cls(
            idempotency_key=idempotency_key,
            method=method,
            details=details,
            lines=lines,
            shipping=shipping,
            address=address,
            packages=tuple(build_package(lines, package_defaults)),
        )

    @property
    def subtotal(self) -> Money:
        return sum((line.subtotal for line in self.lines), Decimal(0))

    @property
    def amount(self) -> Money:
        return self.subtotal + self.shipping.price

    @property
    def payment_method_id(self) -> str:
        match self.method:
            case PaymentMethod.PIX:
                return "pix"
            case PaymentMethod.BOLETO:
                return BOLETO_METHOD_ID
            case PaymentMethod.CREDIT_CARD:
                card = self.details.card
                return card.payment_method_id if card else DEFAULT_CARD_METHOD_ID

    def _payer(self) -> dict[str, object]:
        payer = self.details.payer
        body: dict[str, object] = {
            "email": payer.email.strip(),
            "identification": {"type": payer.document_type, "number": payer.document_digits},
        }
        if self.method is PaymentMethod.CREDIT_CARD:
            return body
        body["first_name"] = payer.first_name
        body["last_name"] = payer.last_name
        body["address"] = {
            "zip_code": normalize_postal_code(self.address.postal_code),
            "street_name": self.address.street.strip(),
            "street_number": self.address.number.strip() or "S/N",
            "neighborhood": self.address.neighborhood.strip() or "Centro",
            "city": self.address.city.strip(),
            "federal_unit": self.address.state.strip(),
        }
        return body

    def to_payload(self) -> dict[str, object]:
        """JSON body for POST /pagamento."""
        payload: dict[str, object] = {
            "transaction_amount": _amount(self.amount),
            "payment_method_id": self.payment_method_id,
            "payer": self._payer(),
            "items": [
                {
                    "id": line.product_id,
                    "name": line.name,
                    "price": _amount(line.price),
                    "quantity": line.quantity,
                    "image": line.image or None,
                    "size": line.size,
                    "color": line.color,
                }
                for line in self.lines
            ],
            "frete": _amount(self.shipping.price),
            "frete_service": self.shipping.carrier_reference,
            "frete_itens": [item.to_dict() for item in self.packages],
            "cep": normalize_postal_code(self.address.postal_code),
        }
        card = self.details.card
        if self.method is PaymentMethod.CREDIT_CARD and card is not None:
            payload["token"] = card.token
            payload["installments"] = max(card.installments, 1)
            payload["issuer_id"] = card.issuer_id
        return payload

    def fingerprint(self) -> str:
        """Stable hash of the payload. Same key with a new fingerprint is a new attempt."""
        canonical = json.dumps(self.to_payload(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()


# ═══════════════════════════════════════════════════════════════════════════════
# Receipts
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CardReceipt:
    payment_id: str | None = None
    status: str | None = None
    status_detail: str | None = None


@dataclass(frozen=True, slots=True)
class PixCharge:
    """Pix QR payload: copy-paste code plus a base64 PNG."""

    qr_code: str
    qr_code_base64: str = ""
    payment_id: str | None = None


@dataclass(frozen=True, slots=True)
class BoletoTicket:
    ticket_url: str
    payment_id: str | None = None


type PaymentReceipt = CardReceipt | PixCharge | BoletoTicket


class PaymentResponseIn(RecordModel):
    """
    Success body of POST /pagamento.

        card:   {"id", "status", "status_detail"}
        pix:    {"id", "qr_code", "qr_code_base64"}
        boleto: {"id", "ticket_url"}
    """

    id: OptionalStr = None
    status: OptionalStr = None
    status_detail: OptionalStr = None
    qr_code: OptionalStr = None
    qr_code_base64: OptionalStr = None
    ticket_url: OptionalStr = None

    @property
    def is_declined(self) -> bool:
        return self.status is not None and self.status.lower() in DECLINED_STATUSES

    def to_domain(self, method: PaymentMethod) -> PaymentReceipt | None:
        """None if the body lacks the method's fields."""
        match method:
            case PaymentMethod.CREDIT_CARD:
                return CardReceipt(
                    payment_id=self.id,
                    status=self.status,
                    status_detail=self.status_detail,
                )
            case PaymentMethod.PIX:
                if not self.qr_code:
                    return None
                return PixCharge(
                    qr_code=self.qr_code,
                    qr_code_base64=self.qr_code_base64 or "",
                    payment_id=self.id,
                )
            case PaymentMethod.BOLETO:
                if not self.ticket_url:
                    return None
                return BoletoTicket(ticket_url=self.ticket_url, payment_id=self.id)


def parse_receipt(method: PaymentMethod, payload: object) -> PaymentReceipt | None:
    """Success body → receipt. None if the body lacks the method's fields."""
    body = PaymentResponseIn.read(payload) or PaymentResponseIn()
    return body.to_domain(method)


# ═══════════════════════════════════════════════════════════════════════════════
# Session
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """
    Transient checkout state. Never persisted.

    attempt advances only after a decline, so a retry after a network
    failure reuses the same idempotency key.
    """

    session_id: str
    status: CheckoutState
    cart: tuple[CartLine, ...] = ()
    address: ShippingAddress = field(default_factory=ShippingAddress)
    shipping: ShippingOption | None = None
    method: PaymentMethod | None = None
    attempt: int = 1
    last_failure: Exception | None = None
    receipt: PaymentReceipt | None = None

    @property
    def idempotency_key(self) -> str:
        return f"{self.session_id}:{self.attempt}"


__all__ = (
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
)
