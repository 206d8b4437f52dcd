"""
CheckoutOrchestrator — the checkout state machine.

    ENTERING_ADDRESS
         │ confirm_address()          valid 8-digit postal code
         ▼
    AWAITING_SHIPPING_QUOTE ◄──────── stale selection (code or cart changed)
         │ select_shipping()
         ▼
    SHIPPING_SELECTED
         │ proceed_to_payment()
         ▼
    CHOOSING_PAYMENT_METHOD ◄──────── FAILED (decline or network error)
         │ choose_payment_method()    no-op while the postal code is invalid
         ▼
    CREDIT_CARD_FLOW | PIX_FLOW | BOLETO_FLOW    (boleto: street and city too)
         │ submit()
         ▼
    SUBMITTING ──► SUCCEEDED          cart cleared once, confirmation after a delay

Any step with an empty cart aborts to EMPTY_CART.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

from combinators import lift as L
from kungfu import Result, Ok, Error

from storefront._errors import (
    PaymentDeclined,
    StorefrontError,
    ValidationError,
    network_error,
)
from storefront._types import Money
from storefront.cart import CartAggregator
from storefront.checkout._ledger import LedgerError, MemoryLedger, SubmissionLedger
from storefront.checkout._payment import PaymentGateway
from storefront.checkout._types import (
    CheckoutSession,
    CheckoutState,
    PaymentDetails,
    PaymentMethod,
    PaymentReceipt,
    PaymentRequest,
    validate_details,
)
from storefront.shipping import (
    AddressBook,
    PackageItem,
    ShippingAddress,
    ShippingOption,
    ShippingRateResolver,
    is_valid_postal_code,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_DELAY = timedelta(seconds=3)

type ConfirmationHandler = Callable[[PaymentReceipt], object]


def _new_session_id() -> str:
    return uuid.uuid4().hex


def _ledger_error(e: Exception) -> LedgerError:
    return LedgerError(str(e) or type(e).__name__, cause=e)


class CheckoutOrchestrator:
    """
    Sequences address → shipping → payment method → submission.

    Owns the transient CheckoutSession. Reads the cart and address book,
    drives the shipping resolver, and hands one PaymentRequest at a time to
    the payment gateway.

    Example:
        checkout = CheckoutOrchestrator(cart, book, resolver, gateway)
        checkout.begin()
        checkout.confirm_address()
        await resolver.settle()
        checkout.select_shipping(resolver.options[0])
        checkout.proceed_to_payment()
        checkout.choose_payment_method(PaymentMethod.PIX)
        match await checkout.submit(details):
            case Ok(PixCharge(qr_code=code)):
                ...
            case Error(e):
                ...   # back at CHOOSING_PAYMENT_METHOD, cart intact
    """

    def __init__(
        self,
        cart: CartAggregator,
        address_book: AddressBook,
        resolver: ShippingRateResolver,
        gateway: PaymentGateway,
        *,
        ledger: SubmissionLedger | None = None,
        confirmation_delay: timedelta = DEFAULT_CONFIRMATION_DELAY,
        on_confirmed: ConfirmationHandler | None = None,
        package_defaults: PackageItem | None = None,
        new_session_id: Callable[[], str] = _new_session_id,
    ) -> None:
        self._cart = cart
        self._book = address_book
        self._resolver = resolver
        self._gateway = gateway
        self._ledger: SubmissionLedger = ledger if ledger is not None else MemoryLedger()
        self._confirmation_delay = confirmation_delay
        self._on_confirmed = on_confirmed
        self._package_defaults = package_defaults
        self._new_session_id = new_session_id

        self._session: CheckoutSession | None = None
        self._history: list[CheckoutState] = []
        self._submission: asyncio.Task[Result[PaymentReceipt, StorefrontError]] | None = None
        self._navigation: asyncio.TimerHandle | None = None
        # Session ids whose success side effects already ran.
        self._cleared: set[str] = set()
        self._confirmed: set[str] = set()

    # ───────────────────────────────────────────────────────────────────────────
    # Views
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def session(self) -> CheckoutSession | None:
        return self._session

    @property
    def state(self) -> CheckoutState:
        return self._session.status if self._session else CheckoutState.ENTERING_ADDRESS

    @property
    def history(self) -> tuple[CheckoutState, ...]:
        """States entered by the current session, oldest first."""
        return tuple(self._history)

    @property
    def shipping_cost(self) -> Money:
        if self._session is None or self._session.shipping is None:
            return Decimal(0)
        return self._session.shipping.price

    @property
    def total(self) -> Money:
        """Cart total plus the selected shipping price."""
        return self._cart.total + self.shipping_cost

    @property
    def confirmation_pending(self) -> bool:
        return self._navigation is not None

    # ───────────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────────

    def _transition(self, status: CheckoutState, **changes: object) -> CheckoutState:
        session = self._session
        if session is None:
            return self.state
        if status is not session.status:
            logger.debug("Checkout %s: %s → %s", session.session_id, session.status.name, status.name)
            self._history.append(status)
        self._session = replace(session, status=status, **changes)
        return status

    async def _record[T](
        self, call: Callable[[], Awaitable[Result[T, LedgerError]]]
    ) -> Result[T, LedgerError]:
        """Run a ledger call. Anything it raises becomes a LedgerError."""
        match await L.catching_async(call, on_error=_ledger_error):
            case Ok(result):
                return result
            case Error(e):
                return Error(e)

    def _guard(self) -> Result[CheckoutSession, ValidationError]:
        """Reconcile, then refuse if there is nothing left to act on."""
        if self._session is None:
            return Error(ValidationError("Checkout has not started."))
        match self.reconcile():
            case CheckoutState.EMPTY_CART:
                return Error(ValidationError("Your cart is empty.", field="cart"))
            case CheckoutState.SUBMITTING:
                return Error(ValidationError("A payment is already being submitted."))
            case CheckoutState.SUCCEEDED:
                return Error(ValidationError("This checkout is already complete."))
            case _:
                return Ok(self._session)

    def _cancel_navigation(self) -> None:
        if self._navigation is not None:
            self._navigation.cancel()
            self._navigation = None

    # ───────────────────────────────────────────────────────────────────────────
    # Session Lifecycle
    # ───────────────────────────────────────────────────────────────────────────

    def begin(self) -> CheckoutState:
        """Start a fresh session from the current cart and address."""
        self._cancel_navigation()
        self._history = [CheckoutState.ENTERING_ADDRESS]
        self._session = CheckoutSession(
            session_id=self._new_session_id(),
            status=CheckoutState.ENTERING_ADDRESS,
            cart=self._cart.snapshot(),
            address=self._book.address,
        )
        logger.debug("Checkout %s started", self._session.session_id)
        return self.reconcile()

    def abandon(self) -> None:
        """
        Destroy the session and cancel a pending confirmation.

        A payment already in flight still completes; its outcome no longer
        touches any session.
        """
        self._cancel_navigation()
        if self._session is not None:
            logger.debug("Checkout %s abandoned", self._session.session_id)
        self._session = None
        self._history = []

    def reconcile(self) -> CheckoutState:
        """
        Re-read cart and address after any outside change.

        Empty cart → EMPTY_CART. Invalid postal code → ENTERING_ADDRESS.
        A selection the resolver no longer holds → AWAITING_SHIPPING_QUOTE.
        """
        session = self._session
        if session is None:
            return CheckoutState.ENTERING_ADDRESS
        if session.status in (CheckoutState.SUBMITTING, CheckoutState.SUCCEEDED, CheckoutState.EMPTY_CART):
            return session.status

        lines = self._cart.snapshot()
        address = self._book.address
        self._session = replace(session, cart=lines, address=address)
        self._resolver.update(address.postal_code, lines)

        if not lines:
            return self._transition(CheckoutState.EMPTY_CART, shipping=None, method=None)
        if session.status is CheckoutState.ENTERING_ADDRESS:
            return session.status
        if not is_valid_postal_code(address.postal_code):
            return self._transition(CheckoutState.ENTERING_ADDRESS, shipping=None, method=None)

        selected = self._resolver.selected
        if session.shipping is not None and (
            selected is None or selected.selection_key != session.shipping.selection_key
        ):
            logger.debug("Checkout %s: shipping quote went stale", session.session_id)
            return self._transition(CheckoutState.AWAITING_SHIPPING_QUOTE, shipping=None, method=None)
        return self._session.status

    # ───────────────────────────────────────────────────────────────────────────
    # Steps
    # ───────────────────────────────────────────────────────────────────────────

    def confirm_address(self, address: ShippingAddress | None = None) -> Result[CheckoutState, ValidationError]:
        """
        Accept the address and start quoting.

        Only the postal code is required here.
        """
        if address is not None:
            self._book.set(address)
        match self._guard():
            case Error(e):
                return Error(e)
            case Ok(session):
                pass
        if not is_valid_postal_code(session.address.postal_code):
            return Error(ValidationError("Invalid postal code. Enter 8 digits.", field="postal_code"))
        if session.status is CheckoutState.ENTERING_ADDRESS:
            self._transition(CheckoutState.AWAITING_SHIPPING_QUOTE)
        return Ok(self.reconcile())

    def select_shipping(self, option: ShippingOption) -> Result[CheckoutState, ValidationError]:
        match self._guard():
            case Error(e):
                return Error(e)
            case Ok(session):
                pass
        if session.status is CheckoutState.ENTERING_ADDRESS:
            return Error(ValidationError("Confirm the address first.", field="postal_code"))
        if not self._resolver.select(option):
            return Error(ValidationError("That shipping option is not available.", field="shipping"))
        return Ok(
            self._transition(
                CheckoutState.SHIPPING_SELECTED,
                shipping=self._resolver.selected,
                method=None,
            )
        )

    def proceed_to_payment(self) -> Result[CheckoutState, ValidationError]:
        match self._guard():
            case Error(e):
                return Error(e)
            case Ok(session):
                pass
        if session.shipping is None:
            return Error(ValidationError("Select a shipping option first.", field="shipping"))
        if session.status is CheckoutState.SHIPPING_SELECTED:
            return Ok(self._transition(CheckoutState.CHOOSING_PAYMENT_METHOD))
        return Ok(session.status)

    def choose_payment_method(self, method: PaymentMethod) -> Result[CheckoutState, ValidationError]:
        """
        Enter the method's flow.

        No-op while the postal code is invalid. Boleto also needs street
        and city.
        """
        match self._guard():
            case Error(e):
                return Error(e)
            case Ok(session):
                pass
        if not is_valid_postal_code(session.address.postal_code):
            return Ok(session.status)
        if session.status is not CheckoutState.CHOOSING_PAYMENT_METHOD and not session.status.is_payment_flow:
            return Error(ValidationError("Select a shipping option first.", field="shipping"))
        if method is PaymentMethod.BOLETO and not session.address.is_complete_for_boleto:
            return Error(
                ValidationError("Boleto needs postal code, street and city.", field="address")
            )
        return Ok(self._transition(method.flow, method=method))

    # ───────────────────────────────────────────────────────────────────────────
    # Submission
    # ───────────────────────────────────────────────────────────────────────────

    async def submit(self, details: PaymentDetails) -> Result[PaymentReceipt, StorefrontError]:
        """
        Send the payment. Concurrent calls share one request.

        Failure returns to CHOOSING_PAYMENT_METHOD with the cart intact.
        """
        if self._submission is not None and not self._submission.done():
            return await asyncio.shield(self._submission)

        match self._guard():
            case Error(e):
                return Error(e)
            case Ok(session):
                pass
        if not session.status.is_payment_flow or session.method is None or session.shipping is None:
            return Error(ValidationError("Choose a payment method first.", field="method"))

        match validate_details(session.method, details, session.address):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        request = PaymentRequest.build(
            idempotency_key=session.idempotency_key,
            method=session.method,
            details=details,
            lines=self._cart.snapshot(),
            shipping=session.shipping,
            address=session.address,
            package_defaults=self._package_defaults,
        )
        self._transition(CheckoutState.SUBMITTING)
        task = asyncio.get_running_loop().create_task(self._submit(session.session_id, request))
        self._submission = task
        return await asyncio.shield(task)

    async def _prepare(self, session_id: str, request: PaymentRequest) -> tuple[PaymentRequest, PaymentReceipt | None]:
        """
        Check the ledger for this key.

        A completed record with the same payload is replayed. A record for a
        different payload moves to the next attempt key. An unavailable
        ledger never blocks the submission.
        """
        fingerprint = request.fingerprint()
        key = request.idempotency_key
        match await self._record(lambda: self._ledger.get(key)):
            case Ok(record) if record is not None and record.fingerprint != fingerprint:
                attempt = int(key.rpartition(":")[2]) + 1
                request = replace(request, idempotency_key=f"{session_id}:{attempt}")
                session = self._session
                if session is not None and session.session_id == session_id:
                    self._session = replace(session, attempt=attempt)
                logger.debug("Payload changed; moving to attempt %d", attempt)
            case Ok(record) if record is not None and record.is_completed:
                logger.info("Replaying completed payment %s", key)
                return request, record.receipt
            case Error(e):
                logger.warning("Submission ledger unavailable: %s", e.message)
            case _:
                pass

        key = request.idempotency_key
        match await self._record(lambda: self._ledger.set_pending(key, fingerprint)):
            case Ok(False):
                logger.debug("Payment %s already marked in flight; resending", key)
            case Error(e):
                logger.warning("Submission ledger unavailable: %s", e.message)
            case _:
                pass
        return request, None

    async def _send(self, request: PaymentRequest) -> Result[PaymentReceipt, StorefrontError]:
        match await L.catching_async(lambda: self._gateway.submit(request), on_error=network_error):
            case Ok(result):
                return result
            case Error(e):
                return Error(e)

    async def _settle(self, key: str, result: Result[PaymentReceipt, StorefrontError]) -> None:
        match result:
            case Ok(receipt):
                outcome = await self._record(lambda: self._ledger.set_completed(key, receipt))
            case Error(_):
                outcome = await self._record(lambda: self._ledger.set_failed(key))
        match outcome:
            case Error(e):
                logger.warning("Submission ledger unavailable: %s", e.message)
            case _:
                pass

    async def _submit(self, session_id: str, request: PaymentRequest) -> Result[PaymentReceipt, StorefrontError]:
        request, replayed = await self._prepare(session_id, request)
        if replayed is not None:
            result: Result[PaymentReceipt, StorefrontError] = Ok(replayed)
        else:
            result = await self._send(request)
            await self._settle(request.idempotency_key, result)

        match result:
            case Ok(receipt):
                self._succeed(session_id, request, receipt)
            case Error(e):
                self._fail(session_id, e)
        return result

    def _current(self, session_id: str) -> bool:
        return self._session is not None and self._session.session_id == session_id

    def _succeed(self, session_id: str, request: PaymentRequest, receipt: PaymentReceipt) -> None:
        if session_id not in self._cleared:
            self._cleared.add(session_id)
            self._cart.clear()
        logger.info("Checkout %s paid with %s", session_id, request.method.value)

        if not self._current(session_id):
            return
        self._transition(CheckoutState.SUCCEEDED, receipt=receipt, last_failure=None)
        if self._navigation is None and session_id not in self._confirmed:
            self._navigation = asyncio.get_running_loop().call_later(
                self._confirmation_delay.total_seconds(),
                self._confirm,
                session_id,
                receipt,
            )

    def _confirm(self, session_id: str, receipt: PaymentReceipt) -> None:
        self._navigation = None
        if session_id in self._confirmed or not self._current(session_id):
            return
        self._confirmed.add(session_id)
        if self._on_confirmed is not None:
            self._on_confirmed(receipt)

    def _fail(self, session_id: str, error: StorefrontError) -> None:
        session = self._session
        if session is None or session.session_id != session_id:
            return
        attempt = session.attempt
        if isinstance(error, PaymentDeclined):
            attempt += 1
        self._transition(CheckoutState.FAILED, last_failure=error, attempt=attempt)
        self._transition(CheckoutState.CHOOSING_PAYMENT_METHOD, method=None)


__all__ = (
    "DEFAULT_CONFIRMATION_DELAY",
    "ConfirmationHandler",
    "CheckoutOrchestrator",
)
