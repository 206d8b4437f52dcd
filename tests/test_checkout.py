"""Tests for the checkout state machine and idempotent submission."""

import asyncio
from dataclasses import dataclass
from datetime import timedelta

from kungfu import Error, Ok

from storefront._errors import NetworkError, PaymentDeclined, ValidationError
from storefront.cart import CartAggregator
from storefront.checkout import (
    CardDetails,
    CardReceipt,
    CheckoutOrchestrator,
    CheckoutState,
    MemoryLedger,
    Payer,
    PaymentDetails,
    PaymentMethod,
    PixCharge,
)
from storefront.shipping import AddressBook, ShippingAddress, ShippingRateResolver
from storefront.storage import MemoryStorage

from tests.fakes import PAC, SEDEX, BrokenLedger, FakeGateway, FakeRateProvider, make_product

DEBOUNCE = timedelta(milliseconds=10)

FULL_ADDRESS = ShippingAddress(
    postal_code="01001000",
    street="Praça da Sé",
    number="100",
    neighborhood="Sé",
    city="São Paulo",
)
PIX_DETAILS = PaymentDetails(Payer("Ana Souza", "ana@example.com", "123.456.789-09"))
CARD_DETAILS = PaymentDetails(
    Payer("Ana Souza", "ana@example.com", "12345678909"),
    CardDetails(token="tok_123", payment_method_id="visa", installments=3),
)
PIX_CHARGE = PixCharge(qr_code="00020126580014br.gov.bcb.pix", qr_code_base64="iVBORw0KGgo=", payment_id="991")


@dataclass
class Harness:
    cart: CartAggregator
    book: AddressBook
    resolver: ShippingRateResolver
    rates: FakeRateProvider
    gateway: FakeGateway
    checkout: CheckoutOrchestrator
    confirmed: list


def harness(
    *results,
    address: ShippingAddress = FULL_ADDRESS,
    ledger: MemoryLedger | None = None,
    gateway: FakeGateway | None = None,
    confirmation_delay: timedelta = timedelta(0),
) -> Harness:
    storage = MemoryStorage()
    cart = CartAggregator(storage)
    product = make_product(1, name="Camiseta", price="50.00", quantity=10)
    cart.add_line(product, "M", "Azul", max_quantity=10)
    cart.add_line(product, "M", "Azul", max_quantity=10)
    book = AddressBook(storage)
    book.set(address)
    rates = FakeRateProvider()
    resolver = ShippingRateResolver(rates, debounce=DEBOUNCE)
    gateway = gateway or FakeGateway(*(results or (Ok(PIX_CHARGE),)))
    confirmed: list = []
    checkout = CheckoutOrchestrator(
        cart,
        book,
        resolver,
        gateway,
        ledger=ledger,
        confirmation_delay=confirmation_delay,
        on_confirmed=confirmed.append,
        new_session_id=lambda: "sess",
    )
    return Harness(cart, book, resolver, rates, gateway, checkout, confirmed)


async def to_payment_method(h: Harness) -> None:
    h.checkout.begin()
    assert h.checkout.confirm_address() == Ok(CheckoutState.AWAITING_SHIPPING_QUOTE)
    await h.resolver.settle()
    assert h.checkout.select_shipping(SEDEX) == Ok(CheckoutState.SHIPPING_SELECTED)
    assert h.checkout.proceed_to_payment() == Ok(CheckoutState.CHOOSING_PAYMENT_METHOD)


async def to_flow(h: Harness, method: PaymentMethod) -> None:
    await to_payment_method(h)
    assert h.checkout.choose_payment_method(method) == Ok(method.flow)


class TestSteps:
    async def test_begin_starts_at_address(self):
        h = harness()

        assert h.checkout.begin() is CheckoutState.ENTERING_ADDRESS
        assert h.checkout.session is not None
        assert h.checkout.session.idempotency_key == "sess:1"

    async def test_invalid_postal_code_blocks_confirmation(self):
        h = harness(address=ShippingAddress(postal_code="0100"))
        h.checkout.begin()

        match h.checkout.confirm_address():
            case Error(ValidationError(field=field)):
                assert field == "postal_code"
            case other:
                raise AssertionError(other)
        assert h.checkout.state is CheckoutState.ENTERING_ADDRESS

    async def test_confirm_with_new_address_persists_it(self):
        h = harness(address=ShippingAddress())
        h.checkout.begin()

        h.checkout.confirm_address(FULL_ADDRESS)

        assert h.book.address == FULL_ADDRESS
        assert h.checkout.state is CheckoutState.AWAITING_SHIPPING_QUOTE

    async def test_shipping_must_be_quoted_before_selection(self):
        h = harness()
        h.checkout.begin()
        h.checkout.confirm_address()

        assert isinstance(h.checkout.select_shipping(SEDEX), Error)

    async def test_total_includes_shipping(self):
        h = harness()
        await to_payment_method(h)

        assert h.checkout.shipping_cost == SEDEX.price
        assert h.checkout.total == h.cart.total + SEDEX.price

    async def test_reselecting_shipping(self):
        h = harness()
        await to_payment_method(h)

        assert h.checkout.select_shipping(PAC) == Ok(CheckoutState.SHIPPING_SELECTED)
        assert h.checkout.session.shipping == PAC

    async def test_proceed_requires_shipping(self):
        h = harness()
        h.checkout.begin()
        h.checkout.confirm_address()

        assert isinstance(h.checkout.proceed_to_payment(), Error)


class TestPaymentMethod:
    async def test_boleto_needs_street(self):
        h = harness(address=ShippingAddress(postal_code="01001000", city="São Paulo"))
        await to_payment_method(h)

        match h.checkout.choose_payment_method(PaymentMethod.BOLETO):
            case Error(ValidationError(field=field)):
                assert field == "address"
            case other:
                raise AssertionError(other)
        assert h.checkout.state is CheckoutState.CHOOSING_PAYMENT_METHOD

        assert h.checkout.choose_payment_method(PaymentMethod.CREDIT_CARD) == Ok(CheckoutState.CREDIT_CARD_FLOW)
        assert h.checkout.choose_payment_method(PaymentMethod.PIX) == Ok(CheckoutState.PIX_FLOW)

    async def test_boleto_with_full_address(self):
        h = harness()
        await to_payment_method(h)

        assert h.checkout.choose_payment_method(PaymentMethod.BOLETO) == Ok(CheckoutState.BOLETO_FLOW)

    async def test_invalid_postal_code_is_noop(self):
        h = harness()
        await to_payment_method(h)
        h.book.update(postal_code="0100")

        assert h.checkout.choose_payment_method(PaymentMethod.PIX) == Ok(CheckoutState.ENTERING_ADDRESS)
        assert h.checkout.session.method is None

    async def test_method_before_shipping_is_refused(self):
        h = harness()
        h.checkout.begin()
        h.checkout.confirm_address()

        assert isinstance(h.checkout.choose_payment_method(PaymentMethod.PIX), Error)


class TestReconcile:
    async def test_postal_change_invalidates_shipping(self):
        h = harness()
        await to_payment_method(h)

        h.book.update(postal_code="20040002")

        assert h.checkout.reconcile() is CheckoutState.AWAITING_SHIPPING_QUOTE
        assert h.checkout.session.shipping is None
        assert h.resolver.selected is None

    async def test_cart_change_invalidates_shipping(self):
        h = harness()
        await to_payment_method(h)

        h.cart.set_quantity(1, 1)

        assert h.checkout.reconcile() is CheckoutState.AWAITING_SHIPPING_QUOTE

    async def test_empty_cart_aborts(self):
        h = harness()
        await to_payment_method(h)

        h.cart.clear()

        assert h.checkout.reconcile() is CheckoutState.EMPTY_CART
        assert isinstance(h.checkout.choose_payment_method(PaymentMethod.PIX), Error)
        assert isinstance(await h.checkout.submit(PIX_DETAILS), Error)
        assert h.gateway.requests == []

    async def test_begin_with_empty_cart(self):
        h = harness()
        h.cart.clear()

        assert h.checkout.begin() is CheckoutState.EMPTY_CART


class TestSubmit:
    async def test_pix_success(self):
        h = harness(Ok(PIX_CHARGE))
        await to_flow(h, PaymentMethod.PIX)

        assert await h.checkout.submit(PIX_DETAILS) == Ok(PIX_CHARGE)

        assert h.checkout.state is CheckoutState.SUCCEEDED
        assert h.checkout.session.receipt == PIX_CHARGE
        assert h.cart.is_empty
        assert CheckoutState.SUBMITTING in h.checkout.history

        [request] = h.gateway.requests
        assert request.idempotency_key == "sess:1"
        assert request.to_payload()["transaction_amount"] == 125.90
        assert len(request.lines) == 1

    async def test_confirmation_fires_once_after_delay(self):
        h = harness(Ok(PIX_CHARGE), confirmation_delay=timedelta(milliseconds=20))
        await to_flow(h, PaymentMethod.PIX)
        await h.checkout.submit(PIX_DETAILS)

        assert h.checkout.confirmation_pending
        assert h.confirmed == []
        await asyncio.sleep(0.05)

        assert h.confirmed == [PIX_CHARGE]
        assert not h.checkout.confirmation_pending

    async def test_decline_keeps_cart_and_returns_to_method(self):
        declined = PaymentDeclined("Cartão recusado", details="cc_rejected_insufficient_amount")
        h = harness(Error(declined), Ok(CardReceipt("77", "approved")))
        await to_flow(h, PaymentMethod.CREDIT_CARD)
        count = h.cart.count

        assert await h.checkout.submit(CARD_DETAILS) == Error(declined)

        assert h.checkout.state is CheckoutState.CHOOSING_PAYMENT_METHOD
        assert h.checkout.session.last_failure == declined
        assert h.checkout.session.method is None
        assert h.cart.count == count
        assert h.checkout.history[-2:] == (CheckoutState.FAILED, CheckoutState.CHOOSING_PAYMENT_METHOD)

        h.checkout.choose_payment_method(PaymentMethod.CREDIT_CARD)
        assert isinstance(await h.checkout.submit(CARD_DETAILS), Ok)

        assert [r.idempotency_key for r in h.gateway.requests] == ["sess:1", "sess:2"]

    async def test_network_retry_reuses_key(self):
        h = harness(Error(NetworkError("Bad gateway", status=502)), Ok(PIX_CHARGE))
        await to_flow(h, PaymentMethod.PIX)

        assert isinstance(await h.checkout.submit(PIX_DETAILS), Error)
        assert h.checkout.state is CheckoutState.CHOOSING_PAYMENT_METHOD
        assert not h.cart.is_empty

        h.checkout.choose_payment_method(PaymentMethod.PIX)
        assert await h.checkout.submit(PIX_DETAILS) == Ok(PIX_CHARGE)

        assert [r.idempotency_key for r in h.gateway.requests] == ["sess:1", "sess:1"]

    async def test_changed_payload_moves_to_next_key(self):
        h = harness(Error(NetworkError("Bad gateway", status=502)), Ok(PIX_CHARGE))
        await to_flow(h, PaymentMethod.PIX)
        await h.checkout.submit(PIX_DETAILS)

        h.checkout.choose_payment_method(PaymentMethod.PIX)
        other = PaymentDetails(Payer("Ana Souza", "ana.souza@example.com", "123.456.789-09"))
        await h.checkout.submit(other)

        assert [r.idempotency_key for r in h.gateway.requests] == ["sess:1", "sess:2"]

    async def test_completed_key_is_replayed(self):
        ledger = MemoryLedger()
        first = harness(Ok(PIX_CHARGE), ledger=ledger)
        await to_flow(first, PaymentMethod.PIX)
        await first.checkout.submit(PIX_DETAILS)

        second = harness(Ok(PIX_CHARGE), ledger=ledger)
        await to_flow(second, PaymentMethod.PIX)

        assert await second.checkout.submit(PIX_DETAILS) == Ok(PIX_CHARGE)
        assert second.gateway.requests == []
        assert second.cart.is_empty

    async def test_concurrent_submits_share_one_request(self):
        h = harness(Ok(PIX_CHARGE))
        await to_flow(h, PaymentMethod.PIX)
        h.gateway.gate = asyncio.Event()

        first = asyncio.create_task(h.checkout.submit(PIX_DETAILS))
        await asyncio.sleep(0)
        second = asyncio.create_task(h.checkout.submit(PIX_DETAILS))
        await asyncio.sleep(0)
        h.gateway.gate.set()

        assert await asyncio.gather(first, second) == [Ok(PIX_CHARGE), Ok(PIX_CHARGE)]
        assert len(h.gateway.requests) == 1

    async def test_cart_cleared_once(self):
        h = harness(Ok(PIX_CHARGE))
        await to_flow(h, PaymentMethod.PIX)
        await h.checkout.submit(PIX_DETAILS)
        h.cart.add_line(make_product(2))

        assert isinstance(await h.checkout.submit(PIX_DETAILS), Error)
        assert h.cart.count == 1

    async def test_invalid_details_are_not_sent(self):
        h = harness()
        await to_flow(h, PaymentMethod.PIX)

        result = await h.checkout.submit(PaymentDetails(Payer("Ana", "", "123")))

        match result:
            case Error(ValidationError(field=field)):
                assert field == "full_name"
            case other:
                raise AssertionError(other)
        assert h.gateway.requests == []
        assert h.checkout.state is CheckoutState.PIX_FLOW

    async def test_submit_before_method_is_refused(self):
        h = harness()
        await to_payment_method(h)

        assert isinstance(await h.checkout.submit(PIX_DETAILS), Error)

    async def test_gateway_exception_becomes_network_error(self):
        class ExplodingGateway(FakeGateway):
            async def submit(self, request):
                raise ConnectionResetError("reset")

        h = harness(gateway=ExplodingGateway())
        await to_flow(h, PaymentMethod.PIX)

        match await h.checkout.submit(PIX_DETAILS):
            case Error(NetworkError(code=code)):
                assert code == "ConnectionResetError"
            case other:
                raise AssertionError(other)
        assert h.checkout.state is CheckoutState.CHOOSING_PAYMENT_METHOD

    async def test_abandon_during_submission(self):
        h = harness(Ok(PIX_CHARGE))
        await to_flow(h, PaymentMethod.PIX)
        h.gateway.gate = asyncio.Event()

        task = asyncio.create_task(h.checkout.submit(PIX_DETAILS))
        await asyncio.sleep(0)
        h.checkout.abandon()
        h.gateway.gate.set()

        assert await task == Ok(PIX_CHARGE)
        await asyncio.sleep(0.01)
        assert h.checkout.session is None
        assert h.cart.is_empty
        assert h.confirmed == []

    async def test_failure_after_abandon_leaves_no_session(self):
        h = harness(Error(NetworkError("Bad gateway", status=502)))
        await to_flow(h, PaymentMethod.PIX)
        h.gateway.gate = asyncio.Event()

        task = asyncio.create_task(h.checkout.submit(PIX_DETAILS))
        await asyncio.sleep(0)
        h.checkout.abandon()
        h.gateway.gate.set()

        assert isinstance(await task, Error)
        assert h.checkout.session is None
        assert h.checkout.state is CheckoutState.ENTERING_ADDRESS
        assert not h.cart.is_empty


class TestLedgerUnavailable:
    async def test_completion_not_recorded_still_succeeds(self):
        h = harness(Ok(PIX_CHARGE), ledger=BrokenLedger("set_completed"))
        await to_flow(h, PaymentMethod.PIX)

        assert await h.checkout.submit(PIX_DETAILS) == Ok(PIX_CHARGE)

        assert h.checkout.state is CheckoutState.SUCCEEDED
        assert h.cart.is_empty
        await asyncio.sleep(0.01)
        assert h.confirmed == [PIX_CHARGE]

    async def test_next_submit_is_not_stuck(self):
        h = harness(Error(NetworkError("Bad gateway", status=502)), Ok(PIX_CHARGE), ledger=BrokenLedger("set_failed"))
        await to_flow(h, PaymentMethod.PIX)

        assert isinstance(await h.checkout.submit(PIX_DETAILS), Error)
        assert h.checkout.state is CheckoutState.CHOOSING_PAYMENT_METHOD

        h.checkout.choose_payment_method(PaymentMethod.PIX)
        assert await h.checkout.submit(PIX_DETAILS) == Ok(PIX_CHARGE)
        assert len(h.gateway.requests) == 2

    async def test_unreadable_ledger_still_submits(self):
        h = harness(Ok(PIX_CHARGE), ledger=BrokenLedger("get", "set_pending", "set_completed"))
        await to_flow(h, PaymentMethod.PIX)

        assert await h.checkout.submit(PIX_DETAILS) == Ok(PIX_CHARGE)

        [request] = h.gateway.requests
        assert request.idempotency_key == "sess:1"
        assert h.checkout.state is CheckoutState.SUCCEEDED
