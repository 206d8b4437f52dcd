"""Tests for payment requests, receipts and the submission ledger."""

from decimal import Decimal

from kungfu import Error, Ok

from storefront.cart import CartLine
from storefront.checkout import (
    BoletoTicket,
    CardDetails,
    CardReceipt,
    MemoryLedger,
    Payer,
    PaymentDetails,
    PaymentMethod,
    PaymentRequest,
    PaymentResponseIn,
    PixCharge,
    RecordState,
    parse_receipt,
    validate_details,
)
from storefront.shipping import PackageItem, ShippingAddress

from tests.fakes import SEDEX

ADDRESS = ShippingAddress(postal_code="01001000", street="Praça da Sé", city="São Paulo")
LINES = (
    CartLine(1, "Camiseta", Decimal("49.90"), "camiseta.jpg", "M", "Azul", quantity=2),
    CartLine(2, "Boné", Decimal("39.90")),
)
PAYER = Payer("Ana Maria Souza", "ana@example.com", "123.456.789-09")


def request(method: PaymentMethod, details: PaymentDetails | None = None) -> PaymentRequest:
    return PaymentRequest.build(
        idempotency_key="sess:1",
        method=method,
        details=details or PaymentDetails(PAYER),
        lines=LINES,
        shipping=SEDEX,
        address=ADDRESS,
    )


class TestPayer:
    def test_name_split(self):
        assert PAYER.first_name == "Ana"
        assert PAYER.last_name == "Maria Souza"
        assert PAYER.document_digits == "12345678909"


class TestValidateDetails:
    def test_pix_needs_full_name(self):
        match validate_details(PaymentMethod.PIX, PaymentDetails(Payer("Ana", "", "1")), ADDRESS):
            case Error(e):
                assert e.field == "full_name"
            case _:
                raise AssertionError("expected Error")

    def test_document_required(self):
        result = validate_details(PaymentMethod.PIX, PaymentDetails(Payer("Ana Souza")), ADDRESS)

        assert isinstance(result, Error)
        assert result.error.field == "document"

    def test_card_needs_token_and_email(self):
        no_card = validate_details(PaymentMethod.CREDIT_CARD, PaymentDetails(PAYER), ADDRESS)
        no_email = validate_details(
            PaymentMethod.CREDIT_CARD,
            PaymentDetails(Payer("Ana Souza", "", "1"), CardDetails("tok")),
            ADDRESS,
        )

        assert no_card.error.field == "card"
        assert no_email.error.field == "email"

    def test_boleto_needs_address(self):
        result = validate_details(PaymentMethod.BOLETO, PaymentDetails(PAYER), ShippingAddress(postal_code="01001000"))

        assert result.error.field == "address"

    def test_valid(self):
        details = PaymentDetails(PAYER)

        assert validate_details(PaymentMethod.BOLETO, details, ADDRESS) == Ok(details)


class TestPaymentRequest:
    def test_amount_is_items_plus_shipping(self):
        req = request(PaymentMethod.PIX)

        assert req.subtotal == Decimal("139.70")
        assert req.amount == Decimal("165.60")
        assert req.packages == (PackageItem(quantity=3),)

    def test_pix_payload(self):
        payload = request(PaymentMethod.PIX).to_payload()

        assert payload["transaction_amount"] == 165.6
        assert payload["payment_method_id"] == "pix"
        assert payload["frete"] == 25.9
        assert payload["frete_service"] == "2"
        assert payload["cep"] == "01001000"
        assert payload["items"][0] == {
            "id": 1,
            "name": "Camiseta",
            "price": 49.9,
            "quantity": 2,
            "image": "camiseta.jpg",
            "size": "M",
            "color": "Azul",
        }
        assert payload["items"][1]["image"] is None
        assert payload["payer"]["first_name"] == "Ana"
        assert payload["payer"]["identification"] == {"type": "CPF", "number": "12345678909"}
        assert payload["payer"]["address"]["street_number"] == "S/N"
        assert payload["payer"]["address"]["neighborhood"] == "Centro"
        assert "token" not in payload

    def test_boleto_method_id(self):
        assert request(PaymentMethod.BOLETO).to_payload()["payment_method_id"] == "bolbradesco"

    def test_card_payload(self):
        details = PaymentDetails(PAYER, CardDetails("tok_1", "master", installments=0, issuer_id="24"))

        payload = request(PaymentMethod.CREDIT_CARD, details).to_payload()

        assert payload["payment_method_id"] == "master"
        assert payload["token"] == "tok_1"
        assert payload["installments"] == 1
        assert payload["issuer_id"] == "24"
        assert "address" not in payload["payer"]

    def test_fingerprint_tracks_payload(self):
        assert request(PaymentMethod.PIX).fingerprint() == request(PaymentMethod.PIX).fingerprint()
        assert request(PaymentMethod.PIX).fingerprint() != request(PaymentMethod.BOLETO).fingerprint()


class TestParseReceipt:
    def test_card(self):
        receipt = parse_receipt(
            PaymentMethod.CREDIT_CARD, {"id": 123, "status": "approved", "status_detail": "accredited"}
        )

        assert receipt == CardReceipt("123", "approved", "accredited")

    def test_pix(self):
        receipt = parse_receipt(PaymentMethod.PIX, {"id": 5, "qr_code": "000201", "qr_code_base64": "iVBOR"})

        assert receipt == PixCharge("000201", "iVBOR", "5")

    def test_pix_without_code(self):
        assert parse_receipt(PaymentMethod.PIX, {"id": 5}) is None

    def test_boleto(self):
        receipt = parse_receipt(PaymentMethod.BOLETO, {"id": 9, "ticket_url": "https://boleto/9"})

        assert receipt == BoletoTicket("https://boleto/9", "9")
        assert parse_receipt(PaymentMethod.BOLETO, None) is None


class TestPaymentResponseIn:
    def test_ids_are_read_as_strings(self):
        body = PaymentResponseIn.read({"id": 123, "status": "approved", "extra": {"nested": True}})

        assert body is not None
        assert body.id == "123"
        assert body.status == "approved"
        assert body.qr_code is None

    def test_declined_statuses(self):
        assert PaymentResponseIn(status="REJECTED").is_declined
        assert PaymentResponseIn(status="cancelled").is_declined
        assert not PaymentResponseIn(status="in_process").is_declined
        assert not PaymentResponseIn().is_declined

    def test_non_object_body(self):
        assert PaymentResponseIn.read(["id", 1]) is None
        assert parse_receipt(PaymentMethod.PIX, "ok") is None


class TestMemoryLedger:
    async def test_pending_blocks_second_claim(self):
        ledger = MemoryLedger()

        assert await ledger.set_pending("k", "fp") == Ok(True)
        assert await ledger.set_pending("k", "fp") == Ok(False)

    async def test_failed_record_can_be_reclaimed(self):
        ledger = MemoryLedger()
        await ledger.set_pending("k", "fp")
        await ledger.set_failed("k")

        assert await ledger.set_pending("k", "fp") == Ok(True)

    async def test_completed_record_keeps_receipt(self):
        ledger = MemoryLedger()
        receipt = PixCharge("000201")
        await ledger.set_pending("k", "fp")
        await ledger.set_completed("k", receipt)

        match await ledger.get("k"):
            case Ok(record):
                assert record.state is RecordState.COMPLETED
                assert record.is_completed
                assert record.receipt == receipt
            case Error(e):
                raise AssertionError(e)
        assert await ledger.set_pending("k", "fp") == Ok(False)

    async def test_complete_unknown_key(self):
        assert isinstance(await MemoryLedger().set_completed("k", PixCharge("x")), Error)

