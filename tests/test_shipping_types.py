"""Tests for postal codes, shipping options and addresses."""

from decimal import Decimal

from storefront.cart import CartLine
from storefront.shipping import (
    AddressSlot,
    PackageItem,
    RateQuoteIn,
    ShippingAddress,
    ShippingOption,
    build_package,
    is_valid_postal_code,
    mask_postal_code,
    normalize_postal_code,
    parse_options,
)


class TestPostalCode:
    def test_normalize_keeps_eight_digits(self):
        assert normalize_postal_code("01001-000") == "01001000"
        assert normalize_postal_code("01001-0001234") == "01001000"
        assert normalize_postal_code(None) == ""

    def test_valid_requires_eight_digits(self):
        assert is_valid_postal_code("01001-000")
        assert not is_valid_postal_code("0100100")
        assert not is_valid_postal_code("")

    def test_mask_while_typing(self):
        assert mask_postal_code("01001") == "01001"
        assert mask_postal_code("010010") == "01001-0"
        assert mask_postal_code("01001000") == "01001-000"


class TestShippingOption:
    def test_from_dict(self):
        option = ShippingOption.from_dict(
            {"transportadora": "Correios SEDEX", "preco": 25.9, "prazo_entrega_dias": 2, "id": 7}
        )

        assert option == ShippingOption("Correios SEDEX", Decimal("25.9"), 2, None, "7")
        assert option.selection_id == "Correios SEDEX-25.9"
        assert option.carrier_reference == "7"

    def test_unknown_days(self):
        option = ShippingOption.from_dict({"transportadora": "Loggi", "preco": "12"})

        assert option is not None
        assert option.estimated_days is None
        assert option.carrier_reference == "Loggi"

    def test_parse_options(self):
        assert parse_options({"opcoes": [{"transportadora": "A", "preco": 1}, "junk"]}) == [
            ShippingOption("A", Decimal(1))
        ]
        assert parse_options({"error": "x"}) is None
        assert parse_options({"opcoes": []}) == []


class TestBuildPackage:
    def test_one_package_with_total_quantity(self):
        lines = [
            CartLine(1, "a", Decimal("10"), quantity=2),
            CartLine(2, "b", Decimal("10"), quantity=3),
        ]

        assert build_package(lines) == [PackageItem(quantity=5)]

    def test_empty_cart_still_one_unit(self):
        assert build_package([]) == [PackageItem(quantity=1)]

    def test_custom_box(self):
        box = PackageItem(width=30, weight=1.2)

        [item] = build_package([CartLine(1, "a", Decimal("10"))], box)

        assert item.width == 30
        assert item.weight == 1.2

    def test_wire_form(self):
        assert PackageItem().to_dict() == {
            "width": 16,
            "height": 12,
            "length": 20,
            "weight": 0.5,
            "quantity": 1,
            "insurance_value": 0.0,
        }


class TestShippingAddress:
    def test_boleto_needs_street_and_city(self):
        address = ShippingAddress(postal_code="01001000", city="São Paulo")

        assert not address.is_complete_for_boleto
        assert address.with_field("street", "Praça da Sé").is_complete_for_boleto

    def test_with_field_normalizes_postal_code(self):
        address = ShippingAddress().with_field("postal_code", "01001-000")

        assert address.postal_code == "01001000"
        assert address.masked_postal_code == "01001-000"

    def test_from_dict_falls_back(self):
        address = ShippingAddress.from_dict({"postal_code": 123, "city": " Recife "}, default_state="PE")

        assert address.postal_code == ""
        assert address.city == "Recife"
        assert address.state == "PE"

    def test_from_non_mapping(self):
        assert ShippingAddress.from_dict(None) == ShippingAddress()


class TestRecords:
    def test_rate_quote_needs_an_options_list(self):
        assert RateQuoteIn.read({"opcoes": "indisponível"}) is None
        assert RateQuoteIn.read({}) is None

        quote = RateQuoteIn.read({"opcoes": [None, 3, {"transportadora": "B", "preco": "9,50", "service": 4}]})

        assert quote is not None
        assert quote.to_domain() == [ShippingOption("B", Decimal("9.50"), service="4")]

    def test_address_slot_keeps_digits_only(self):
        slot = AddressSlot.read({"postal_code": " 01001-000 ", "street": ["x"], "number": " 10 "})

        assert slot is not None
        assert slot.postal_code == "01001000"
        assert slot.street == ""
        assert slot.to_domain(default_state="MG") == ShippingAddress(postal_code="01001000", number="10", state="MG")
