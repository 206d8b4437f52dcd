"""
Shipping types — options, packages, addresses.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator

from storefront._records import (
    Amount,
    Label,
    OptionalCount,
    OptionalStr,
    RecordModel,
    Text,
    objects,
    strip_text,
)
from storefront._types import Money
from storefront.shipping._postal import mask_postal_code, normalize_postal_code


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping Option
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingOption:
    """
    One carrier quote.

    Selection identity is (carrier, price); the rate API does not guarantee
    an id. estimated_days None means "unknown".
    """

    carrier: str
    price: Money
    estimated_days: int | None = None
    service: str | None = None
    option_id: str | None = None

    @property
    def selection_key(self) -> tuple[str, Money]:
        return self.carrier, self.price

    @property
    def selection_id(self) -> str:
        """Display id: "{carrier}-{price}"."""
        return f"{self.carrier}-{self.price}"

    @property
    def carrier_reference(self) -> str:
        """What the payment API gets as the shipping service."""
        return self.service or self.option_id or self.carrier

    @classmethod
    def from_dict(cls, data: object) -> ShippingOption | None:
        """Parse one entry of `opcoes`. None if it is not an object."""
        record = RateOptionIn.read(data)
        return record.to_domain() if record is not None else None


class RateOptionIn(RecordModel):
    """One entry of a rate response's `opcoes`."""

    transportadora: Label = ""
    preco: Amount = Decimal(0)
    prazo_entrega_dias: OptionalCount = None
    service: OptionalStr = None
    id: OptionalStr = None

    def to_domain(self) -> ShippingOption:
        return ShippingOption(
            carrier=self.transportadora,
            price=self.preco,
            estimated_days=self.prazo_entrega_dias,
            service=self.service,
            option_id=self.id,
        )


class RateQuoteIn(RecordModel):
    """`{"opcoes": [...]}`. Entries that are not objects are dropped."""

    opcoes: Annotated[list[RateOptionIn], BeforeValidator(objects)]

    def to_domain(self) -> list[ShippingOption]:
        return [option.to_domain() for option in self.opcoes]


# ═══════════════════════════════════════════════════════════════════════════════
# Package
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PackageItem:
    """
    One package in a rate request. Centimeters, kilograms.

    Defaults describe the store's standard box.
    """

    width: float = 16
    height: float = 12
    length: float = 20
    weight: float = 0.5
    quantity: int = 1
    insurance_value: Money = Decimal(0)

    def to_dict(self) -> dict[str, object]:
        return {
            "width": self.width,
            "height": self.height,
            "length": self.length,
            "weight": self.weight,
            "quantity": self.quantity,
            "insurance_value": float(self.insurance_value),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Address
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_STATE = "SP"


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    """
    Delivery address.

    Only postal_code is needed for a quote; the rest may be filled by an
    address lookup and edited afterwards.
    """

    postal_code: str = ""
    street: str = ""
    number: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = DEFAULT_STATE
    complement: str = ""

    @property
    def masked_postal_code(self) -> str:
        return mask_postal_code(self.postal_code)

    @property
    def is_complete_for_boleto(self) -> bool:
        """Boleto needs a valid code plus street and city."""
        return (
            len(normalize_postal_code(self.postal_code)) == 8
            and bool(self.street.strip())
            and bool(self.city.strip())
        )

    def with_field(self, name: str, value: str) -> ShippingAddress:
        if name == "postal_code":
            value = normalize_postal_code(value)
        return replace(self, **{name: value})

    def to_dict(self) -> dict[str, str]:
        return AddressSlot.from_domain(self).model_dump()

    @classmethod
    def from_dict(cls, data: object, *, default_state: str = DEFAULT_STATE) -> ShippingAddress:
        """Missing or malformed fields fall back to the empty address."""
        slot = AddressSlot.read(data)
        if slot is None:
            return cls(state=default_state)
        return slot.to_domain(default_state=default_state)


def _postal_digits(value: object) -> str:
    return normalize_postal_code(strip_text(value))


class AddressSlot(RecordModel):
    """The persisted address slot. Non-string fields read as empty."""

    postal_code: Annotated[str, BeforeValidator(_postal_digits)] = ""
    street: Text = ""
    number: Text = ""
    neighborhood: Text = ""
    city: Text = ""
    state: Text = ""
    complement: Text = ""

    @classmethod
    def from_domain(cls, address: ShippingAddress) -> AddressSlot:
        return cls(
            postal_code=address.postal_code,
            street=address.street,
            number=address.number,
            neighborhood=address.neighborhood,
            city=address.city,
            state=address.state,
            complement=address.complement,
        )

    def to_domain(self, *, default_state: str = DEFAULT_STATE) -> ShippingAddress:
        return ShippingAddress(
            postal_code=self.postal_code,
            street=self.street,
            number=self.number,
            neighborhood=self.neighborhood,
            city=self.city,
            state=self.state or default_state,
            complement=self.complement,
        )


@dataclass(frozen=True, slots=True)
class AddressHint:
    """What an address lookup knows about a postal code."""

    postal_code: str
    street: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    complement: str = ""


__all__ = (
    "ShippingOption",
    "RateOptionIn",
    "RateQuoteIn",
    "PackageItem",
    "DEFAULT_STATE",
    "ShippingAddress",
    "AddressSlot",
    "AddressHint",
)
