"""
Cart types.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator, field_serializer

from storefront._records import (
    Amount,
    Count,
    Label,
    OptionalLabel,
    RecordModel,
    to_product_id,
)
from storefront._types import Money, ProductId


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One product variant in the cart.

    name/price/image are snapshots taken when the line was added; later
    catalog price changes do not reach the cart.

    Identity: (product_id, size, color).
    """

    product_id: ProductId
    name: str
    price: Money
    image: str = ""
    size: str | None = None
    color: str | None = None
    quantity: int = 1

    @property
    def key(self) -> tuple[ProductId, str | None, str | None]:
        return self.product_id, self.size, self.color

    @property
    def subtotal(self) -> Money:
        return self.price * self.quantity

    def with_quantity(self, quantity: int) -> CartLine:
        return replace(self, quantity=max(quantity, 1))

    def to_dict(self) -> dict[str, object]:
        return CartLineSlot.from_domain(self).model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: object) -> CartLine | None:
        """Rebuild a persisted line. None if it has no usable product id."""
        slot = CartLineSlot.read(data)
        return slot.to_domain() if slot is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# Persisted Slot
# ═══════════════════════════════════════════════════════════════════════════════


def _image(value: object) -> str:
    return str(value) if value else ""


class CartLineSlot(RecordModel):
    """
    One line as stored in the cart slot.

        {"id": 7, "name": "...", "price": "59.90", "image": "...",
         "size": "M", "color": "Azul", "quantity": 2}
    """

    id: Annotated[int | None, BeforeValidator(to_product_id)] = None
    name: Label = ""
    price: Amount = Decimal(0)
    image: Annotated[str, BeforeValidator(_image)] = ""
    size: OptionalLabel = None
    color: OptionalLabel = None
    quantity: Count = 1

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> str:
        return str(price)

    @classmethod
    def from_domain(cls, line: CartLine) -> CartLineSlot:
        return cls(
            id=line.product_id,
            name=line.name,
            price=line.price,
            image=line.image,
            size=line.size,
            color=line.color,
            quantity=line.quantity,
        )

    def to_domain(self) -> CartLine | None:
        if self.id is None:
            return None
        return CartLine(
            product_id=self.id,
            name=self.name,
            price=self.price,
            image=self.image,
            size=self.size,
            color=self.color,
            quantity=max(self.quantity, 1),
        )


__all__ = ("CartLine", "CartLineSlot")
