"""
CartAggregator — owned cart state with serialize-on-write persistence.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from kungfu import Error

from storefront._records import optional_label
from storefront._types import Money, ProductId
from storefront.cart._types import CartLine
from storefront.inventory import Product
from storefront.storage import KeyValueStorage, dump_json, load_json

logger = logging.getLogger(__name__)

DEFAULT_CART_KEY = "storefront:cart"


class CartAggregator:
    """
    Cart lines, derived totals and the cart-view flag.

    Persistence:
        - read once, on construction; corrupt data is an empty cart
        - every mutation writes the full line list before returning

    Derived values (total, count) are recomputed on every read.

    Example:
        cart = CartAggregator(FileStorage("~/.storefront"))
        cart.add_line(product, size="M", color="Azul", max_quantity=3)
        cart.total   # Decimal("99.90")
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = DEFAULT_CART_KEY) -> None:
        self._storage = storage
        self._key = key
        self._lines: list[CartLine] = self._restore()
        self._is_open = False

    def _restore(self) -> list[CartLine]:
        data = load_json(self._storage, self._key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Discarding cart slot %r: not a list", self._key)
            return []
        lines = [line for line in map(CartLine.from_dict, data) if line is not None]
        if len(lines) != len(data):
            logger.warning("Dropped %d unreadable cart lines", len(data) - len(lines))
        return lines

    def _persist(self) -> None:
        match dump_json(self._storage, self._key, [line.to_dict() for line in self._lines]):
            case Error(e):
                logger.warning("Cart not persisted: %s", e.message)
            case _:
                pass

    # ───────────────────────────────────────────────────────────────────────────
    # Views
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    def snapshot(self) -> tuple[CartLine, ...]:
        """Immutable copy of the lines, for checkout payloads."""
        return tuple(self._lines)

    @property
    def total(self) -> Money:
        """Σ price × quantity."""
        return sum((line.subtotal for line in self._lines), Decimal(0))

    @property
    def count(self) -> int:
        """Σ quantity."""
        return sum(line.quantity for line in self._lines)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        self._is_open = True

    def close(self) -> None:
        self._is_open = False

    # ───────────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────────

    def add_line(
        self,
        product: Product,
        size: str | None = None,
        color: str | None = None,
        max_quantity: int | None = None,
    ) -> CartLine | None:
        """
        Add one unit of (product, size, color). Opens the cart.

        An existing line grows by one unless it already reached max_quantity,
        in which case it is silently left as is. A new line is refused when
        max_quantity is 0. Returns the resulting line, or None if refused.
        """
        size, color = optional_label(size), optional_label(color)
        key = (product.id, size, color)
        self._is_open = True

        for index, line in enumerate(self._lines):
            if line.key != key:
                continue
            if max_quantity is not None and line.quantity >= max_quantity:
                logger.debug("Cart line %s at stock limit %d", key, max_quantity)
                return line
            updated = line.with_quantity(line.quantity + 1)
            self._lines[index] = updated
            self._persist()
            return updated

        if max_quantity is not None and max_quantity < 1:
            logger.debug("Refusing cart line %s: out of stock", key)
            return None

        line = CartLine(
            product_id=product.id,
            name=product.name,
            price=product.price,
            image=product.image,
            size=size,
            color=color,
        )
        self._lines.append(line)
        self._persist()
        return line

    def remove_line(self, product_id: ProductId) -> int:
        """Remove every line of a product. Returns how many were removed."""
        before = len(self._lines)
        self._lines = [line for line in self._lines if line.product_id != product_id]
        removed = before - len(self._lines)
        if removed:
            self._persist()
        return removed

    def set_quantity(self, product_id: ProductId, delta: int) -> None:
        """Add delta to the product's lines, floored at 1. Never removes."""
        changed = False
        for index, line in enumerate(self._lines):
            if line.product_id == product_id:
                updated = line.with_quantity(line.quantity + delta)
                changed = changed or updated != line
                self._lines[index] = updated
        if changed:
            self._persist()

    def clear(self) -> None:
        self._lines = []
        self._persist()


__all__ = (
    "DEFAULT_CART_KEY",
    "CartAggregator",
)
