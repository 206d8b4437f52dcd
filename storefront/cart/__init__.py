"""
Cart — line items, totals and persistence.

    from storefront import cart as Ct

    cart = Ct.CartAggregator(MemoryStorage())
    cart.add_line(product, size="M", color="Azul", max_quantity=3)
    cart.set_quantity(product.id, -1)     # floored at 1
    cart.remove_line(product.id)          # every line of the product
    cart.total, cart.count                # recomputed on every read
"""

from storefront.cart._types import CartLine, CartLineSlot
from storefront.cart._cart import (
    DEFAULT_CART_KEY,
    CartAggregator,
)

__all__ = (
    "CartLine",
    "CartLineSlot",
    "DEFAULT_CART_KEY",
    "CartAggregator",
)
