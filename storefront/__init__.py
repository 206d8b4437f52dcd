"""
storefront — order-fulfillment core for a direct-to-consumer shop.

    from storefront import inventory as Inv   # Stock and variants
    from storefront import catalog as Cat     # Pagination and facets
    from storefront import cart as Ct         # Cart lines and totals
    from storefront import shipping as Sh     # Postal codes and quotes
    from storefront import checkout as Co     # Checkout state machine

    async with Storefront.from_settings(Settings.from_env()) as shop:
        await shop.pager.load_first_page()
"""

from storefront import inventory
from storefront import storage
from storefront import catalog
from storefront import cart
from storefront import shipping
from storefront import checkout
from storefront._config import Settings
from storefront._app import Storefront
from storefront._errors import (
    StorefrontError,
    ValidationError,
    NetworkError,
    RequestTimeout,
    PaymentDeclined,
)
from storefront._types import (
    Result,
    Ok,
    Error,
    Money,
    ProductId,
    PLACEHOLDER,
)

__version__ = "0.1.0"

__all__ = (
    "inventory",
    "storage",
    "catalog",
    "cart",
    "shipping",
    "checkout",
    "Settings",
    "Storefront",
    "StorefrontError",
    "ValidationError",
    "NetworkError",
    "RequestTimeout",
    "PaymentDeclined",
    "Result",
    "Ok",
    "Error",
    "Money",
    "ProductId",
    "PLACEHOLDER",
)
