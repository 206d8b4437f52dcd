"""
Shipping — postal codes, address, carrier quotes and the rate resolver.

    from storefront import shipping as Sh

    Sh.normalize_postal_code("01001-000")     # "01001000"
    Sh.mask_postal_code("01001000")           # "01001-000"

    resolver = Sh.ShippingRateResolver(Sh.HttpRateProvider(api_url))
    resolver.update("01001000", cart.lines)   # debounced, 400 ms
    await resolver.settle()
    resolver.select(resolver.options[0])

    book = Sh.AddressBook(storage, lookup=Sh.ViaCepLookup())
    book.update(postal_code="01001000")
    book.enrich_on_blur()

Resolver states:

    IDLE → DEBOUNCING → FETCHING → READY | FAILED

Any change to (postal code, item count) clears the selection immediately.
"""

from storefront.shipping._postal import (
    POSTAL_CODE_LENGTH,
    normalize_postal_code,
    is_valid_postal_code,
    mask_postal_code,
)
from storefront.shipping._types import (
    ShippingOption,
    RateOptionIn,
    RateQuoteIn,
    PackageItem,
    DEFAULT_STATE,
    ShippingAddress,
    AddressSlot,
    AddressHint,
)
from storefront.shipping._debounce import (
    Effect,
    CancelableTimer,
)
from storefront.shipping._carrier import (
    build_package,
    RateProvider,
    parse_options,
    HttpRateProvider,
)
from storefront.shipping._address import (
    DEFAULT_ADDRESS_KEY,
    DEFAULT_LOOKUP_URL,
    AddressLookup,
    ViaCepIn,
    ViaCepLookup,
    AddressBook,
)
from storefront.shipping._resolver import (
    DEFAULT_DEBOUNCE,
    DEFAULT_REQUEST_TIMEOUT,
    QuoteState,
    QuoteKey,
    ShippingRateResolver,
)

__all__ = (
    # Postal codes
    "POSTAL_CODE_LENGTH",
    "normalize_postal_code",
    "is_valid_postal_code",
    "mask_postal_code",
    # Types
    "ShippingOption",
    "RateOptionIn",
    "RateQuoteIn",
    "PackageItem",
    "DEFAULT_STATE",
    "ShippingAddress",
    "AddressSlot",
    "AddressHint",
    # Debounce
    "Effect",
    "CancelableTimer",
    # Carrier
    "build_package",
    "RateProvider",
    "parse_options",
    "HttpRateProvider",
    # Address
    "DEFAULT_ADDRESS_KEY",
    "DEFAULT_LOOKUP_URL",
    "AddressLookup",
    "ViaCepIn",
    "ViaCepLookup",
    "AddressBook",
    # Resolver
    "DEFAULT_DEBOUNCE",
    "DEFAULT_REQUEST_TIMEOUT",
    "QuoteState",
    "QuoteKey",
    "ShippingRateResolver",
)
