"""
Storefront — wires every component from Settings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import aiohttp

from storefront._config import Settings
from storefront.cart import CartAggregator
from storefront.catalog import CatalogPager, CatalogStore, RealtimeDatabaseStore
from storefront.checkout import (
    CheckoutOrchestrator,
    HttpPaymentGateway,
    PaymentGateway,
    PaymentReceipt,
)
from storefront.shipping import (
    AddressBook,
    AddressLookup,
    HttpRateProvider,
    RateProvider,
    ShippingRateResolver,
    ViaCepLookup,
)
from storefront.storage import FileStorage, KeyValueStorage, MemoryStorage

logger = logging.getLogger(__name__)

type HttpAdapter = RealtimeDatabaseStore | HttpRateProvider | ViaCepLookup | HttpPaymentGateway


@dataclass(frozen=True, slots=True)
class Storefront:
    """
    One shopper's storefront: catalog, cart, address, shipping, checkout.

    adapters: the HTTP collaborators built here. close() releases the
    sessions they own; collaborators passed in are left to the caller.

    Example:
        async with Storefront.from_settings(Settings.from_env()) as shop:
            await shop.pager.load_first_page()
    """

    settings: Settings
    storage: KeyValueStorage
    catalog: CatalogStore
    pager: CatalogPager
    cart: CartAggregator
    address_book: AddressBook
    resolver: ShippingRateResolver
    checkout: CheckoutOrchestrator
    adapters: tuple[HttpAdapter, ...] = ()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        storage: KeyValueStorage | None = None,
        session: aiohttp.ClientSession | None = None,
        catalog: CatalogStore | None = None,
        rates: RateProvider | None = None,
        lookup: AddressLookup | None = None,
        gateway: PaymentGateway | None = None,
        on_confirmed: Callable[[PaymentReceipt], object] | None = None,
    ) -> Storefront:
        """
        Build with HTTP collaborators from settings, unless given explicitly.

        Raises ValueError when an HTTP collaborator is needed but its URL is
        not configured.
        """
        if storage is None:
            storage = FileStorage(settings.storage_dir) if settings.storage_dir else MemoryStorage()

        timeout = settings.request_timeout
        adapters: list[HttpAdapter] = []
        if catalog is None:
            if not settings.catalog_url:
                raise ValueError("catalog_url is not configured")
            store = RealtimeDatabaseStore(settings.catalog_url, session=session, timeout=timeout)
            adapters.append(store)
            catalog = store
        if rates is None or gateway is None:
            if not settings.api_url:
                raise ValueError("api_url is not configured")
            if rates is None:
                provider = HttpRateProvider(settings.api_url, session=session, timeout=timeout)
                adapters.append(provider)
                rates = provider
            if gateway is None:
                http_gateway = HttpPaymentGateway(settings.api_url, session=session, timeout=timeout)
                adapters.append(http_gateway)
                gateway = http_gateway
        if lookup is None:
            via_cep = ViaCepLookup(settings.address_lookup_url, session=session, timeout=timeout)
            adapters.append(via_cep)
            lookup = via_cep

        cart = CartAggregator(storage, key=settings.cart_key)
        address_book = AddressBook(
            storage,
            key=settings.address_key,
            default_state=settings.default_state,
            lookup=lookup,
        )
        resolver = ShippingRateResolver(
            rates,
            debounce=settings.debounce,
            request_timeout=settings.request_timeout,
        )
        return cls(
            settings=settings,
            storage=storage,
            catalog=catalog,
            pager=CatalogPager(catalog, page_size=settings.page_size),
            cart=cart,
            address_book=address_book,
            resolver=resolver,
            checkout=CheckoutOrchestrator(
                cart,
                address_book,
                resolver,
                gateway,
                confirmation_delay=settings.confirmation_delay,
                on_confirmed=on_confirmed,
            ),
            adapters=tuple(adapters),
        )

    async def close(self) -> None:
        """Close the HTTP sessions owned by the adapters built here."""
        for adapter in self.adapters:
            await adapter.close()
        logger.debug("Storefront closed %d adapter(s)", len(self.adapters))

    async def __aenter__(self) -> Storefront:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


__all__ = ("Storefront", "HttpAdapter")
