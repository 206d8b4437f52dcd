"""
CatalogPager — cursor pagination over a key-ordered store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from kungfu import Result, Ok, Error

from storefront._errors import NetworkError
from storefront.catalog._store import CatalogStore
from storefront.inventory import Product, parse_product

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 40


def _parse_page(page: Mapping[str, object]) -> list[Product]:
    products: list[Product] = []
    for key in sorted(page):
        product = parse_product(key, page[key])
        if product is not None:
            products.append(product)
    return products


# ═══════════════════════════════════════════════════════════════════════════════
# Pager
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogPager:
    """
    Loaded window of the catalog plus the cursor to continue it.

    Invariants:
        - at most one page request in flight; the flag is checked and set
          before the first await
        - no product id appears twice in the window
        - cursor is the last key of the last page actually returned
        - has_more is False once a page comes back shorter than page_size

    Example:
        pager = CatalogPager(store)
        await pager.load_first_page(40)
        while should_keep_paging(pager):
            await pager.load_next_page()
    """

    def __init__(self, store: CatalogStore, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._store = store
        self._page_size = page_size
        self._products: list[Product] = []
        self._ids: set[int] = set()
        self._cursor: str | None = None
        self._has_more = True
        self._loading = False
        self._error: NetworkError | None = None
        # Bumped by load_first_page; older in-flight pages are discarded.
        self._generation = 0

    # ───────────────────────────────────────────────────────────────────────────
    # Views
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def products(self) -> tuple[Product, ...]:
        return tuple(self._products)

    @property
    def cursor(self) -> str | None:
        return self._cursor

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> NetworkError | None:
        return self._error

    @property
    def page_size(self) -> int:
        return self._page_size

    # ───────────────────────────────────────────────────────────────────────────
    # Loading
    # ───────────────────────────────────────────────────────────────────────────

    def _reset(self) -> None:
        self._products = []
        self._ids = set()
        self._cursor = None

    def _append(self, products: list[Product]) -> list[Product]:
        fresh: list[Product] = []
        for product in products:
            if product.id in self._ids:
                continue
            self._ids.add(product.id)
            fresh.append(product)
        self._products.extend(fresh)
        return fresh

    async def load_first_page(self, page_size: int | None = None) -> Result[list[Product], NetworkError]:
        """
        Replace the window with the first page.

        Supersedes any page already in flight.
        """
        if page_size is not None:
            self._page_size = page_size
        self._generation += 1
        generation = self._generation
        self._loading = True
        self._error = None
        size = self._page_size

        try:
            result = await self._store.first(size)
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            logger.debug("Discarding superseded first page")
            return Ok([])

        match result:
            case Ok(page):
                self._reset()
                loaded = self._append(_parse_page(page))
                self._cursor = max(page, default=None)
                self._has_more = len(page) >= size
                logger.info("Loaded first catalog page: %d products", len(loaded))
                return Ok(loaded)
            case Error(e):
                self._reset()
                self._has_more = False
                self._error = e
                logger.warning("First catalog page failed: %s", e)
                return Error(e)

    async def load_next_page(self) -> Result[list[Product], NetworkError]:
        """
        Append the page after the cursor.

        No-op (Ok([])) when exhausted or while a load is in flight.
        """
        if self._loading or not self._has_more:
            return Ok([])
        if self._cursor is None:
            return await self.load_first_page()

        self._loading = True
        generation = self._generation
        cursor = self._cursor
        size = self._page_size

        try:
            result = await self._store.after(cursor, size)
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            logger.debug("Discarding catalog page after %r: window was reloaded", cursor)
            return Ok([])

        match result:
            case Ok(page):
                self._error = None
                loaded = self._append(_parse_page(page))
                if page:
                    self._cursor = max(page)
                self._has_more = len(page) >= size
                logger.info("Loaded catalog page after %r: %d new products", cursor, len(loaded))
                return Ok(loaded)
            case Error(e):
                self._error = e
                logger.warning("Catalog page after %r failed: %s", cursor, e)
                return Error(e)


__all__ = (
    "DEFAULT_PAGE_SIZE",
    "CatalogPager",
)
