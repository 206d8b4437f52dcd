"""
ShippingRateResolver — debounced, stale-safe shipping quotes.

State machine:

    IDLE ──(8-digit code, new key)──► DEBOUNCING ──(400 ms quiet)──► FETCHING
      ▲                                   │                              │
      └────────(invalid code)─────────────┘                  ┌───────────┴──────────┐
                                                             ▼                      ▼
                                                           READY                 FAILED

The quote key is (postal code, item count). A response is applied only if
its key still equals the current key when it arrives.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, auto

from combinators import lift as L, timeout, TimeoutError as DeadlineExceeded
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront._errors import StorefrontError, network_error, timeout_error
from storefront.cart import CartLine
from storefront.shipping._carrier import RateProvider, build_package
from storefront.shipping._debounce import CancelableTimer
from storefront.shipping._postal import POSTAL_CODE_LENGTH, normalize_postal_code
from storefront.shipping._types import PackageItem, ShippingOption

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = timedelta(milliseconds=400)
DEFAULT_REQUEST_TIMEOUT = timedelta(seconds=15)


# ═══════════════════════════════════════════════════════════════════════════════
# State
# ═══════════════════════════════════════════════════════════════════════════════


class QuoteState(Enum):
    IDLE = auto()
    DEBOUNCING = auto()
    FETCHING = auto()
    READY = auto()
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class QuoteKey:
    """Inputs a quote depends on. Any change makes a quote stale."""

    postal_code: str
    item_count: int

    @property
    def quotable(self) -> bool:
        return len(self.postal_code) == POSTAL_CODE_LENGTH and self.item_count > 0


# ═══════════════════════════════════════════════════════════════════════════════
# Resolver
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingRateResolver:
    """
    Quotes and the shopper's selection for the current (postal code, cart).

    update() is synchronous and cheap: call it on every keystroke and every
    cart change. It never carries a selection across a key change.

    Example:
        resolver = ShippingRateResolver(HttpRateProvider(api_url))
        resolver.update("01001-000", cart.lines)
        await resolver.settle()
        resolver.select(resolver.options[0])
    """

    def __init__(
        self,
        provider: RateProvider,
        *,
        debounce: timedelta = DEFAULT_DEBOUNCE,
        request_timeout: timedelta = DEFAULT_REQUEST_TIMEOUT,
        package_defaults: PackageItem | None = None,
    ) -> None:
        self._provider = provider
        self._debounce = debounce
        self._request_timeout = request_timeout
        self._package_defaults = package_defaults
        self._timer = CancelableTimer()

        self._state = QuoteState.IDLE
        self._key = QuoteKey("", 0)
        self._items: list[PackageItem] = []
        self._options: tuple[ShippingOption, ...] = ()
        self._selected: ShippingOption | None = None
        self._error: StorefrontError | None = None

        # Last successfully quoted key and its options.
        self._quoted_key: QuoteKey | None = None
        self._quoted_options: tuple[ShippingOption, ...] = ()
        self._fetches = 0

    # ───────────────────────────────────────────────────────────────────────────
    # Views
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> QuoteState:
        return self._state

    @property
    def key(self) -> QuoteKey:
        return self._key

    @property
    def options(self) -> tuple[ShippingOption, ...]:
        return self._options

    @property
    def selected(self) -> ShippingOption | None:
        return self._selected

    @property
    def error(self) -> StorefrontError | None:
        return self._error

    @property
    def is_fetching(self) -> bool:
        return self._state is QuoteState.FETCHING

    @property
    def fetch_count(self) -> int:
        """Fetches actually started."""
        return self._fetches

    # ───────────────────────────────────────────────────────────────────────────
    # Input
    # ───────────────────────────────────────────────────────────────────────────

    def update(self, postal_code: str | None, lines: Iterable[CartLine]) -> QuoteState:
        """
        Feed the current postal code and cart.

        Unchanged key: nothing happens. Changed key: the selection is
        cleared at once, then the resolver goes idle, restores the last
        quote, or arms the debounce timer.
        """
        lines = list(lines)
        key = QuoteKey(normalize_postal_code(postal_code), sum(line.quantity for line in lines))
        if key == self._key:
            return self._state

        self._key = key
        self._timer.cancel()
        if self._selected is not None:
            logger.debug("Shipping selection cleared: quote inputs changed")
        self._selected = None
        self._options = ()
        self._error = None

        if not key.quotable:
            self._state = QuoteState.IDLE
            return self._state

        if key == self._quoted_key:
            self._options = self._quoted_options
            self._state = QuoteState.READY
            return self._state

        self._items = build_package(lines, self._package_defaults)
        self._state = QuoteState.DEBOUNCING
        self._timer.start(self._debounce, lambda: self._fetch(key, list(self._items)))
        return self._state

    def retry(self) -> bool:
        """Refetch the current key after a failure, without debounce."""
        if self._state is not QuoteState.FAILED or not self._key.quotable:
            return False
        key = self._key
        self._error = None
        self._state = QuoteState.DEBOUNCING
        self._timer.start(0, lambda: self._fetch(key, list(self._items)))
        return True

    def select(self, option: ShippingOption) -> bool:
        """Select one of the current options, matched by (carrier, price)."""
        if self._state is not QuoteState.READY:
            return False
        for candidate in self._options:
            if candidate.selection_key == option.selection_key:
                self._selected = candidate
                return True
        return False

    async def settle(self) -> None:
        """Wait for any pending debounce and fetch to finish."""
        await self._timer.join()

    # ───────────────────────────────────────────────────────────────────────────
    # Fetch
    # ───────────────────────────────────────────────────────────────────────────

    async def _quote(
        self, key: QuoteKey, items: Sequence[PackageItem]
    ) -> Result[list[ShippingOption], StorefrontError]:
        """The provider call, with anything it raises lifted into a NetworkError."""
        match await L.catching_async(
            lambda: self._provider.quote(key.postal_code, items), on_error=network_error
        ):
            case Ok(result):
                return result
            case Error(e):
                return Error(e)

    async def _fetch(self, key: QuoteKey, items: Sequence[PackageItem]) -> None:
        if key != self._key:
            return
        self._state = QuoteState.FETCHING
        self._fetches += 1
        seconds = self._request_timeout.total_seconds()
        logger.debug("Fetching shipping quote for %s (%d items)", key.postal_code, key.item_count)

        result = await timeout(LazyCoroResult(lambda: self._quote(key, items)), seconds=seconds)

        if key != self._key:
            logger.debug("Discarding stale shipping quote for %s", key.postal_code)
            return

        match result:
            case Ok(options):
                self._options = tuple(options)
                self._quoted_key = key
                self._quoted_options = self._options
                self._state = QuoteState.READY
            case Error(DeadlineExceeded()):
                self._error = timeout_error(seconds)
                self._state = QuoteState.FAILED
                logger.warning("Shipping quote for %s timed out after %ss", key.postal_code, seconds)
            case Error(e):
                self._error = e
                self._state = QuoteState.FAILED
                logger.warning("Shipping quote for %s failed: %s", key.postal_code, e)


__all__ = (
    "DEFAULT_DEBOUNCE",
    "DEFAULT_REQUEST_TIMEOUT",
    "QuoteState",
    "QuoteKey",
    "ShippingRateResolver",
)
