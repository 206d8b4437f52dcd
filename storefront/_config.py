"""
Settings — storefront configuration.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path


# ═══════════════════════════════════════════════════════════════════════════════
# Settings — Full Configuration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Storefront configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        settings = (
            Settings()
            .with_api_url("https://api.example.com")
            .with_debounce(milliseconds=400)
            .with_request_timeout(seconds=15)
        )

    Note: Immutable — each method returns new Settings.
    """

    api_url: str | None = None
    catalog_url: str | None = None
    address_lookup_url: str = "https://viacep.com.br/ws"
    page_size: int = 40
    debounce: timedelta = timedelta(milliseconds=400)
    request_timeout: timedelta = timedelta(seconds=15)
    confirmation_delay: timedelta = timedelta(seconds=3)
    cart_key: str = "storefront:cart"
    address_key: str = "storefront:address"
    default_state: str = "SP"
    storage_dir: Path | None = None

    def with_api_url(self, url: str | None) -> Settings:
        """Base URL of the shipping-rate and payment API (`/frete`, `/pagamento`)."""
        return replace(self, api_url=url.rstrip("/") if url else None)

    def with_catalog_url(self, url: str | None) -> Settings:
        """Base URL of the key-ordered catalog store."""
        return replace(self, catalog_url=url.rstrip("/") if url else None)

    def with_page_size(self, size: int) -> Settings:
        if size < 1:
            raise ValueError("page_size must be positive")
        return replace(self, page_size=size)

    def with_debounce(
        self,
        *,
        milliseconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Settings:
        """
        Postal-code inactivity window before a rate fetch may start.

        Example:
            .with_debounce(milliseconds=400)
        """
        value = delta if delta is not None else timedelta(milliseconds=0 if milliseconds is None else milliseconds)
        return replace(self, debounce=value)

    def with_request_timeout(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Settings:
        value = delta if delta is not None else timedelta(seconds=15 if seconds is None else seconds)
        return replace(self, request_timeout=value)

    def with_confirmation_delay(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Settings:
        """Delay between a successful payment and the confirmation hand-off."""
        value = delta if delta is not None else timedelta(seconds=0 if seconds is None else seconds)
        return replace(self, confirmation_delay=value)

    def with_storage_dir(self, path: str | Path | None) -> Settings:
        return replace(self, storage_dir=Path(path) if path is not None else None)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Build settings from STOREFRONT_* variables.

        Malformed numbers keep the default.
        """
        env = os.environ if environ is None else environ
        settings = cls()

        settings = settings.with_api_url(env.get("STOREFRONT_API_URL"))
        settings = settings.with_catalog_url(env.get("STOREFRONT_CATALOG_URL"))

        if lookup := env.get("STOREFRONT_ADDRESS_LOOKUP_URL"):
            settings = replace(settings, address_lookup_url=lookup.rstrip("/"))

        page_size = env.get("STOREFRONT_PAGE_SIZE", "")
        if page_size.isdigit() and int(page_size) > 0:
            settings = settings.with_page_size(int(page_size))

        if storage_dir := env.get("STOREFRONT_STORAGE_DIR"):
            settings = settings.with_storage_dir(storage_dir)

        return settings


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("Settings",)
