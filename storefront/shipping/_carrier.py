"""
Shipping-rate collaborator — package building and the HTTP rate API.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import timedelta
from typing import Protocol

import aiohttp
from combinators import lift as L
from kungfu import Result, Ok, Error

from storefront._errors import NetworkError, ValidationError, network_error
from storefront._http import JsonClient, error_message
from storefront.cart import CartLine
from storefront.shipping._postal import is_valid_postal_code, normalize_postal_code
from storefront.shipping._types import PackageItem, RateQuoteIn, ShippingOption

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Package Building
# ═══════════════════════════════════════════════════════════════════════════════


def build_package(
    lines: Iterable[CartLine],
    defaults: PackageItem | None = None,
) -> list[PackageItem]:
    """
    Fold the cart into one standard package.

    Products carry no dimensions, so every unit ships in the default box:
    quantity = Σ line quantity, at least 1.
    """
    base = defaults or PackageItem()
    total = sum(line.quantity for line in lines)
    return [replace(base, quantity=max(total, 1))]


# ═══════════════════════════════════════════════════════════════════════════════
# Rate Provider Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class RateProvider(Protocol):
    """
    Quotes shipping options for a destination and a list of packages.

    Expected failures come back as Error values; the resolver still bounds
    every call with its own deadline.
    """

    async def quote(
        self,
        postal_code: str,
        items: Sequence[PackageItem],
    ) -> Result[list[ShippingOption], NetworkError | ValidationError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP Rate Provider
# ═══════════════════════════════════════════════════════════════════════════════


def parse_options(payload: object) -> list[ShippingOption] | None:
    """`{"opcoes": [...]}` → options. None if the body has no option list."""
    quote = RateQuoteIn.read(payload)
    return quote.to_domain() if quote is not None else None


class HttpRateProvider:
    """
    POST {api_url}/frete

        request:  {"cep_destino": "01001000", "itens": [{width, height, ...}]}
        response: {"opcoes": [{"transportadora", "preco", "prazo_entrega_dias", ...}]}
        error:    {"error": "..."} or {"details": "..."}
    """

    def __init__(
        self,
        api_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: timedelta | None = None,
    ) -> None:
        self._url = f"{api_url.rstrip('/')}/frete"
        self._http = JsonClient(session, timeout=timeout)

    async def _post(self, body: dict[str, object]) -> list[ShippingOption]:
        response = await self._http.request("POST", self._url, json=body)
        if not response.ok:
            raise NetworkError(
                error_message(response, "error", "details"),
                status=response.status,
                code=response.error_body.code,
            )
        options = parse_options(response.payload)
        if options is None:
            raise NetworkError("Invalid shipping-rate response", status=response.status)
        return options

    async def quote(
        self,
        postal_code: str,
        items: Sequence[PackageItem],
    ) -> Result[list[ShippingOption], NetworkError | ValidationError]:
        if not is_valid_postal_code(postal_code):
            return Error(ValidationError("Invalid postal code. Enter 8 digits.", field="postal_code"))
        if not items:
            return Error(ValidationError("No items to quote.", field="items"))

        body: dict[str, object] = {
            "cep_destino": normalize_postal_code(postal_code),
            "itens": [item.to_dict() for item in items],
        }
        match await L.catching_async(lambda: self._post(body), on_error=network_error):
            case Ok(options):
                logger.info("Quoted %d shipping options for %s", len(options), body["cep_destino"])
                return Ok(options)
            case Error(e):
                logger.warning("Shipping quote for %s failed: %s", body["cep_destino"], e)
                return Error(e)

    @property
    def closed(self) -> bool:
        return self._http.closed

    async def close(self) -> None:
        await self._http.close()


__all__ = (
    "build_package",
    "RateProvider",
    "parse_options",
    "HttpRateProvider",
)
