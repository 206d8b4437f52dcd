"""
Catalog store — key-ordered product records.

CatalogStore[...] reads pages by key. All methods return Result for
explicit error handling, like every remote collaborator here.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Protocol

import aiohttp
from combinators import lift as L
from kungfu import Result, Ok, Error

from storefront._errors import NetworkError, network_error
from storefront._http import JsonClient, error_message
from storefront._types import ProductId
from storefront.inventory import Product, parse_product

logger = logging.getLogger(__name__)

type Page = dict[str, object]
"""Raw records keyed by stringified product id, in ascending key order."""


def _ordered(records: Mapping[str, object]) -> Page:
    return {key: records[key] for key in sorted(records)}


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogStore(Protocol):
    """
    Key-ordered catalog.

    Keys compare as strings: "10" sorts before "9". Callers must not assume
    numeric id order once ids differ in digit count.
    """

    async def first(self, limit: int) -> Result[Page, NetworkError]:
        """The first `limit` records in key order."""
        ...

    async def after(self, key: str, limit: int) -> Result[Page, NetworkError]:
        """Up to `limit` records whose key is strictly greater than `key`."""
        ...

    async def get(self, product_id: ProductId) -> Result[Product | None, NetworkError]:
        """One product by id. Ok(None) if there is no such record."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCatalogStore:
    """
    In-memory catalog.

    Note: `requests` counts calls to first()/after()/get(), for assertions.
    """

    def __init__(self, records: Mapping[str, object] | None = None) -> None:
        self._records: dict[str, object] = dict(records or {})
        self.requests = 0

    def put(self, key: str, record: object) -> None:
        self._records[key] = record

    async def first(self, limit: int) -> Result[Page, NetworkError]:
        self.requests += 1
        keys = sorted(self._records)[:limit]
        return Ok({key: self._records[key] for key in keys})

    async def after(self, key: str, limit: int) -> Result[Page, NetworkError]:
        self.requests += 1
        keys = [k for k in sorted(self._records) if k > key][:limit]
        return Ok({k: self._records[k] for k in keys})

    async def get(self, product_id: ProductId) -> Result[Product | None, NetworkError]:
        self.requests += 1
        key = str(product_id)
        record = self._records.get(key)
        return Ok(parse_product(key, record) if record is not None else None)


# ═══════════════════════════════════════════════════════════════════════════════
# Realtime Database REST Store
# ═══════════════════════════════════════════════════════════════════════════════


class RealtimeDatabaseStore:
    """
    Catalog backed by a Realtime Database REST endpoint.

    GET {base_url}/{path}.json?orderBy="$key"&limitToFirst=N
    GET {base_url}/{path}.json?orderBy="$key"&startAt="K"&limitToFirst=N+1
    GET {base_url}/{path}/{id}.json                 (null when absent)

    startAt is inclusive, so the boundary record is requested once more and
    dropped here.
    """

    def __init__(
        self,
        base_url: str,
        path: str = "products",
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: timedelta | None = None,
    ) -> None:
        self._root = f"{base_url.rstrip('/')}/{path.strip('/')}"
        self._url = f"{self._root}.json"
        self._http = JsonClient(session, timeout=timeout)

    async def _fetch(self, params: dict[str, str]) -> Page:
        response = await self._http.request("GET", self._url, params=params)
        if not response.ok:
            raise NetworkError(
                error_message(response, "error"),
                status=response.status,
            )
        if response.payload is None:
            return {}
        if not isinstance(response.payload, Mapping):
            raise NetworkError("Unexpected catalog response", status=response.status)
        return _ordered({str(k): v for k, v in response.payload.items()})

    async def first(self, limit: int) -> Result[Page, NetworkError]:
        params = {"orderBy": json.dumps("$key"), "limitToFirst": str(limit)}
        return await L.catching_async(lambda: self._fetch(params), on_error=network_error)

    async def after(self, key: str, limit: int) -> Result[Page, NetworkError]:
        params = {
            "orderBy": json.dumps("$key"),
            "startAt": json.dumps(key),
            "limitToFirst": str(limit + 1),
        }
        match await L.catching_async(lambda: self._fetch(params), on_error=network_error):
            case Ok(page):
                page.pop(key, None)
                return Ok(dict(list(page.items())[:limit]))
            case Error(e):
                logger.warning("Catalog page after %r failed: %s", key, e)
                return Error(e)

    async def _fetch_one(self, product_id: ProductId) -> Product | None:
        response = await self._http.request("GET", f"{self._root}/{product_id}.json")
        if not response.ok:
            raise NetworkError(error_message(response, "error"), status=response.status)
        if response.payload is None:
            return None
        return parse_product(product_id, response.payload)

    async def get(self, product_id: ProductId) -> Result[Product | None, NetworkError]:
        match await L.catching_async(lambda: self._fetch_one(product_id), on_error=network_error):
            case Ok(product):
                if product is None:
                    logger.info("Product %s not found", product_id)
                return Ok(product)
            case Error(e):
                logger.warning("Product %s failed to load: %s", product_id, e)
                return Error(e)

    @property
    def closed(self) -> bool:
        return self._http.closed

    async def close(self) -> None:
        await self._http.close()


__all__ = (
    "Page",
    "CatalogStore",
    "MemoryCatalogStore",
    "RealtimeDatabaseStore",
)
