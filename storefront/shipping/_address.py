"""
Address — lookup collaborator and the persisted address book.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import timedelta
from typing import Annotated, Protocol

import aiohttp
from combinators import lift as L
from kungfu import Ok, Error
from pydantic import BeforeValidator

from storefront._errors import NetworkError, network_error
from storefront._http import JsonClient
from storefront._records import RecordModel, Text
from storefront.shipping._postal import is_valid_postal_code, normalize_postal_code
from storefront.shipping._types import DEFAULT_STATE, AddressHint, ShippingAddress
from storefront.storage import KeyValueStorage, dump_json, load_json

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS_KEY = "storefront:address"
DEFAULT_LOOKUP_URL = "https://viacep.com.br/ws"


# ═══════════════════════════════════════════════════════════════════════════════
# Lookup Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class AddressLookup(Protocol):
    """
    Postal code → street/neighborhood/city/state.

    Best effort: every failure is None, never an error.
    """

    async def lookup(self, postal_code: str) -> AddressHint | None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# ViaCEP
# ═══════════════════════════════════════════════════════════════════════════════


class ViaCepIn(RecordModel):
    """ViaCEP body. `erro` is set for well-formed codes that do not exist."""

    cep: Text = ""
    erro: Annotated[bool, BeforeValidator(bool)] = False
    logradouro: Text = ""
    bairro: Text = ""
    localidade: Text = ""
    uf: Text = ""
    complemento: Text = ""

    def to_domain(self, postal_code: str) -> AddressHint | None:
        if self.erro or not self.cep:
            return None
        return AddressHint(
            postal_code=postal_code,
            street=self.logradouro,
            neighborhood=self.bairro,
            city=self.localidade,
            state=self.uf,
            complement=self.complemento,
        )


class ViaCepLookup:
    """
    GET {base_url}/{cep}/json/

    `{"erro": true}` and bodies without `cep` mean "unknown code".
    """

    def __init__(
        self,
        base_url: str = DEFAULT_LOOKUP_URL,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: timedelta | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = JsonClient(session, timeout=timeout)

    async def _get(self, digits: str) -> AddressHint | None:
        response = await self._http.request("GET", f"{self._base_url}/{digits}/json/")
        if not response.ok:
            raise NetworkError(f"Address lookup failed with status {response.status}", status=response.status)
        body = ViaCepIn.read(response.payload)
        return body.to_domain(digits) if body is not None else None

    async def lookup(self, postal_code: str) -> AddressHint | None:
        if not is_valid_postal_code(postal_code):
            return None
        digits = normalize_postal_code(postal_code)
        match await L.catching_async(lambda: self._get(digits), on_error=network_error):
            case Ok(hint):
                return hint
            case Error(e):
                logger.debug("Address lookup for %s failed: %s", digits, e)
                return None

    @property
    def closed(self) -> bool:
        return self._http.closed

    async def close(self) -> None:
        await self._http.close()


# ═══════════════════════════════════════════════════════════════════════════════
# Address Book — Persisted Address
# ═══════════════════════════════════════════════════════════════════════════════


class AddressBook:
    """
    The shopper's shipping address, persisted apart from the cart.

    Read once on construction; every change is written before returning.

    Example:
        book = AddressBook(storage, lookup=ViaCepLookup())
        book.update(postal_code="01001-000")
        book.enrich_on_blur()      # fills street/city in the background
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = DEFAULT_ADDRESS_KEY,
        default_state: str = DEFAULT_STATE,
        lookup: AddressLookup | None = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._lookup = lookup
        self._address = ShippingAddress.from_dict(
            load_json(storage, key), default_state=default_state
        )
        self._tasks: set[asyncio.Task[bool]] = set()

    @property
    def address(self) -> ShippingAddress:
        return self._address

    def _persist(self) -> None:
        match dump_json(self._storage, self._key, self._address.to_dict()):
            case Error(e):
                logger.warning("Address not persisted: %s", e.message)
            case _:
                pass

    def set(self, address: ShippingAddress) -> ShippingAddress:
        self._address = replace(address, postal_code=normalize_postal_code(address.postal_code))
        self._persist()
        return self._address

    def update(self, **changes: str) -> ShippingAddress:
        """Edit fields by name. The postal code is normalized to digits."""
        address = self._address
        for name, value in changes.items():
            address = address.with_field(name, value)
        return self.set(address)

    def apply_hint(self, hint: AddressHint) -> bool:
        """
        Fill fields from a lookup result.

        Empty hint fields keep what is there. Ignored if the postal code
        changed since the lookup started.
        """
        if normalize_postal_code(hint.postal_code) != self._address.postal_code:
            logger.debug("Ignoring address hint for %s: postal code changed", hint.postal_code)
            return False
        current = self._address
        self.set(
            replace(
                current,
                street=hint.street or current.street,
                neighborhood=hint.neighborhood or current.neighborhood,
                city=hint.city or current.city,
                state=hint.state or current.state,
                complement=hint.complement or current.complement,
            )
        )
        return True

    async def enrich(self) -> bool:
        """Look up the current postal code and apply the result."""
        if self._lookup is None or not is_valid_postal_code(self._address.postal_code):
            return False
        hint = await self._lookup.lookup(self._address.postal_code)
        if hint is None:
            return False
        return self.apply_hint(hint)

    def enrich_on_blur(self) -> asyncio.Task[bool] | None:
        """Fire-and-forget enrich(). None when there is nothing to look up."""
        if self._lookup is None or not is_valid_postal_code(self._address.postal_code):
            return None
        task = asyncio.get_running_loop().create_task(self.enrich())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


__all__ = (
    "DEFAULT_ADDRESS_KEY",
    "DEFAULT_LOOKUP_URL",
    "AddressLookup",
    "ViaCepIn",
    "ViaCepLookup",
    "AddressBook",
)
