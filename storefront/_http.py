"""
JSON over HTTP — shared aiohttp plumbing for remote collaborators.

Adapters call JsonClient inside combinators.lift.catching_async, so every
transport exception is lifted into a NetworkError value at the boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta

import aiohttp

from storefront._records import OptionalStr, OptionalText, RecordModel


# ═══════════════════════════════════════════════════════════════════════════════
# Response
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorBodyIn(RecordModel):
    """Fields a collaborator may put in a failure body. Non-strings read as None."""

    error: OptionalText = None
    message: OptionalText = None
    details: OptionalText = None
    status_detail: OptionalText = None
    code: OptionalStr = None


_EMPTY_BODY = ErrorBodyIn()


@dataclass(frozen=True, slots=True)
class JsonResponse:
    """Status plus decoded body. `payload` is None for empty or non-JSON bodies."""

    status: int
    payload: object

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def error_body(self) -> ErrorBodyIn:
        return ErrorBodyIn.read(self.payload) or _EMPTY_BODY


def error_message(response: JsonResponse, *keys: str) -> str:
    """First non-empty field of the error body under `keys`, else a status line."""
    body = response.error_body.model_dump()
    for key in keys:
        if value := body.get(key):
            return value
    return f"Request failed with status {response.status}"


# ═══════════════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════════════


class JsonClient:
    """
    Thin aiohttp wrapper.

    Pass a session to share a connection pool; otherwise one is created on
    first use and closed by close() / async with.

    Example:
        async with JsonClient(timeout=timedelta(seconds=15)) as http:
            response = await http.request("GET", url)
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        timeout: timedelta | None = None,
    ) -> None:
        self._session = session
        self._owned = session is None
        self._timeout = (
            aiohttp.ClientTimeout(total=timeout.total_seconds()) if timeout is not None else None
        )

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            if self._timeout is not None:
                self._session = aiohttp.ClientSession(timeout=self._timeout)
            else:
                self._session = aiohttp.ClientSession()
            self._owned = True
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        json: object = None,
        headers: Mapping[str, str] | None = None,
    ) -> JsonResponse:
        session = self._ensure_session()
        async with session.request(
            method,
            url,
            params=params,
            json=json,
            headers=headers,
        ) as response:
            try:
                payload = await response.json(content_type=None)
            except ValueError:
                payload = None
            return JsonResponse(status=response.status, payload=payload)

    @property
    def closed(self) -> bool:
        """True when no session this client owns is open."""
        return not self._owned or self._session is None or self._session.closed

    async def close(self) -> None:
        if self._owned and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> JsonClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = (
    "ErrorBodyIn",
    "JsonResponse",
    "JsonClient",
    "error_message",
)
