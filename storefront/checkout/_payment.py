"""
Payment collaborator — protocol and HTTP gateway.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Protocol

import aiohttp
from combinators import lift as L
from kungfu import Result, Ok, Error

from storefront._errors import NetworkError, PaymentDeclined, network_error
from storefront._http import JsonClient, JsonResponse, error_message
from storefront.checkout._types import (
    PaymentReceipt,
    PaymentRequest,
    PaymentResponseIn,
)

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"

# 4xx answers about the request's timing, not its content: resend under the same key.
RETRYABLE_STATUSES = frozenset({408, 409, 425, 429})


class PaymentGateway(Protocol):
    """
    Charges a PaymentRequest.

    Must treat request.idempotency_key as the deduplication key: the same
    key is resent after a network failure.
    """

    async def submit(
        self, request: PaymentRequest
    ) -> Result[PaymentReceipt, NetworkError | PaymentDeclined]:
        ...


class HttpPaymentGateway:
    """
    POST {api_url}/pagamento with an Idempotency-Key header.

        2xx, status rejected/cancelled  → PaymentDeclined(status_detail)
        2xx                             → receipt for the method
        408, 409, 425, 429              → NetworkError (retry with the same key)
        other 4xx                       → PaymentDeclined(error | message | status_detail)
        5xx, transport, timeout         → NetworkError (retry with the same key)
    """

    def __init__(
        self,
        api_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: timedelta | None = None,
    ) -> None:
        self._url = f"{api_url.rstrip('/')}/pagamento"
        self._http = JsonClient(session, timeout=timeout)

    @property
    def closed(self) -> bool:
        return self._http.closed

    async def _post(self, request: PaymentRequest) -> JsonResponse:
        return await self._http.request(
            "POST",
            self._url,
            json=request.to_payload(),
            headers={IDEMPOTENCY_HEADER: request.idempotency_key},
        )

    def _interpret(
        self, request: PaymentRequest, response: JsonResponse
    ) -> Result[PaymentReceipt, NetworkError | PaymentDeclined]:
        if response.status >= 500 or response.status in RETRYABLE_STATUSES:
            return Error(
                NetworkError(
                    error_message(response, "error", "message"),
                    status=response.status,
                    code=response.error_body.code,
                )
            )
        if not response.ok:
            return Error(
                PaymentDeclined(
                    error_message(response, "error", "message", "status_detail"),
                    details=response.error_body.details,
                )
            )
        body = PaymentResponseIn.read(response.payload) or PaymentResponseIn()
        if body.is_declined:
            return Error(
                PaymentDeclined(
                    error_message(response, "status_detail", "error", "message"),
                    details=response.error_body.details,
                )
            )
        receipt = body.to_domain(request.method)
        if receipt is None:
            return Error(NetworkError("Unexpected payment response", status=response.status))
        return Ok(receipt)

    async def submit(
        self, request: PaymentRequest
    ) -> Result[PaymentReceipt, NetworkError | PaymentDeclined]:
        match await L.catching_async(lambda: self._post(request), on_error=network_error):
            case Ok(response):
                result = self._interpret(request, response)
            case Error(e):
                result = Error(e)

        match result:
            case Ok(_):
                logger.info("Payment %s accepted (%s)", request.idempotency_key, request.method.value)
            case Error(e):
                logger.warning("Payment %s not accepted: %s", request.idempotency_key, e)
        return result

    async def close(self) -> None:
        await self._http.close()


__all__ = (
    "IDEMPOTENCY_HEADER",
    "RETRYABLE_STATUSES",
    "PaymentGateway",
    "HttpPaymentGateway",
)
