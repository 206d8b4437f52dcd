"""
Error values.

Errors travel inside kungfu Result, they are not raised. Every kind is
recoverable: a failed checkout attempt leaves cart and address usable.
"""

from __future__ import annotations

from dataclasses import dataclass


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class StorefrontError(Exception):
    """Base for every storefront error. `message` is user-displayable."""

    message: str

    def __str__(self) -> str:
        return self.message


# ═══════════════════════════════════════════════════════════════════════════════
# Local — never sent over the network
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ValidationError(StorefrontError):
    """
    Malformed postal code, incomplete boleto address, empty cart, bad payer.

    Blocks progression locally.
    """

    field: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Remote
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class NetworkError(StorefrontError):
    """Fetch failure or non-2xx response. Retryable, never mutates persisted state."""

    status: int | None = None
    code: str | None = None


@dataclass(frozen=True, slots=True)
class RequestTimeout(NetworkError):
    """A NetworkError raised by the request deadline, not by the transport."""

    seconds: float = 15.0


@dataclass(frozen=True, slots=True)
class PaymentDeclined(StorefrontError):
    """
    The payment collaborator refused the charge.

    Returns checkout to method selection; the cart is kept.
    """

    details: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Messages
# ═══════════════════════════════════════════════════════════════════════════════

TIMEOUT_MESSAGE = "The request timed out. Please try again."
NETWORK_MESSAGE = "Network error. Check your connection and try again."


def network_error(exc: Exception) -> NetworkError:
    """Map a transport exception to a retryable NetworkError."""
    if isinstance(exc, NetworkError):
        return exc
    if isinstance(exc, TimeoutError):
        return RequestTimeout(TIMEOUT_MESSAGE, code=type(exc).__name__)
    return NetworkError(NETWORK_MESSAGE, code=type(exc).__name__)


def timeout_error(seconds: float) -> RequestTimeout:
    return RequestTimeout(TIMEOUT_MESSAGE, seconds=seconds)


__all__ = (
    "StorefrontError",
    "ValidationError",
    "NetworkError",
    "RequestTimeout",
    "PaymentDeclined",
    "TIMEOUT_MESSAGE",
    "NETWORK_MESSAGE",
    "network_error",
    "timeout_error",
)
