"""
Submission ledger — idempotency records for payment attempts.

SubmissionLedger — stores one record per idempotency key.
All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Protocol

from kungfu import Result, Ok, Error

from storefront.checkout._types import PaymentReceipt


# ═══════════════════════════════════════════════════════════════════════════════
# Record State — Attempt Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class RecordState(Enum):
    """
    State of a submission record.

    Lifecycle:
        PENDING → COMPLETED (receipt stored, replayed on resubmit)
                → FAILED    (key may be claimed again)
    """

    PENDING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class SubmissionRecord:
    """
    A stored submission.

    fingerprint: hash of the payload sent under this key.
    Same key, different fingerprint means the request changed.
    """

    key: str
    state: RecordState
    fingerprint: str
    receipt: PaymentReceipt | None = None

    @property
    def is_completed(self) -> bool:
        return self.state == RecordState.COMPLETED


@dataclass(frozen=True, slots=True)
class LedgerError:
    """Ledger operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class SubmissionLedger(Protocol):
    async def get(self, key: str) -> Result[SubmissionRecord | None, LedgerError]:
        """Existing record. Ok(None) if not found."""
        ...

    async def set_pending(self, key: str, fingerprint: str) -> Result[bool, LedgerError]:
        """
        Atomically mark the key as in flight.

        Ok(False) if a PENDING or COMPLETED record already holds the key;
        a FAILED record is replaced.
        """
        ...

    async def set_completed(self, key: str, receipt: PaymentReceipt) -> Result[None, LedgerError]:
        ...

    async def set_failed(self, key: str) -> Result[None, LedgerError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryLedger:
    """
    In-memory submission ledger.

    Note: Lives as long as the process. Enough for one shopper's session;
    a server-side ledger would implement the same protocol.
    """

    def __init__(self) -> None:
        self._records: dict[str, SubmissionRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Result[SubmissionRecord | None, LedgerError]:
        async with self._lock:
            return Ok(self._records.get(key))

    async def set_pending(self, key: str, fingerprint: str) -> Result[bool, LedgerError]:
        async with self._lock:
            existing = self._records.get(key)
            if existing is not None and existing.state != RecordState.FAILED:
                return Ok(False)
            self._records[key] = SubmissionRecord(key, RecordState.PENDING, fingerprint)
            return Ok(True)

    async def _settle(
        self,
        key: str,
        state: RecordState,
        receipt: PaymentReceipt | None = None,
    ) -> Result[None, LedgerError]:
        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                return Error(LedgerError(f"No pending record for key: {key}"))
            self._records[key] = replace(existing, state=state, receipt=receipt)
            return Ok(None)

    async def set_completed(self, key: str, receipt: PaymentReceipt) -> Result[None, LedgerError]:
        return await self._settle(key, RecordState.COMPLETED, receipt)

    async def set_failed(self, key: str) -> Result[None, LedgerError]:
        return await self._settle(key, RecordState.FAILED)


__all__ = (
    "RecordState",
    "SubmissionRecord",
    "LedgerError",
    "SubmissionLedger",
    "MemoryLedger",
)
