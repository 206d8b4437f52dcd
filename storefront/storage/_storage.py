"""
Local persistence — keyed string slots with JSON helpers.

KeyValueStorage is synchronous: a write completes before the mutating call
that issued it returns.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from kungfu import Result, Ok, Error

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class StorageError:
    """Persistence operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class KeyValueStorage(Protocol):
    """
    Keyed string storage.

    Example — wrapping an existing settings table:

        class TableStorage:
            def read(self, key: str) -> str | None:
                return table.get(key)

            def write(self, key: str, value: str) -> None:
                table[key] = value

            def delete(self, key: str) -> None:
                table.pop(key, None)
    """

    def read(self, key: str) -> str | None:
        """Stored text, or None if the slot is empty."""
        ...

    def write(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Storage — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStorage:
    """
    In-memory storage.

    Note: Does not survive the process. Use for tests and previews.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._slots: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self._slots.get(key)

    def write(self, key: str, value: str) -> None:
        self._slots[key] = value

    def delete(self, key: str) -> None:
        self._slots.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._slots


# ═══════════════════════════════════════════════════════════════════════════════
# File Storage
# ═══════════════════════════════════════════════════════════════════════════════


class FileStorage:
    """
    One file per key under a directory.

    Writes go to a temporary sibling and are moved into place with
    os.replace, so a reader sees either the old or the new slot.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}.json"

    def read(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ═══════════════════════════════════════════════════════════════════════════════
# JSON Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def load_json(storage: KeyValueStorage, key: str) -> object | None:
    """
    Deserialize a slot. Missing, unreadable or corrupt data is absent.
    """
    try:
        raw = storage.read(key)
    except OSError as e:
        logger.warning("Could not read slot %r: %s", key, e)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding corrupt slot %r", key)
        return None


def dump_json(storage: KeyValueStorage, key: str, value: object) -> Result[None, StorageError]:
    """Serialize and write a slot."""
    try:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        return Error(StorageError(f"Slot {key!r} is not serializable", e))
    try:
        storage.write(key, text)
    except OSError as e:
        return Error(StorageError(f"Could not write slot {key!r}", e))
    return Ok(None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "StorageError",
    "KeyValueStorage",
    "MemoryStorage",
    "FileStorage",
    "load_json",
    "dump_json",
)
