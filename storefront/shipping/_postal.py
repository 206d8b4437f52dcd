"""
Postal codes (CEP) — 8 digits canonical, "00000-000" for display.
"""

from __future__ import annotations

import re

POSTAL_CODE_LENGTH = 8

_NON_DIGITS = re.compile(r"\D")


def normalize_postal_code(value: str | None) -> str:
    """Keep digits only, at most eight: "01001-000" → "01001000"."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)[:POSTAL_CODE_LENGTH]


def is_valid_postal_code(value: str | None) -> bool:
    return len(normalize_postal_code(value)) == POSTAL_CODE_LENGTH


def mask_postal_code(value: str | None) -> str:
    """
    Display form while typing.

        "01001"    → "01001"
        "010010"   → "01001-0"
        "01001000" → "01001-000"
    """
    digits = normalize_postal_code(value)
    if len(digits) <= 5:
        return digits
    return f"{digits[:5]}-{digits[5:]}"


__all__ = (
    "POSTAL_CODE_LENGTH",
    "normalize_postal_code",
    "is_valid_postal_code",
    "mask_postal_code",
)
