"""
Records — pydantic models at the JSON boundary.

Every collaborator body and every persisted slot is read through a
RecordModel, then mapped to a frozen domain dataclass with to_domain().

Fields are lenient: a malformed value degrades to its empty form
(0, "", None) instead of rejecting the whole record.

    class RateOptionIn(RecordModel):
        transportadora: Label = ""
        preco: Amount = Decimal(0)

        def to_domain(self) -> ShippingOption: ...

    record = RateOptionIn.read(payload)     # None if payload is not an object
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Annotated, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError

from storefront._types import Money, ProductId

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Coercions
# ═══════════════════════════════════════════════════════════════════════════════


def to_money(value: object) -> Money:
    """Parse a collaborator number into Money. Malformed input becomes 0."""
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    if isinstance(value, bool) or value is None:
        return Decimal(0)
    try:
        amount = Decimal(str(value).strip().replace(",", "."))
    except ArithmeticError:
        return Decimal(0)
    return amount if amount.is_finite() else Decimal(0)


def to_count(value: object) -> int:
    """Parse a non-negative integer. Malformed or negative input becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 0
    return max(number, 0)


def to_optional_count(value: object) -> int | None:
    return None if value is None else to_count(value)


def to_product_id(value: object) -> ProductId | None:
    """Integer id from a key or field. None for anything else."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


def clean_label(value: object) -> str:
    """Trim and collapse inner whitespace. Non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return " ".join(value.split())


def optional_label(value: object) -> str | None:
    return clean_label(value) or None


def strip_text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def optional_text(value: object) -> str | None:
    return strip_text(value) or None


def optional_str(value: object) -> str | None:
    """Any scalar as a string: ids come back as numbers or strings."""
    if value is None or isinstance(value, (Mapping, list)):
        return None
    return str(value)


def objects(value: object) -> object:
    """Keep only the object entries of a list. Anything else passes through."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [as_fields(item) for item in value if isinstance(item, Mapping)]
    return value


def as_fields(value: Mapping[object, object]) -> dict[str, object]:
    return {str(key): item for key, item in value.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# Lenient Field Types
# ═══════════════════════════════════════════════════════════════════════════════

type Amount = Annotated[Decimal, BeforeValidator(to_money)]
type Count = Annotated[int, BeforeValidator(to_count)]
type OptionalCount = Annotated[int | None, BeforeValidator(to_optional_count)]
type Label = Annotated[str, BeforeValidator(clean_label)]
type OptionalLabel = Annotated[str | None, BeforeValidator(optional_label)]
type Text = Annotated[str, BeforeValidator(strip_text)]
type OptionalText = Annotated[str | None, BeforeValidator(optional_text)]
type OptionalStr = Annotated[str | None, BeforeValidator(optional_str)]


# ═══════════════════════════════════════════════════════════════════════════════
# Base Model
# ═══════════════════════════════════════════════════════════════════════════════


class RecordModel(BaseModel):
    """Immutable record. Unknown fields are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def read(cls, payload: object) -> Self | None:
        """Validate a decoded JSON object. None if it is not one."""
        if not isinstance(payload, Mapping):
            return None
        try:
            return cls.model_validate(as_fields(payload))
        except ValidationError as e:
            logger.debug("Unreadable %s: %s", cls.__name__, e)
            return None


__all__ = (
    # Coercions
    "to_money",
    "to_count",
    "to_optional_count",
    "to_product_id",
    "clean_label",
    "optional_label",
    "strip_text",
    "optional_text",
    "optional_str",
    "objects",
    "as_fields",
    # Field types
    "Amount",
    "Count",
    "OptionalCount",
    "Label",
    "OptionalLabel",
    "Text",
    "OptionalText",
    "OptionalStr",
    # Base
    "RecordModel",
)
