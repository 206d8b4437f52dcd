"""
Inventory types — products, variants and the stock union.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Annotated

from pydantic import BeforeValidator, model_validator

from storefront._records import (
    Amount,
    Count,
    Label,
    OptionalCount,
    OptionalLabel,
    RecordModel,
    clean_label,
    objects,
    to_count,
    to_product_id,
)
from storefront._types import Money, ProductId

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Labels
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_label(value: object) -> str:
    """Comparison key for free-text colors and sizes."""
    return clean_label(value).casefold()


# ═══════════════════════════════════════════════════════════════════════════════
# Variant
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Variant:
    """
    A purchasable (color, size) combination with its own stock.

    color/size keep their authored casing; compare with normalize_label().
    """

    color: str
    size: str
    stock_quantity: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return normalize_label(self.color), normalize_label(self.size)


# ═══════════════════════════════════════════════════════════════════════════════
# Stock — Discriminated Union
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VariantStock:
    """Stock held per variant. Authoritative whenever present."""

    variants: tuple[Variant, ...]


@dataclass(frozen=True, slots=True)
class LegacyFlatStock:
    """Pre-variant records: size → quantity."""

    sizes: Mapping[str, int]


type Stock = VariantStock | LegacyFlatStock | None
"""Resolved once at ingestion. Never merged additively."""


# ═══════════════════════════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    id: ProductId
    name: str
    price: Money
    category: str = ""
    pattern: str | None = None
    size: str | None = None
    quantity: int | None = None
    stock: Stock = None
    images: tuple[str, ...] = ()
    description: str | None = None
    created_at: str | None = None

    @property
    def image(self) -> str:
        return self.images[0] if self.images else ""

    @property
    def variants(self) -> tuple[Variant, ...]:
        match self.stock:
            case VariantStock(variants):
                return variants
            case _:
                return ()


# ═══════════════════════════════════════════════════════════════════════════════
# Wire Records
# ═══════════════════════════════════════════════════════════════════════════════


def _variant_items(value: object) -> object:
    return objects(value) if isinstance(value, list) else []


def _legacy_sizes(value: object) -> dict[str, int] | None:
    if not isinstance(value, Mapping) or not value:
        return None
    return {str(size): to_count(qty) for size, qty in value.items()}


def _images(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(image) for image in value if image)


def _description(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


class VariantIn(RecordModel):
    """One entry of a catalog record's `variants`. Legacy `stock` is read as stock_quantity."""

    color: Label = ""
    size: Label = ""
    stock_quantity: Count = 0

    @model_validator(mode="before")
    @classmethod
    def read_legacy_stock(cls, data: object) -> object:
        if isinstance(data, Mapping) and data.get("stock_quantity") is None:
            return {**data, "stock_quantity": data.get("stock")}
        return data

    def to_domain(self) -> Variant:
        return Variant(color=self.color, size=self.size, stock_quantity=self.stock_quantity)


class ProductIn(RecordModel):
    """A catalog record, keyed outside the body by its stringified id."""

    name: Label = ""
    price: Amount = Decimal(0)
    category: Label = ""
    pattern: OptionalLabel = None
    size: OptionalLabel = None
    quantity: OptionalCount = None
    variants: Annotated[tuple[VariantIn, ...], BeforeValidator(_variant_items)] = ()
    stock: Annotated[dict[str, int] | None, BeforeValidator(_legacy_sizes)] = None
    images: Annotated[tuple[str, ...], BeforeValidator(_images)] = ()
    description: Annotated[str | None, BeforeValidator(_description)] = None
    created_at: OptionalLabel = None

    def resolved_stock(self) -> Stock:
        """Non-empty variants win; the legacy map is only read when there are none."""
        if self.variants:
            return VariantStock(tuple(variant.to_domain() for variant in self.variants))
        if self.stock:
            return LegacyFlatStock(MappingProxyType(dict(self.stock)))
        return None

    def to_domain(self, product_id: ProductId) -> Product:
        return Product(
            id=product_id,
            name=self.name,
            price=self.price,
            category=self.category,
            pattern=self.pattern,
            size=self.size,
            quantity=self.quantity,
            stock=self.resolved_stock(),
            images=self.images,
            description=self.description,
            created_at=self.created_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Ingestion
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_stock(record: Mapping[str, object]) -> Stock:
    """Pick the stock representation of a raw record."""
    product = ProductIn.read(record)
    return product.resolved_stock() if product is not None else None


def parse_product(key: object, record: object) -> Product | None:
    """
    Build a Product from a catalog record keyed by its stringified id.

    Never raises. Returns None only if the key is not an integer or the
    record is not an object; every other malformed field degrades.
    """
    product_id = to_product_id(key)
    if product_id is None:
        logger.warning("Skipping catalog record with non-numeric key %r", key)
        return None
    product = ProductIn.read(record)
    if product is None:
        logger.warning("Skipping catalog record %s: not an object", product_id)
        return None
    return product.to_domain(product_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "clean_label",
    "normalize_label",
    "Variant",
    "VariantStock",
    "LegacyFlatStock",
    "Stock",
    "Product",
    "VariantIn",
    "ProductIn",
    "resolve_stock",
    "parse_product",
)
