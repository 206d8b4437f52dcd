"""
Inventory resolution — pure functions over a Product.

Catalog data is externally authored, so nothing here raises on absent or
malformed stock: every function degrades to 0 or empty.
"""

from __future__ import annotations

from collections.abc import Mapping

from storefront._types import PLACEHOLDER
from storefront.inventory._types import (
    LegacyFlatStock,
    Product,
    VariantStock,
    clean_label,
    normalize_label,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Size Ordering
# ═══════════════════════════════════════════════════════════════════════════════

SIZE_ORDER: tuple[str, ...] = ("PP", "P", "M", "G", "GG", "XG", "XXG")
"""Domestic apparel sizes, smallest first."""

_SIZE_RANK = {size.casefold(): rank for rank, size in enumerate(SIZE_ORDER)}
_PLACEHOLDER_KEY = PLACEHOLDER.casefold()


def size_sort_key(size: str) -> tuple[int, int, str]:
    """
    Known sizes by rank, then anything else lexicographically, then "Único".
    """
    key = normalize_label(size)
    if key in _SIZE_RANK:
        return (0, _SIZE_RANK[key], key)
    if key == _PLACEHOLDER_KEY:
        return (2, 0, key)
    return (1, 0, key)


def _label_or_placeholder(value: object) -> str:
    return clean_label(value) or PLACEHOLDER


# ═══════════════════════════════════════════════════════════════════════════════
# Totals
# ═══════════════════════════════════════════════════════════════════════════════


def total_quantity(product: Product | None) -> int:
    """
    Purchasable units of a product.

    Precedence: flat quantity > variant sum > legacy map sum > 0.
    """
    if product is None:
        return 0
    if product.quantity is not None:
        return max(product.quantity, 0)
    match product.stock:
        case VariantStock(variants):
            return sum(max(v.stock_quantity, 0) for v in variants)
        case LegacyFlatStock(sizes):
            return sum(max(qty, 0) for qty in sizes.values())
        case _:
            return 0


def is_purchasable(product: Product | None) -> bool:
    return total_quantity(product) > 0


# ═══════════════════════════════════════════════════════════════════════════════
# Per-Size / Per-Variant Aggregation
# ═══════════════════════════════════════════════════════════════════════════════


def stock_by_size(product: Product | None) -> dict[str, int]:
    """
    Stock keyed by size, summed across colors.

    Variant sizes are grouped by normalized label and reported under the
    first spelling seen; a blank size reports as "Único". Legacy maps are
    returned verbatim.
    """
    if product is None:
        return {}
    match product.stock:
        case VariantStock(variants):
            labels: dict[str, str] = {}
            totals: dict[str, int] = {}
            for variant in variants:
                label = _label_or_placeholder(variant.size)
                key = label.casefold()
                labels.setdefault(key, label)
                totals[key] = totals.get(key, 0) + max(variant.stock_quantity, 0)
            return {labels[key]: qty for key, qty in totals.items()}
        case LegacyFlatStock(sizes):
            return dict(sizes)
        case _:
            return {}


def has_stock_by_size(product: Product | None) -> bool:
    """True when the product tracks stock per size at all."""
    return bool(stock_by_size(product))


def stock_by_color_and_size(product: Product | None) -> dict[tuple[str, str], int]:
    """
    Stock per normalized (color, size) pair. Duplicate pairs are summed.

    Blank color or size is keyed as "único".
    """
    if product is None:
        return {}
    totals: dict[tuple[str, str], int] = {}
    for variant in product.variants:
        key = (
            _label_or_placeholder(variant.color).casefold(),
            _label_or_placeholder(variant.size).casefold(),
        )
        totals[key] = totals.get(key, 0) + max(variant.stock_quantity, 0)
    return totals


def variant_stock(product: Product | None, color: str | None, size: str | None) -> int:
    """Exact stock for one combination. 0 if it does not exist."""
    key = (
        _label_or_placeholder(color).casefold(),
        _label_or_placeholder(size).casefold(),
    )
    return stock_by_color_and_size(product).get(key, 0)


# ═══════════════════════════════════════════════════════════════════════════════
# Choices
# ═══════════════════════════════════════════════════════════════════════════════


def _summed_labels(pairs: list[tuple[str, int]]) -> dict[str, tuple[str, int]]:
    """normalized → (first spelling, summed stock)"""
    merged: dict[str, tuple[str, int]] = {}
    for label, qty in pairs:
        key = label.casefold()
        first, total = merged.get(key, (label, 0))
        merged[key] = (first, total + max(qty, 0))
    return merged


def available_colors(product: Product | None) -> list[str]:
    """Distinct colors with summed stock > 0, sorted lexicographically."""
    if product is None:
        return []
    merged = _summed_labels(
        [(clean_label(v.color), v.stock_quantity) for v in product.variants if clean_label(v.color)]
    )
    in_stock = [(key, label) for key, (label, qty) in merged.items() if qty > 0]
    return [label for _, label in sorted(in_stock)]


def sizes_for_color(product: Product | None, color: str | None) -> list[str]:
    """
    Sizes in stock for one color, in domestic size order.

    PP, P, M, G, GG, XG, XXG first; unknown sizes lexicographically after;
    "Único" last. Variants without a size are skipped.
    """
    if product is None:
        return []
    wanted = _label_or_placeholder(color).casefold()
    merged = _summed_labels(
        [
            (clean_label(v.size), v.stock_quantity)
            for v in product.variants
            if clean_label(v.size) and _label_or_placeholder(v.color).casefold() == wanted
        ]
    )
    in_stock = [label for label, qty in merged.values() if qty > 0]
    return sorted(in_stock, key=size_sort_key)


# ═══════════════════════════════════════════════════════════════════════════════
# Add-to-Cart Clamp
# ═══════════════════════════════════════════════════════════════════════════════


def _size_stock(sizes: Mapping[str, int], size: str | None) -> int:
    wanted = normalize_label(size)
    return sum(max(qty, 0) for label, qty in sizes.items() if normalize_label(label) == wanted)


def max_quantity(
    product: Product | None,
    color: str | None = None,
    size: str | None = None,
) -> int:
    """
    Upper bound for a cart line of this combination.

    Variant stock when the product has variants, else the legacy size stock
    when a size is given, else the product total.
    """
    if product is None:
        return 0
    match product.stock:
        case VariantStock():
            return variant_stock(product, color, size)
        case LegacyFlatStock(sizes) if clean_label(size):
            return _size_stock(sizes, size)
        case _:
            return total_quantity(product)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "SIZE_ORDER",
    "size_sort_key",
    "total_quantity",
    "is_purchasable",
    "stock_by_size",
    "has_stock_by_size",
    "stock_by_color_and_size",
    "variant_stock",
    "available_colors",
    "sizes_for_color",
    "max_quantity",
)
