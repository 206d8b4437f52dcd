"""
Facet filtering — pure functions over the loaded window.

Filtering never reaches past the window: a sparse filtered result must not
stop pagination (see should_keep_paging).
"""

from __future__ import annotations

import unicodedata
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum, auto
from typing import TYPE_CHECKING

from storefront._records import to_money
from storefront._types import Money
from storefront.inventory import (
    Product,
    available_colors,
    clean_label,
    normalize_label,
    size_sort_key,
    stock_by_size,
)

if TYPE_CHECKING:
    from storefront.catalog._pager import CatalogPager


def normalize_category(value: object) -> str:
    """Case- and accent-insensitive key: "Calçados " → "calcados"."""
    decomposed = unicodedata.normalize("NFKD", clean_label(value))
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


# ═══════════════════════════════════════════════════════════════════════════════
# Sort Key
# ═══════════════════════════════════════════════════════════════════════════════


class SortKey(Enum):
    """
    Display order.

        NONE        — load order (stable)
        PRICE_ASC   — cheapest first
        PRICE_DESC  — most expensive first
        RECOMMENDED — highest id first (newest-first heuristic)
    """

    NONE = auto()
    PRICE_ASC = auto()
    PRICE_DESC = auto()
    RECOMMENDED = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Filters — Immutable Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FacetFilters:
    """
    Filter set. AND across facets, OR within a multi-select facet.

    Fluent builder pattern — chain methods to configure.

    Example:
        filters = (
            FacetFilters()
            .with_name("camiseta")
            .with_sizes("M", "G")
            .with_price(max_price=Decimal("100"))
        )

    Note: Immutable — each method returns new FacetFilters.
    Empty facets (and absent price bounds) do not filter.
    """

    name: str = ""
    categories: frozenset[str] = frozenset()
    min_price: Money | None = None
    max_price: Money | None = None
    sizes: frozenset[str] = frozenset()
    colors: frozenset[str] = frozenset()
    patterns: frozenset[str] = frozenset()

    def with_name(self, text: str) -> FacetFilters:
        """Case-insensitive substring of the product name."""
        return replace(self, name=clean_label(text))

    def with_categories(self, *categories: str) -> FacetFilters:
        return replace(self, categories=frozenset(normalize_category(c) for c in categories if clean_label(c)))

    def with_price(
        self,
        *,
        min_price: Decimal | float | str | None = None,
        max_price: Decimal | float | str | None = None,
    ) -> FacetFilters:
        """Inclusive bounds. None leaves that side unbounded."""
        return replace(
            self,
            min_price=None if min_price is None else to_money(min_price),
            max_price=None if max_price is None else to_money(max_price),
        )

    def with_sizes(self, *sizes: str) -> FacetFilters:
        return replace(self, sizes=frozenset(normalize_label(s) for s in sizes if clean_label(s)))

    def with_colors(self, *colors: str) -> FacetFilters:
        return replace(self, colors=frozenset(normalize_label(c) for c in colors if clean_label(c)))

    def with_patterns(self, *patterns: str) -> FacetFilters:
        return replace(self, patterns=frozenset(clean_label(p) for p in patterns if clean_label(p)))

    @property
    def is_empty(self) -> bool:
        return (
            not self.name
            and not self.categories
            and self.min_price is None
            and self.max_price is None
            and not self.sizes
            and not self.colors
            and not self.patterns
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Matching
# ═══════════════════════════════════════════════════════════════════════════════


def _sizes_in_stock(product: Product) -> set[str]:
    sizes = {normalize_label(size) for size, qty in stock_by_size(product).items() if qty > 0}
    if product.size:
        sizes.add(normalize_label(product.size))
    return sizes


def matches(product: Product, filters: FacetFilters) -> bool:
    """True if the product passes every non-empty facet."""
    if filters.name and filters.name.casefold() not in product.name.casefold():
        return False
    if filters.categories and normalize_category(product.category) not in filters.categories:
        return False
    if filters.min_price is not None and product.price < filters.min_price:
        return False
    if filters.max_price is not None and product.price > filters.max_price:
        return False
    if filters.sizes and filters.sizes.isdisjoint(_sizes_in_stock(product)):
        return False
    if filters.colors and filters.colors.isdisjoint(
        normalize_label(c) for c in available_colors(product)
    ):
        return False
    if filters.patterns and (product.pattern or "") not in filters.patterns:
        return False
    return True


def _sorted(products: list[Product], sort: SortKey) -> list[Product]:
    match sort:
        case SortKey.NONE:
            return products
        case SortKey.PRICE_ASC:
            return sorted(products, key=lambda p: p.price)
        case SortKey.PRICE_DESC:
            return sorted(products, key=lambda p: p.price, reverse=True)
        case SortKey.RECOMMENDED:
            return sorted(products, key=lambda p: p.id, reverse=True)


def apply_facets(
    window: Iterable[Product],
    filters: FacetFilters | None = None,
    sort: SortKey = SortKey.NONE,
) -> list[Product]:
    """
    Display list for the loaded window.

    Idempotent: apply_facets(apply_facets(w, f, s), f, s) == apply_facets(w, f, s).
    """
    active = filters or FacetFilters()
    return _sorted([p for p in window if matches(p, active)], sort)


# ═══════════════════════════════════════════════════════════════════════════════
# Facet Discovery
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FacetValues:
    """Values present in a window, for building filter menus."""

    categories: tuple[str, ...] = ()
    sizes: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()


def _distinct(labels: Iterable[str], key: Callable[[str], str]) -> dict[str, str]:
    seen: dict[str, str] = {}
    for label in labels:
        if label:
            seen.setdefault(key(label), label)
    return seen


def facet_values(window: Sequence[Product]) -> FacetValues:
    categories = _distinct((p.category for p in window), normalize_category)
    colors = _distinct((c for p in window for c in available_colors(p)), normalize_label)
    sizes = _distinct(
        (
            size
            for p in window
            for size in [*(s for s, q in stock_by_size(p).items() if q > 0), p.size or ""]
        ),
        normalize_label,
    )
    patterns = {p.pattern for p in window if p.pattern}
    return FacetValues(
        categories=tuple(categories[k] for k in sorted(categories)),
        sizes=tuple(sorted(sizes.values(), key=size_sort_key)),
        colors=tuple(colors[k] for k in sorted(colors)),
        patterns=tuple(sorted(patterns)),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Pagination Trigger
# ═══════════════════════════════════════════════════════════════════════════════


def should_keep_paging(pager: CatalogPager) -> bool:
    """
    Whether the pagination trigger stays mounted.

    Depends on the store only, never on how many products survive filtering.
    """
    return pager.has_more


__all__ = (
    "normalize_category",
    "SortKey",
    "FacetFilters",
    "matches",
    "apply_facets",
    "FacetValues",
    "facet_values",
    "should_keep_paging",
)
