"""
Inventory — what is purchasable, per product and per variant.

    from storefront import inventory as Inv

    product = Inv.parse_product("17", record)

    Inv.total_quantity(product)             # flat > variants > legacy > 0
    Inv.available_colors(product)           # ["Azul", "Preto"]
    Inv.sizes_for_color(product, "azul")    # ["P", "M", "GG", "Único"]
    Inv.variant_stock(product, "Azul", "M") # 3
    Inv.max_quantity(product, "Azul", "M")  # add-to-cart clamp

Stock is resolved once at ingestion:

    VariantStock(variants)   — authoritative when present
    LegacyFlatStock(sizes)   — pre-variant records
    None                     — flat quantity only, or nothing
"""

from storefront.inventory._types import (
    clean_label,
    normalize_label,
    Variant,
    VariantStock,
    LegacyFlatStock,
    Stock,
    Product,
    VariantIn,
    ProductIn,
    resolve_stock,
    parse_product,
)
from storefront.inventory._resolve import (
    SIZE_ORDER,
    size_sort_key,
    total_quantity,
    is_purchasable,
    stock_by_size,
    has_stock_by_size,
    stock_by_color_and_size,
    variant_stock,
    available_colors,
    sizes_for_color,
    max_quantity,
)

__all__ = (
    # Types
    "clean_label",
    "normalize_label",
    "Variant",
    "VariantStock",
    "LegacyFlatStock",
    "Stock",
    "Product",
    # Ingestion
    "VariantIn",
    "ProductIn",
    "resolve_stock",
    "parse_product",
    # Resolution
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
