"""
Catalog — cursor pagination plus client-side facets over the loaded window.

    from storefront import catalog as Cat

    store = Cat.RealtimeDatabaseStore("https://shop.firebaseio.com")
    pager = Cat.CatalogPager(store)

    await pager.load_first_page(40)
    await pager.load_next_page()        # no-op while in flight or exhausted

    filters = Cat.FacetFilters().with_categories("Camisetas").with_sizes("M", "G")
    visible = Cat.apply_facets(pager.products, filters, Cat.SortKey.PRICE_ASC)

    if Cat.should_keep_paging(pager):   # independent of len(visible)
        ...

Key order is the store's string order: "10" < "9".
"""

from storefront.catalog._store import (
    Page,
    CatalogStore,
    MemoryCatalogStore,
    RealtimeDatabaseStore,
)
from storefront.catalog._pager import (
    DEFAULT_PAGE_SIZE,
    CatalogPager,
)
from storefront.catalog._facets import (
    normalize_category,
    SortKey,
    FacetFilters,
    matches,
    apply_facets,
    FacetValues,
    facet_values,
    should_keep_paging,
)

__all__ = (
    # Store
    "Page",
    "CatalogStore",
    "MemoryCatalogStore",
    "RealtimeDatabaseStore",
    # Pager
    "DEFAULT_PAGE_SIZE",
    "CatalogPager",
    # Facets
    "normalize_category",
    "SortKey",
    "FacetFilters",
    "matches",
    "apply_facets",
    "FacetValues",
    "facet_values",
    "should_keep_paging",
)
