"""Tests for client-side facet filtering over the loaded window."""

from decimal import Decimal

from storefront.catalog import (
    CatalogPager,
    FacetFilters,
    MemoryCatalogStore,
    SortKey,
    apply_facets,
    facet_values,
    normalize_category,
    should_keep_paging,
)

from tests.fakes import catalog_records, make_product


def window():
    return [
        make_product(
            1,
            name="Camiseta Básica",
            price="49.90",
            category="Camisetas",
            pattern="Liso",
            variants=[
                {"color": "Azul", "size": "M", "stock_quantity": 2},
                {"color": "Preto", "size": "G", "stock_quantity": 0},
            ],
        ),
        make_product(
            2,
            name="Tênis Corrida",
            price="299.00",
            category="Calçados",
            size="42",
            quantity=3,
        ),
        make_product(
            3,
            name="Camiseta Listrada",
            price="79.90",
            category="camisetas ",
            pattern="Listrado",
            stock={"P": 1, "G": 4},
        ),
    ]


def ids(products):
    return [p.id for p in products]


class TestFilters:
    def test_empty_filters_keep_everything(self):
        assert FacetFilters().is_empty
        assert ids(apply_facets(window())) == [1, 2, 3]

    def test_name_is_case_insensitive_substring(self):
        filters = FacetFilters().with_name("CAMISETA")

        assert ids(apply_facets(window(), filters)) == [1, 3]

    def test_category_ignores_case_and_accents(self):
        assert normalize_category("Calçados ") == "calcados"

        filters = FacetFilters().with_categories("calcados")

        assert ids(apply_facets(window(), filters)) == [2]

    def test_categories_are_or_within_facet(self):
        filters = FacetFilters().with_categories("Camisetas", "Calçados")

        assert ids(apply_facets(window(), filters)) == [1, 2, 3]

    def test_price_bounds_are_inclusive(self):
        filters = FacetFilters().with_price(min_price="49.90", max_price=Decimal("79.90"))

        assert ids(apply_facets(window(), filters)) == [1, 3]

    def test_size_requires_stock(self):
        assert ids(apply_facets(window(), FacetFilters().with_sizes("g"))) == [3]
        assert ids(apply_facets(window(), FacetFilters().with_sizes("42"))) == [2]

    def test_color_requires_stock(self):
        assert ids(apply_facets(window(), FacetFilters().with_colors("preto"))) == []
        assert ids(apply_facets(window(), FacetFilters().with_colors("AZUL"))) == [1]

    def test_pattern_exact(self):
        assert ids(apply_facets(window(), FacetFilters().with_patterns("Listrado"))) == [3]

    def test_facets_are_and_across(self):
        filters = FacetFilters().with_categories("camisetas").with_price(max_price=60)

        assert ids(apply_facets(window(), filters)) == [1]

    def test_blank_values_do_not_filter(self):
        filters = FacetFilters().with_sizes("", "  ").with_colors("")

        assert filters.is_empty


class TestSort:
    def test_price_ascending(self):
        assert ids(apply_facets(window(), sort=SortKey.PRICE_ASC)) == [1, 3, 2]

    def test_price_descending(self):
        assert ids(apply_facets(window(), sort=SortKey.PRICE_DESC)) == [2, 3, 1]

    def test_recommended_is_newest_first(self):
        assert ids(apply_facets(window(), sort=SortKey.RECOMMENDED)) == [3, 2, 1]

    def test_idempotent(self):
        filters = FacetFilters().with_name("camiseta")
        once = apply_facets(window(), filters, SortKey.PRICE_DESC)

        assert apply_facets(once, filters, SortKey.PRICE_DESC) == once


class TestFacetValues:
    def test_collects_distinct_in_stock_values(self):
        values = facet_values(window())

        assert values.categories == ("Calçados", "Camisetas")
        assert values.colors == ("Azul",)
        assert values.sizes == ("P", "M", "G", "42")
        assert values.patterns == ("Liso", "Listrado")


class TestPagingTrigger:
    async def test_sparse_filter_result_keeps_paging(self):
        pager = CatalogPager(MemoryCatalogStore(catalog_records(60)), page_size=40)
        await pager.load_first_page()

        visible = apply_facets(pager.products, FacetFilters().with_name("nothing matches"))

        assert visible == []
        assert should_keep_paging(pager)

    async def test_exhausted_store_stops_paging(self):
        pager = CatalogPager(MemoryCatalogStore(catalog_records(3)), page_size=40)
        await pager.load_first_page()

        assert not should_keep_paging(pager)
