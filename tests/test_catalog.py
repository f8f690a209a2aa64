from decimal import Decimal

from clinicdesk.catalog import PATHOLOGY_TESTS, LineItemCatalog


def test_default_catalog_contains_every_test():
    catalog = LineItemCatalog.default()
    assert len(catalog) == len(PATHOLOGY_TESTS)
    assert "HB" in catalog
    assert "NOPE" not in catalog
    assert catalog.lookup("HB").price == Decimal("200")
    assert catalog.lookup("NOPE") is None


def test_charge_ignores_unknown_codes():
    catalog = LineItemCatalog.default()
    assert catalog.charge(["HB", "CBC", "NOPE"]) == Decimal("400")
    assert catalog.charge([]) == Decimal("0")


def test_categories_are_sorted_and_unique():
    categories = LineItemCatalog.default().categories()
    assert categories == sorted(set(categories))
    assert "Hematology" in categories
    assert "Thyroid Function" in categories


def test_by_category():
    thyroid = LineItemCatalog.default().by_category("Thyroid Function")
    assert {item.code for item in thyroid} == {"FT3", "FT4", "T3-T4-TSH", "TSH"}


def test_search_matches_code_or_name():
    catalog = LineItemCatalog.default()
    codes = {item.code for item in catalog.search("thyrox")}
    assert codes == {"FT4"}
    assert "PROTHROMBIN" in {item.code for item in catalog.search("prothombin")}
    assert len(catalog.search("")) == len(catalog)
