import json

import pytest

from shopping_assistant.catalog import Catalog


def skus(products):
    return [product.sku for product in products]


def test_packaged_catalog_loads(catalog):
    assert len(catalog) == 19
    assert catalog.categories() == ["Clothing", "Electronics", "Home", "Food"]
    assert catalog.get(2001).name == "Noise Cancelling Headphones"
    assert catalog.get(9999) is None


def test_query_matches_name_tags_and_description(catalog):
    # name + tag outranks tag + description; ties keep catalog order
    assert skus(catalog.search("red")) == [1001, 1005, 3003]


@pytest.mark.parametrize(
    "query,expected",
    [
        ("RED DRESS", [1001]),
        ("  headphones ", [2001]),
        ("หูฟัง", [2001]),
        ("lemongrass", [4001]),
        ("electronics", [2001, 2002, 2003, 2004]),
    ],
)
def test_query_is_case_insensitive_substring(catalog, query, expected):
    assert skus(catalog.search(query)) == expected


def test_no_match_and_no_criteria_return_empty(catalog):
    assert catalog.search("submarine") == []
    assert catalog.search() == []
    assert catalog.search("", "") == []


@pytest.mark.parametrize("category", ["Food", "food", "groceries", "Foods", "อาหาร"])
def test_category_exact_and_fuzzy(catalog, category):
    assert skus(catalog.search(category=category)) == [4001, 4002, 4003, 4004, 4005, 4006]


def test_electronic_synonym_matches_electronics(catalog):
    assert skus(catalog.search(category="electronic")) == [2001, 2002, 2003, 2004]


def test_both_query_and_category_rank_first(catalog):
    results = skus(catalog.search("red", category="Home"))
    assert results[0] == 3003
    assert set(results) == {1001, 1005, 3003, 3001, 3002, 3004}


def test_max_price_filters(catalog):
    assert skus(catalog.search("dress", max_price=1000)) == [1002]
    assert skus(catalog.search(max_price=45)) == [4004, 4005, 4002]


def test_search_is_idempotent(catalog):
    first = catalog.search("thai", category="Food")
    assert catalog.search("thai", category="Food") == first


def test_duplicate_sku_rejected(tmp_path):
    item = {
        "sku": 1,
        "name": "Mug",
        "description": "Stoneware mug",
        "price": 120,
        "currency": "THB",
        "imageUrl": "https://example.com/mug.png",
        "category": "Home",
    }
    path = tmp_path / "products.json"
    path.write_text(json.dumps({"items": [item, item]}), encoding="utf-8")
    with pytest.raises(ValueError):
        Catalog.from_file(path)


@pytest.mark.parametrize("category", ["o", "ho", "od"])
def test_stray_letters_match_no_category(catalog, category):
    assert catalog.search(category=category) == []


def test_category_named_inside_longer_request(catalog):
    assert skus(catalog.search(category="Home & Garden")) == [3001, 3002, 3003, 3004]
