"""
Unit tests for product normalization and catalog queries.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.domain import catalog
from service_catalog.app.domain.products import normalize_product, slugify
from shared.errors import ValidationError


class TestNormalizeProduct:
    """Test cases for normalize_product."""

    @pytest.fixture
    def raw(self):
        return {
            "id": 412,
            "name": "Trapstar Shooters Hoodie - Black/Red",
            "regular_price": "185.00",
            "sale_price": "150.00",
            "sku": "TSH412-L",
            "categories": [{"name": "Hoodies"}],
            "description": "<p>Heavyweight fleece.</p>",
            "short_description": "Fleece",
            "meta_data": [],
        }

    def test_maps_core_fields(self, raw):
        product = normalize_product(raw)

        assert product["id"] == 412
        assert product["woocommerce_id"] == 412
        assert product["title"] == "Trapstar Shooters Hoodie - Black/Red"
        assert product["slug"] == "trapstar-shooters-hoodie-black-red"
        assert product["category"] == "hoodies"
        assert product["price"] == 185.0
        assert product["discount_price"] == 150.0
        assert product["image"] == "/products/TSH412.jpg"
        assert product["description"] == "<p>Heavyweight fleece.</p>"
        assert product["brand"] == "Trapstar"
        assert product["button_text"] == "Buy Now"
        assert product["external_url"] == ""

    def test_original_category_meta_overrides(self, raw):
        raw["meta_data"] = [{"key": "_original_category", "value": "Tracksuits"}]
        assert normalize_product(raw)["category"] == "tracksuits"

    def test_unknown_category_defaults(self, raw):
        raw["categories"] = [{"name": "Socks"}]
        assert normalize_product(raw)["category"] == "hoodies"

    def test_category_names_match_exactly(self, raw):
        raw["categories"] = [{"name": "bags"}]
        assert normalize_product(raw)["category"] == "hoodies"
        raw["categories"] = [{"name": "Short Sets"}]
        assert normalize_product(raw)["category"] == "shorts"

    def test_sale_not_below_regular_has_no_discount(self, raw):
        raw["sale_price"] = "200.00"
        assert normalize_product(raw)["discount_price"] is None

    def test_missing_price_falls_back(self, raw):
        raw["regular_price"] = ""
        raw["sale_price"] = None
        product = normalize_product(raw)
        assert product["price"] == 299.99
        assert product["discount_price"] is None

    def test_image_from_name_without_sku(self, raw):
        raw["sku"] = "  "
        assert normalize_product(raw)["image"] == "/products/trapstar-shooters-hoodie-black-red.jpg"

    def test_description_fallbacks(self, raw):
        raw["description"] = ""
        assert normalize_product(raw)["description"] == "Fleece"
        raw["short_description"] = ""
        assert normalize_product(raw)["description"] == raw["name"]

    def test_slugify_trims_edges(self):
        assert slugify("  -- Irongate T-Shirt!! ") == "irongate-t-shirt"


class TestCatalogQueries:
    """Test cases for catalog queries."""

    @pytest.fixture
    def items(self):
        return [
            {"id": 1, "slug": "shooters-hoodie", "title": "Shooters Hoodie", "category": "hoodies"},
            {"id": 2, "slug": "irongate-jacket", "title": "Irongate Jacket", "category": "jackets"},
            {"id": 3, "slug": "decoded-hoodie", "title": "Decoded HOODIE", "category": "hoodies"},
            {"id": 4, "slug": "script-shorts", "title": "Script Shorts", "category": "shorts"},
            {"id": 5, "slug": "cobra-t-shirt", "title": "Cobra T-Shirt", "category": "t-shirts"},
        ]

    def test_find_by_slug(self, items):
        assert catalog.find_by_slug(items, "irongate-jacket")["id"] == 2
        assert catalog.find_by_slug(items, "missing") is None

    def test_filter_by_category(self, items):
        assert [i["id"] for i in catalog.filter_by_category(items, "hoodies")] == [1, 3]

    def test_search_is_case_insensitive_substring(self, items):
        assert [i["id"] for i in catalog.search(items, "hoodie")] == [1, 3]
        assert [i["id"] for i in catalog.search(items, "  GATE ")] == [2]

    def test_blank_search_matches_nothing(self, items):
        assert catalog.search(items, "   ") == []
        assert catalog.search(items, "") == []

    def test_filter_by_brand(self):
        items = [
            {"id": 1, "brand": "Trapstar"},
            {"id": 2, "brand": "Hellstar"},
            {"id": 3},
        ]
        assert [i["id"] for i in catalog.filter_by_brand(items, "trapstar")] == [1]
        assert catalog.filter_by_brand(items, "corteiz") == []

    def test_paginate(self, items):
        result = catalog.paginate(items, page=2, per_page=2)

        assert [i["id"] for i in result["products"]] == [3, 4]
        assert result["pagination"] == {
            "page": 2,
            "per_page": 2,
            "total_products": 5,
            "total_pages": 3,
            "has_next_page": True,
            "has_prev_page": True,
        }

    def test_paginate_past_end(self, items):
        result = catalog.paginate(items, page=9, per_page=2)
        assert result["products"] == []
        assert result["pagination"]["has_next_page"] is False

    def test_paginate_empty(self):
        result = catalog.paginate([], page=1, per_page=12)
        assert result["pagination"]["total_pages"] == 0
        assert result["pagination"]["has_prev_page"] is False

    def test_paginate_rejects_bad_arguments(self, items):
        with pytest.raises(ValidationError):
            catalog.paginate(items, page=0)
        with pytest.raises(ValidationError):
            catalog.paginate(items, page=1, per_page=0)
