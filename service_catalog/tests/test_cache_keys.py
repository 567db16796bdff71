"""
Unit tests for cache key derivation.
"""

import hashlib

import pytest

from service_catalog.app.caching.keys import (
    ALL_REGIONS,
    QueryParams,
    build_cache_key,
    canonical_json,
    filter_digest,
)


class TestBuildCacheKey:
    """Tests for build_cache_key."""

    def test_listing_key_shape(self):
        key = build_cache_key("offers-list", QueryParams(region="EURO", page=2, limit=10))

        assert key == "offers-list:EURO:2:10"

    def test_page_changes_key(self):
        page_one = build_cache_key("offers-list", QueryParams(region="EURO", page=1, limit=10))
        page_two = build_cache_key("offers-list", QueryParams(region="EURO", page=2, limit=10))

        assert page_one != page_two

    def test_region_changes_key(self):
        euro = build_cache_key("offers-list", QueryParams(region="EURO", page=1, limit=10))
        us = build_cache_key("offers-list", QueryParams(region="US", page=1, limit=10))

        assert euro != us

    def test_missing_region_uses_all(self):
        key = build_cache_key("offer", QueryParams(ids=("abc",)))

        assert key == f"offer:abc:{ALL_REGIONS}"

    def test_ids_are_included_in_order(self):
        key = build_cache_key("offer-price", QueryParams(ids=("a", "b"), region="US"))

        assert key == "offer-price:a:b:US"

    def test_partial_pagination_uses_placeholder(self):
        assert build_cache_key("latest-released", QueryParams(region="US", limit=25)) == "latest-released:US:-:25"

    def test_version_suffix(self):
        key = build_cache_key("featured-discounts", QueryParams(region="US", limit=20, version="v0.3"))

        assert key.endswith(":v0.3")
        assert key != build_cache_key("featured-discounts", QueryParams(region="US", limit=20, version="v0.2"))

    def test_same_params_same_key(self):
        params = {"region": "EURO", "page": 1, "limit": 10, "filters": {"title": "space", "tags": ["1", "2"]}}

        assert build_cache_key("search", params) == build_cache_key("search", dict(params))

    def test_filter_member_order_does_not_matter(self):
        first = build_cache_key("search", QueryParams(region="US", filters={"title": "x", "offerType": "DLC"}))
        second = build_cache_key("search", QueryParams(region="US", filters={"offerType": "DLC", "title": "x"}))

        assert first == second

    def test_none_filter_values_are_ignored(self):
        with_none = build_cache_key("search", QueryParams(region="US", filters={"title": "x", "tags": None}))
        without = build_cache_key("search", QueryParams(region="US", filters={"title": "x"}))

        assert with_none == without

    def test_all_none_filters_add_no_digest(self):
        key = build_cache_key("search", QueryParams(region="US", page=1, limit=10, filters={"title": None}))

        assert key == "search:US:1:10"

    def test_filter_values_change_key(self):
        first = build_cache_key("search", QueryParams(region="US", filters={"title": "x"}))
        second = build_cache_key("search", QueryParams(region="US", filters={"title": "y"}))

        assert first != second

    def test_digest_is_md5_of_canonical_json(self):
        filters = {"title": "x", "offerType": "DLC"}
        expected = hashlib.md5(b'{"offerType":"DLC","title":"x"}').hexdigest()

        assert filter_digest(filters) == expected
        assert build_cache_key("search", QueryParams(filters=filters)) == f"search:all:{expected}"

    @pytest.mark.parametrize("operation", ["", "bad:name"])
    def test_invalid_operation_rejected(self, operation):
        with pytest.raises(ValueError):
            build_cache_key(operation, None)


class TestQueryParams:

    def test_coerce_none(self):
        assert QueryParams.coerce(None) == QueryParams()

    def test_coerce_folds_unknown_keys_into_filters(self):
        record = QueryParams.coerce({"region": "US", "term": "hal", "filters": {"kind": "x"}})

        assert record.region == "US"
        assert record.filters == {"kind": "x", "term": "hal"}

    def test_coerce_single_id_string(self):
        assert QueryParams.coerce({"ids": "abc"}).ids == ("abc",)

    def test_coerce_returns_record_unchanged(self):
        record = QueryParams(region="US")

        assert QueryParams.coerce(record) is record

    def test_with_version(self):
        record = QueryParams(region="US", page=1, limit=10)

        versioned = record.with_version("v0.1")

        assert versioned.version == "v0.1"
        assert versioned.region == "US"
        assert record.with_version(None) is record


def test_canonical_json_sorts_and_strips_nested_none():
    value = {"b": 1, "a": {"d": None, "c": [1, {"e": None, "f": 2}]}}

    assert canonical_json(value) == '{"a":{"c":[1,{"f":2}]},"b":1}'
