"""
Tests for catalog configuration, TTL policy wiring and error payloads.
"""

import pytest

from service_catalog.app.caching import TtlClass, TtlPolicy
from service_catalog.app.caching import policy as policies
from shared.config import get_config
from shared.errors import DataSourceError, RegionNotFound
from shared.metrics import MetricsCollector


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STOREFRONT_TTL_SEARCH", "15")
    monkeypatch.setenv("STOREFRONT_CACHE_SINGLE_FLIGHT", "true")
    monkeypatch.setenv("STOREFRONT_REDIS_URL", "memory://")

    config = get_config("catalog", 8000)

    assert config.ttl_search == 15
    assert config.cache_single_flight is True
    assert config.redis_url == "memory://"
    assert TtlPolicy.from_config(config).seconds(TtlClass.SEARCH) == 15


def test_defaults():
    config = get_config("catalog", 8000)

    assert config.default_country == "US"
    assert config.country_cookie_name == "EGDATA_COUNTRY"
    assert config.cache_timeout_seconds == 0.5
    assert TtlPolicy.from_config(config).as_dict() == {
        "short_listing": 60,
        "aggregate_stats": 3600,
        "static_mapping": 86400,
        "search": 60,
        "price_snapshot": 3600,
    }


def test_non_positive_ttl_override_rejected():
    with pytest.raises(ValueError):
        TtlPolicy({TtlClass.SEARCH: 0})


def test_operation_policies_use_expected_ttl_classes():
    ttl = TtlPolicy()

    assert ttl.ttl_for(policies.OFFERS_LIST) == 60
    assert ttl.ttl_for(policies.FEATURED_DISCOUNTS) == 3600
    assert ttl.ttl_for(policies.OFFER_PRICE) == 3600
    assert ttl.ttl_for(policies.AUTOCOMPLETE) == 60
    assert ttl.ttl_for(policies.REGIONAL_PRICE) == 3600
    assert ttl.ttl_for(policies.PRICE_STATS) == 3600
    assert ttl.ttl_for(policies.MAPPINGS) == 86400


def test_every_ttl_class_has_an_operation():
    catalog_policies = [
        policies.OFFERS_LIST, policies.OFFER, policies.OFFER_PRICE, policies.OFFER_REGIONAL_PRICES,
        policies.REGIONAL_PRICE, policies.PRICE_HISTORY, policies.PRICE_HISTORY_ALL, policies.PRICE_STATS,
        policies.MAPPINGS, policies.UPCOMING, policies.LATEST_RELEASED, policies.FEATURED_DISCOUNTS,
        policies.SEARCH, policies.AUTOCOMPLETE,
    ]
    used = {policy.ttl_class for policy in catalog_policies}

    assert used == set(TtlClass)


def test_region_not_found_payload():
    error = RegionNotFound("ZZ")

    payload = error.to_response().model_dump()

    assert payload["code"] == "REGION_NOT_FOUND"
    assert payload["details"] == {"country": "ZZ"}
    assert repr(error) == "RegionNotFound('ZZ')"


def test_data_source_error_is_server_error():
    assert DataSourceError().status_code == 500


def test_metrics_collectors_do_not_share_registries():
    first = MetricsCollector("catalog")
    second = MetricsCollector("catalog")

    first.record_cache_result("offers-list", "hit")

    assert first.registry.get_sample_value(
        "cache_requests_total", {"operation": "offers-list", "result": "hit"}
    ) == 1.0
    assert second.registry.get_sample_value(
        "cache_requests_total", {"operation": "offers-list", "result": "hit"}
    ) is None
