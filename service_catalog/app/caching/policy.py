"""
TTL classes and per-operation cache policy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from shared.config import BaseConfig


class TtlClass(str, Enum):
    SHORT_LISTING = "short_listing"
    AGGREGATE_STATS = "aggregate_stats"
    STATIC_MAPPING = "static_mapping"
    SEARCH = "search"
    PRICE_SNAPSHOT = "price_snapshot"


DEFAULT_TTLS: Dict[TtlClass, int] = {
    TtlClass.SHORT_LISTING: 60,
    TtlClass.AGGREGATE_STATS: 3600,
    TtlClass.STATIC_MAPPING: 86400,
    TtlClass.SEARCH: 60,
    TtlClass.PRICE_SNAPSHOT: 3600,
}


def default_cacheable(value: Any) -> bool:
    """Cache everything except a missing result.

    Empty lists and pages are valid answers and are cached.
    """
    return value is not None


def non_empty(value: Any) -> bool:
    """Cache only results that contain something.

    For operations whose empty answer is usually transient (autocomplete,
    regional groupings that are still being populated).
    """
    if value is None:
        return False
    if isinstance(value, (list, tuple, dict, set, str)):
        return len(value) > 0
    return True


Cacheable = Callable[[Any], bool]


@dataclass(frozen=True)
class OperationPolicy:
    """How one named read operation is cached."""

    name: str
    ttl_class: TtlClass
    version: Optional[str] = None
    cacheable: Cacheable = default_cacheable


class TtlPolicy:
    """Resolves TTL classes to seconds, overridable from configuration."""

    def __init__(self, overrides: Optional[Mapping[TtlClass, int]] = None):
        self._ttls: Dict[TtlClass, int] = dict(DEFAULT_TTLS)
        if overrides:
            for ttl_class, seconds in overrides.items():
                if seconds <= 0:
                    raise ValueError(f"TTL for {ttl_class.value} must be positive")
                self._ttls[ttl_class] = int(seconds)

    @classmethod
    def from_config(cls, config: BaseConfig) -> "TtlPolicy":
        return cls({
            TtlClass.SHORT_LISTING: config.ttl_short_listing,
            TtlClass.AGGREGATE_STATS: config.ttl_aggregate_stats,
            TtlClass.STATIC_MAPPING: config.ttl_static_mapping,
            TtlClass.SEARCH: config.ttl_search,
            TtlClass.PRICE_SNAPSHOT: config.ttl_price_snapshot,
        })

    def seconds(self, ttl_class: TtlClass) -> int:
        return self._ttls[ttl_class]

    def ttl_for(self, policy: OperationPolicy) -> int:
        return self._ttls[policy.ttl_class]

    def as_dict(self) -> Dict[str, int]:
        return {ttl_class.value: seconds for ttl_class, seconds in self._ttls.items()}


OFFERS_LIST = OperationPolicy("offers-list", TtlClass.SHORT_LISTING, "v0.1")
OFFER = OperationPolicy("offer", TtlClass.SHORT_LISTING, "v0.1")
OFFER_PRICE = OperationPolicy("offer-price", TtlClass.PRICE_SNAPSHOT, "v0.1")
OFFER_REGIONAL_PRICES = OperationPolicy("offer-regional-prices", TtlClass.PRICE_SNAPSHOT, "v0.1", non_empty)
REGIONAL_PRICE = OperationPolicy("regional-price", TtlClass.PRICE_SNAPSHOT, "v0.2")
PRICE_HISTORY = OperationPolicy("price-history", TtlClass.PRICE_SNAPSHOT, "v0.1")
PRICE_HISTORY_ALL = OperationPolicy("price-history", TtlClass.PRICE_SNAPSHOT, "v0.1", non_empty)
PRICE_STATS = OperationPolicy("price-stats", TtlClass.AGGREGATE_STATS, "v0.1")
MAPPINGS = OperationPolicy("mappings", TtlClass.STATIC_MAPPING, "v0.1")
UPCOMING = OperationPolicy("upcoming", TtlClass.SHORT_LISTING, "v0.1")
LATEST_RELEASED = OperationPolicy("latest-released", TtlClass.SHORT_LISTING, "v0.1")
FEATURED_DISCOUNTS = OperationPolicy("featured-discounts", TtlClass.AGGREGATE_STATS, "v0.3")
SEARCH = OperationPolicy("search", TtlClass.SEARCH, "v0.1")
AUTOCOMPLETE = OperationPolicy("autocomplete", TtlClass.SEARCH, "v0.1", non_empty)
