"""
Catalog caching package.

Cache-aside execution over a shared key-value store. Keys are derived
from typed parameter records and carry a schema-version token; entries
expire by TTL only.
"""

from .executor import CachedQueryExecutor, CachedResult
from .keys import QueryParams, build_cache_key
from .policy import OperationPolicy, TtlClass, TtlPolicy, default_cacheable, non_empty
from .store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore, create_store

__all__ = [
    "CachedQueryExecutor",
    "CachedResult",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "OperationPolicy",
    "QueryParams",
    "RedisKeyValueStore",
    "TtlClass",
    "TtlPolicy",
    "build_cache_key",
    "create_store",
    "default_cacheable",
    "non_empty",
]
