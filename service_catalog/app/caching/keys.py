"""
Cache key derivation.

Keys have the shape::

    <operation>[:<id>...]:<region|all>[:<page>:<limit>][:<filter-digest>][:<version>]

The filter digest is the MD5 hex digest of the canonical JSON form of the
filter object. MD5 is used for compactness only; collisions are possible in
principle and are not detected. Bump the version token whenever the cached
payload shape changes so old entries are never read back.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

ALL_REGIONS = "all"

_KNOWN_FIELDS = ("ids", "region", "page", "limit", "filters", "version")


@dataclass(frozen=True)
class QueryParams:
    """Typed parameter record for a cached read operation."""

    ids: Tuple[str, ...] = ()
    region: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    filters: Optional[Mapping[str, Any]] = None
    version: Optional[str] = None

    @classmethod
    def coerce(cls, params: Union["QueryParams", Mapping[str, Any], None]) -> "QueryParams":
        """Build a record from a loose parameter bag.

        Keys other than the known fields are folded into ``filters``.
        """
        if params is None:
            return cls()
        if isinstance(params, QueryParams):
            return params

        known = {name: params[name] for name in _KNOWN_FIELDS if name in params}
        leftovers = {key: value for key, value in params.items() if key not in _KNOWN_FIELDS}
        if leftovers:
            filters = dict(known.get("filters") or {})
            filters.update(leftovers)
            known["filters"] = filters
        if "ids" in known:
            ids = known["ids"]
            known["ids"] = (ids,) if isinstance(ids, str) else tuple(ids)
        return cls(**known)

    def with_version(self, version: Optional[str]) -> "QueryParams":
        if version is None or self.version == version:
            return self
        return QueryParams(
            ids=self.ids,
            region=self.region,
            page=self.page,
            limit=self.limit,
            filters=self.filters,
            version=version,
        )


def canonical_json(value: Any) -> str:
    """Stable JSON form: sorted keys, no whitespace, ``None`` members dropped."""
    return json.dumps(_strip_none(value), sort_keys=True, separators=(",", ":"), default=str)


def filter_digest(filters: Mapping[str, Any]) -> str:
    return hashlib.md5(canonical_json(filters).encode("utf-8")).hexdigest()


def build_cache_key(operation: str, params: Union[QueryParams, Mapping[str, Any], None] = None) -> str:
    """Derive the cache key for an operation and its parameters."""
    if not operation or ":" in operation:
        raise ValueError("operation must be a non-empty name without ':'")

    record = QueryParams.coerce(params)
    parts = [operation]
    parts.extend(str(item) for item in record.ids)
    parts.append(record.region or ALL_REGIONS)

    if record.page is not None or record.limit is not None:
        parts.append("-" if record.page is None else str(record.page))
        parts.append("-" if record.limit is None else str(record.limit))

    if record.filters:
        cleaned = _strip_none(dict(record.filters))
        if cleaned:
            parts.append(filter_digest(cleaned))

    if record.version:
        parts.append(record.version)

    return ":".join(parts)


def _strip_none(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _strip_none(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [_strip_none(item) for item in value]
    return value
