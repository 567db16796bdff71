"""
Cache-aside execution of named read operations.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TYPE_CHECKING, Union

from shared.errors import SerializationError
from shared.logging import get_logger

from .keys import QueryParams, build_cache_key
from .policy import Cacheable, default_cacheable
from .store import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


FetchFn = Callable[[QueryParams], Awaitable[Any]]
Params = Union[QueryParams, Mapping[str, Any], None]

_MISS = object()


@dataclass(frozen=True)
class CachedResult:
    """Value returned by an execution and whether it came from the cache."""

    value: Any
    cached: bool
    key: str


class CachedQueryExecutor:
    """Run read operations through a cache-aside path.

    A hit returns the stored value without calling ``fetch``. A miss, a
    backend error, a timeout or an undecodable payload all fall through to
    ``fetch``; its result is written back when the operation's cacheability
    predicate accepts it. Cache write failures are logged and ignored.
    Fetch errors propagate unchanged and are never retried here.

    Without ``single_flight`` concurrent misses on one key each fetch and
    each write (last write wins). With it, they share a single in-flight
    load per key within this process.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        metrics: Optional["MetricsCollector"] = None,
        single_flight: bool = False,
        cache_timeout: Optional[float] = 0.5,
    ):
        self.store = store
        self.metrics = metrics
        self.single_flight = single_flight
        self.cache_timeout = cache_timeout
        self.logger = get_logger("catalog.cache")
        self._in_flight: Dict[str, "asyncio.Future[Any]"] = {}

    def cache_key(self, operation: str, params: Params = None) -> str:
        return build_cache_key(operation, params)

    async def execute(
        self,
        operation: str,
        params: Params,
        ttl_seconds: int,
        fetch: FetchFn,
        *,
        cacheable: Optional[Cacheable] = None,
    ) -> Any:
        """Return the operation result, from cache when possible."""
        result = await self.execute_with_status(
            operation, params, ttl_seconds, fetch, cacheable=cacheable
        )
        return result.value

    async def execute_with_status(
        self,
        operation: str,
        params: Params,
        ttl_seconds: int,
        fetch: FetchFn,
        *,
        cacheable: Optional[Cacheable] = None,
    ) -> CachedResult:
        self._check_ttl(ttl_seconds)
        record = QueryParams.coerce(params)
        key = build_cache_key(operation, record)

        cached = await self._read(operation, key)
        if cached is not _MISS:
            return CachedResult(value=cached, cached=True, key=key)

        value = await self._load(operation, key, record, ttl_seconds, fetch, cacheable)
        return CachedResult(value=value, cached=False, key=key)

    async def refresh(
        self,
        operation: str,
        params: Params,
        ttl_seconds: int,
        fetch: FetchFn,
        *,
        cacheable: Optional[Cacheable] = None,
    ) -> Any:
        """Fetch unconditionally and re-populate the key."""
        self._check_ttl(ttl_seconds)
        record = QueryParams.coerce(params)
        key = build_cache_key(operation, record)
        self.logger.info("Forcing cache refresh", operation=operation, key=key)
        return await self._fetch_and_store(operation, key, record, ttl_seconds, fetch, cacheable)

    async def _load(
        self,
        operation: str,
        key: str,
        record: QueryParams,
        ttl_seconds: int,
        fetch: FetchFn,
        cacheable: Optional[Cacheable],
    ) -> Any:
        if not self.single_flight:
            return await self._fetch_and_store(operation, key, record, ttl_seconds, fetch, cacheable)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._fetch_and_store(operation, key, record, ttl_seconds, fetch, cacheable)
            )
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
            self._report_in_flight()
        else:
            self.logger.debug("Joining in-flight fetch", operation=operation, key=key)

        # A cancelled caller must not cancel the load other callers are awaiting
        return await asyncio.shield(task)

    def _forget(self, key: str, task: "asyncio.Future[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved; every waiter has already seen it
            task.exception()
        self._report_in_flight()

    async def _fetch_and_store(
        self,
        operation: str,
        key: str,
        record: QueryParams,
        ttl_seconds: int,
        fetch: FetchFn,
        cacheable: Optional[Cacheable],
    ) -> Any:
        start = time.perf_counter()
        try:
            value = await fetch(record)
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "cache_fetch_duration_seconds",
                    time.perf_counter() - start,
                    operation=operation,
                )

        predicate = cacheable or default_cacheable
        if predicate(value):
            await self._write(operation, key, value, ttl_seconds)
        else:
            self.logger.debug("Result not cacheable, skipping write", operation=operation, key=key)
        return value

    async def _read(self, operation: str, key: str) -> Any:
        try:
            raw = await self._with_timeout(self.store.get(key))
        except Exception as exc:
            self.logger.warning("Cache read failed, treating as miss", key=key, error=str(exc))
            self._record(operation, "error")
            return _MISS

        if raw is None:
            self._record(operation, "miss")
            return _MISS

        try:
            value = self._decode(raw)
        except SerializationError as exc:
            self.logger.warning("Discarding malformed cache payload", key=key, error=exc.message)
            self._record(operation, "miss")
            return _MISS

        self._record(operation, "hit")
        return value

    async def _write(self, operation: str, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            payload = self._encode(value)
        except SerializationError as exc:
            self.logger.error("Result not serialisable, skipping write", key=key, error=exc.message)
            self._record(operation, "write_error")
            return

        try:
            await self._with_timeout(self.store.set(key, payload, ttl_seconds))
        except Exception as exc:
            self.logger.warning("Cache write failed", key=key, error=str(exc))
            self._record(operation, "write_error")
            return

        self.logger.debug("Cached value", key=key, ttl=ttl_seconds)

    async def _with_timeout(self, awaitable: Awaitable[Any]) -> Any:
        if self.cache_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.cache_timeout)

    @staticmethod
    def _encode(value: Any) -> str:
        try:
            return json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise SerializationError(str(exc)) from exc

    @staticmethod
    def _decode(raw: Any) -> Any:
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise SerializationError(str(exc)) from exc
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise SerializationError(str(exc)) from exc

    @staticmethod
    def _check_ttl(ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

    def _record(self, operation: str, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_result(operation, result)

    def _report_in_flight(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("in_flight_fetches", len(self._in_flight))
