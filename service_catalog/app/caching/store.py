"""
Key-value store adapters used by the cached query executor.
"""

import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import CacheBackendError
from shared.logging import get_logger

MEMORY_URL_SCHEME = "memory://"


class KeyValueStore(Protocol):
    """Minimal string store with per-key expiry."""

    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent or expired."""
        ...  # pragma: no cover

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        ...  # pragma: no cover


class RedisKeyValueStore:
    """Redis-backed store. Backend failures surface as CacheBackendError."""

    def __init__(self, redis_url: str, *, socket_timeout: float = 0.5):
        self.redis_url = redis_url
        self.logger = get_logger("catalog.cache.redis")
        self._redis = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
            health_check_interval=30,
        )

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except (RedisError, OSError) as exc:
            raise CacheBackendError("Redis read failed", {"key": key, "error": str(exc)}) from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as exc:
            raise CacheBackendError("Redis write failed", {"key": key, "error": str(exc)}) from exc

    async def ping(self) -> bool:
        """Return True when Redis responds to a ping."""
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError) as exc:
            self.logger.error("Redis health check failed", error=str(exc))
            return False

    async def close(self) -> None:
        """Close Redis connections."""
        await self._redis.aclose()


class MemoryKeyValueStore:
    """In-process store with TTL expiry against an injectable clock.

    Used for local runs (``memory://``) and tests; not shared between processes.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def create_store(url: str, *, socket_timeout: float = 0.5):
    """Build the store for a configured URL."""
    if url.startswith(MEMORY_URL_SCHEME):
        return MemoryKeyValueStore()
    return RedisKeyValueStore(url, socket_timeout=socket_timeout)
