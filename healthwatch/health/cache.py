"""Status cache — JSON values with a per-key TTL.

Two backends share one contract:
  RedisStatusCache   redis-py client, for multi-process deployments
  MemoryStatusCache  cachetools TLRUCache, for single-process runs and tests

The cache only ever holds derived state. When the backend is unreachable
every operation degrades to a miss / no-op and logs a warning, so callers
fall through to the result store or a fresh probe.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, NamedTuple

import redis
from cachetools import TLRUCache

from healthwatch.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SERVICE_LIST_KEY = "service_list"
METRICS_KEY = "service_metrics"


def service_status_key(service_id: int) -> str:
    return f"service_status:{service_id}"


class StatusCache(ABC):
    """Fail-soft JSON cache. Subclasses provide raw string storage."""

    # Backend errors that mean "cache unavailable" rather than a bug.
    unavailable_errors: tuple[type[BaseException], ...] = ()

    @abstractmethod
    def _get(self, key: str) -> str | None: ...

    @abstractmethod
    def _set(self, key: str, raw: str, ttl_seconds: int) -> None: ...

    @abstractmethod
    def _delete(self, key: str) -> None: ...

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss / expiry / outage."""
        try:
            raw = self._get(key)
        except self.unavailable_errors as e:
            logger.warning("Cache GET %s failed, treating as miss: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        raw = json.dumps(value)
        try:
            self._set(key, raw, ttl_seconds)
        except self.unavailable_errors as e:
            logger.warning("Cache SET %s failed: %s", key, e)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self._delete(key)
        except self.unavailable_errors as e:
            logger.warning("Cache DELETE %s failed: %s", key, e)
            return False
        return True

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class RedisStatusCache(StatusCache):
    """Redis-backed cache. The client is injected; this class never creates a global."""

    unavailable_errors = (redis.RedisError, OSError)

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> RedisStatusCache:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def _get(self, key: str) -> str | None:
        return self._client.get(key)

    def _set(self, key: str, raw: str, ttl_seconds: int) -> None:
        self._client.setex(key, ttl_seconds, raw)

    def _delete(self, key: str) -> None:
        self._client.delete(key)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except self.unavailable_errors as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    def close(self) -> None:
        try:
            self._client.close()
        except self.unavailable_errors as e:
            logger.warning("Error closing Redis connection: %s", e)


class _Entry(NamedTuple):
    raw: str
    ttl: float


def _expires_at(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryStatusCache(StatusCache):
    """In-process cache with per-key TTL."""

    def __init__(
        self,
        maxsize: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: TLRUCache[str, _Entry] = TLRUCache(maxsize, ttu=_expires_at, timer=timer)
        self._lock = threading.Lock()

    def _get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
        return entry.raw if entry is not None else None

    def _set(self, key: str, raw: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = _Entry(raw, ttl_seconds)

    def _delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


def create_cache(config: Settings | None = None) -> StatusCache:
    """Build the configured cache backend."""
    config = config or default_settings
    if config.cache_backend == "memory":
        logger.info("Using in-process status cache")
        return MemoryStatusCache(maxsize=config.cache_max_entries)
    if config.cache_backend != "redis":
        raise ValueError(f"Unknown cache backend: {config.cache_backend}")

    cache = RedisStatusCache.from_url(config.redis_url, config.redis_socket_timeout)
    if cache.ping():
        logger.info("Redis status cache connected: %s", config.redis_url)
    else:
        logger.warning("Redis unreachable at %s — running with caching degraded", config.redis_url)
    return cache
