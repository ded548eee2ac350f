"""Cache of serialized search responses, keyed by query text and paging.

Entries live in Redis when it answers a ping at first use and in process
memory otherwise. A rotation clears every entry under ``KEY_PREFIX`` so that
results computed against a retired index are never served again.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Protocol, Tuple

import redis

from .config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "search:"

Payload = Dict[str, Any]


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Payload]: ...

    def set(self, key: str, value: Payload, ttl: int) -> None: ...

    def clear(self) -> None: ...


def cache_key(text: str, page: int, size: int) -> str:
    payload = json.dumps({"q": text, "page": page, "size": size}, sort_keys=True)
    return KEY_PREFIX + hashlib.sha1(payload.encode("utf-8")).hexdigest()


class RedisCache:
    """JSON payloads stored with ``SETEX``; Redis outages degrade to cache misses."""

    def __init__(self, client: redis.Redis, prefix: str = KEY_PREFIX) -> None:
        self.client = client
        self.prefix = prefix

    def get(self, key: str) -> Optional[Payload]:
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Cache read for %s failed: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Dropping undecodable cache entry %s", key)
            return None

    def set(self, key: str, value: Payload, ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.RedisError as exc:
            logger.warning("Cache write for %s failed: %s", key, exc)

    def clear(self) -> None:
        removed = 0
        try:
            for key in self.client.scan_iter(match=f"{self.prefix}*"):
                removed += self.client.delete(key)
        except redis.RedisError as exc:
            logger.warning("Clearing %s* from Redis failed after %s keys: %s", self.prefix, removed, exc)
            return
        logger.info("Cleared %s cached search responses", removed)


class InMemoryCache:
    def __init__(self) -> None:
        self._store: Dict[str, Tuple[float, Payload]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Payload]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            deadline, payload = entry
            if time.monotonic() >= deadline:
                del self._store[key]
                return None
            return payload

    def set(self, key: str, value: Payload, ttl: int) -> None:
        with self._lock:
            self._store[key] = (time.monotonic() + ttl, value)

    def clear(self) -> None:
        with self._lock:
            removed = len(self._store)
            self._store.clear()
        logger.info("Cleared %s cached search responses", removed)


_backend: Optional[CacheBackend] = None


def _connect() -> CacheBackend:
    client = redis.Redis(host=settings.redis_host, port=settings.redis_port)
    try:
        client.ping()
    except redis.RedisError as exc:
        logger.warning(
            "Redis at %s:%s unavailable (%s), caching in memory",
            settings.redis_host,
            settings.redis_port,
            exc,
        )
        return InMemoryCache()
    logger.info("Caching search responses in Redis at %s:%s", settings.redis_host, settings.redis_port)
    return RedisCache(client)


def get_cache() -> CacheBackend:
    """Process-wide cache backend, chosen on first use."""
    global _backend
    if _backend is None:
        _backend = _connect()
    return _backend
