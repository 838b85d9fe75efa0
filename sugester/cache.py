"""Cache-aside layer: Redis primary, in-memory fallback, and the key contract.

Keys:

    ac:<normalized query>                      autocomplete
    sr:<normalized query>:<8 hex digest>       search (digest of filters, sort, page)
    trending:<limit>                           trending products
"""
from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)

AUTOCOMPLETE_PREFIX = "ac:"
SEARCH_PREFIX = "sr:"
TRENDING_PREFIX = "trending:"
FLUSH_PREFIXES = (AUTOCOMPLETE_PREFIX, SEARCH_PREFIX)

SEARCH_TTL = 60
# Short prefixes ("c", "ca") repeat across users far more than long queries.
AUTOCOMPLETE_TTL_TIERS = ((2, 300), (4, 120))
AUTOCOMPLETE_TTL_DEFAULT = 60

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_cache_query(text: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", (text or "").lower().strip())


def filters_digest(filters: Mapping[str, Any], sort: str, page: int) -> str:
    payload = json.dumps(
        {**filters, "sort": sort, "page": page},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.md5(payload.encode("utf-8")).hexdigest()[:8]


def autocomplete_key(text: str | None) -> str:
    return AUTOCOMPLETE_PREFIX + normalize_cache_query(text)


def search_key(text: str | None, filters: Mapping[str, Any], sort: str = "relevance", page: int = 1) -> str:
    return f"{SEARCH_PREFIX}{normalize_cache_query(text)}:{filters_digest(filters, sort, page)}"


def trending_key(limit: int) -> str:
    return f"{TRENDING_PREFIX}{limit}"


def autocomplete_ttl(text: str | None) -> int:
    length = len(normalize_cache_query(text))
    for max_length, ttl in AUTOCOMPLETE_TTL_TIERS:
        if length <= max_length:
            return ttl
    return AUTOCOMPLETE_TTL_DEFAULT


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...

    def flush(self, prefixes: Iterable[str] = FLUSH_PREFIXES) -> int: ...


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis get failed: %s", exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value, ensure_ascii=False))
        except redis.RedisError as exc:
            logger.warning("Redis set failed: %s", exc)

    def flush(self, prefixes: Iterable[str] = FLUSH_PREFIXES) -> int:
        removed = 0
        try:
            for prefix in prefixes:
                keys = list(self.client.scan_iter(match=f"{prefix}*"))
                if keys:
                    removed += self.client.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("Redis flush failed: %s", exc)
        return removed


class InMemoryCache:
    def __init__(self) -> None:
        self._store: Dict[str, tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at < time.time():
                self._store.pop(key, None)
                return None
            return payload

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._store[key] = (time.time() + ttl, value)

    def flush(self, prefixes: Iterable[str] = FLUSH_PREFIXES) -> int:
        prefixes = tuple(prefixes)
        with self._lock:
            stale = [key for key in self._store if key.startswith(prefixes)]
            for key in stale:
                del self._store[key]
        return len(stale)


class NullCache:
    """Used when caching is switched off; every lookup misses."""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        return None

    def flush(self, prefixes: Iterable[str] = FLUSH_PREFIXES) -> int:
        return 0


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _cache
    if _cache is not None:
        return _cache
    if not settings.cache_enabled:
        logger.info("Caching disabled")
        _cache = NullCache()
        return _cache
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", settings.redis_host, settings.redis_port)
        _cache = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        _cache = InMemoryCache()
    return _cache
