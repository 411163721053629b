"""Query cache with tag-based invalidation and graceful degradation."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, Protocol, TypeVar, runtime_checkable

import redis

from news_aggregator.config import CacheSettings
from news_aggregator.query.filters import FilterSpecification

logger = logging.getLogger(__name__)

T = TypeVar("T")

TAG_ARTICLES = "articles"
TAG_SOURCES = "sources"
TAG_CATEGORIES = "categories"
TAG_METADATA = "metadata"


class CacheScope(StrEnum):
    ARTICLES = "articles"
    SOURCES = "sources"
    CATEGORIES = "categories"
    METADATA = "metadata"
    ALL = "all"


@runtime_checkable
class CacheBackend(Protocol):
    """Plain key/value store with per-entry TTL."""

    driver: str

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    def forget(self, key: str) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        raise NotImplementedError


@runtime_checkable
class TagAwareCacheBackend(CacheBackend, Protocol):
    """Backend that can group entries under tags and drop them together."""

    def set_tagged(self, key: str, value: Any, ttl: int, tags: Iterable[str]) -> None:
        raise NotImplementedError

    def flush_tags(self, tags: Iterable[str]) -> None:
        raise NotImplementedError


class InMemoryCacheBackend:
    """Thread-safe in-process cache; tag index only when ``tagging`` is on."""

    driver = "memory"

    def __init__(self, *, tagging: bool = False, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[float, str]] = {}
        self._tags: dict[str, set[str]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._tagging = tagging
        if tagging:
            # Bound per instance so the protocol check reflects the capability.
            self.set_tagged = self._set_tagged
            self.flush_tags = self._flush_tags

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl: int) -> None:
        payload = json.dumps(value)
        with self._lock:
            self._entries[key] = (self._clock() + ttl, payload)

    def forget(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _set_tagged(self, key: str, value: Any, ttl: int, tags: Iterable[str]) -> None:
        self.set(key, value, ttl)
        with self._lock:
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

    def _flush_tags(self, tags: Iterable[str]) -> None:
        with self._lock:
            for tag in tags:
                for key in self._tags.pop(tag, set()):
                    self._entries.pop(key, None)


class RedisCacheBackend:
    """redis-py backend; tags are Redis sets named ``tag:<name>``."""

    driver = "redis"

    def __init__(self, client: redis.Redis, *, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "") -> RedisCacheBackend:
        return cls(redis.Redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    def get(self, key: str) -> Any | None:
        payload = self._client.get(self._prefix + key)
        if payload is None:
            return None
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._client.set(self._prefix + key, json.dumps(value), ex=ttl)

    def forget(self, key: str) -> None:
        self._client.delete(self._prefix + key)

    def flush(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
        if keys:
            self._client.delete(*keys)

    def set_tagged(self, key: str, value: Any, ttl: int, tags: Iterable[str]) -> None:
        pipe = self._client.pipeline()
        pipe.set(self._prefix + key, json.dumps(value), ex=ttl)
        for tag in tags:
            pipe.sadd(self._tag_key(tag), self._prefix + key)
        pipe.execute()

    def flush_tags(self, tags: Iterable[str]) -> None:
        for tag in tags:
            tag_key = self._tag_key(tag)
            members = list(self._client.smembers(tag_key))
            if members:
                self._client.delete(*members)
            self._client.delete(tag_key)

    def _tag_key(self, tag: str) -> str:
        return f"{self._prefix}tag:{tag}"


class CacheKeyStrategy:
    """Deterministic cache keys for query specifications and metadata."""

    SOURCES_KEY = "sources:all"
    CATEGORIES_KEY = "categories:all"

    @staticmethod
    def key(filters: FilterSpecification | Mapping[str, Any]) -> str:
        """Page-independent key: identical filters always hash the same way."""

        raw = filters.as_filters() if isinstance(filters, FilterSpecification) else dict(filters)
        normalized: dict[str, Any] = {}
        for name in sorted(raw):
            value = raw[name]
            if name == "page" or value is None:
                continue
            normalized[name] = _normalize_value(value)
        encoded = json.dumps(normalized, sort_keys=True, separators=(",", ":"))
        digest = hashlib.md5(encoded.encode("utf-8"), usedforsecurity=False).hexdigest()  # noqa: S324
        return f"query:{digest}"

    @classmethod
    def slot(cls, spec: FilterSpecification) -> str:
        return f"{cls.key(spec)}:page:{spec.page}"

    @staticmethod
    def article_key(article_id: int) -> str:
        return f"article:{article_id}"


def _normalize_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list | tuple | set | frozenset):
        return sorted(str(item) for item in value)
    return value


_SCOPE_TAGS: dict[CacheScope, tuple[str, ...]] = {
    CacheScope.ARTICLES: (TAG_ARTICLES,),
    CacheScope.SOURCES: (TAG_SOURCES,),
    CacheScope.CATEGORIES: (TAG_CATEGORIES,),
    CacheScope.METADATA: (TAG_METADATA,),
}

_SCOPE_KEYS: dict[CacheScope, tuple[str, ...]] = {
    CacheScope.ARTICLES: (),
    CacheScope.SOURCES: (CacheKeyStrategy.SOURCES_KEY,),
    CacheScope.CATEGORIES: (CacheKeyStrategy.CATEGORIES_KEY,),
    CacheScope.METADATA: (CacheKeyStrategy.SOURCES_KEY, CacheKeyStrategy.CATEGORIES_KEY),
}


@dataclass(slots=True)
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class TaggedCache:
    """Read-through cache used by query services and invalidated by ingestion.

    Whether the backend supports tags is fixed at construction. Without tags,
    query results cannot be purged selectively and simply expire by TTL.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        supports_tags: bool | None = None,
        enabled: bool = True,
        query_ttl_seconds: int = 1_800,
        metadata_ttl_seconds: int = 3_600,
        article_ttl_seconds: int = 7_200,
    ) -> None:
        self.backend = backend
        if supports_tags is None:
            supports_tags = isinstance(backend, TagAwareCacheBackend)
        self.supports_tags = supports_tags
        self.enabled = enabled
        self.query_ttl_seconds = query_ttl_seconds
        self.metadata_ttl_seconds = metadata_ttl_seconds
        self.article_ttl_seconds = article_ttl_seconds
        self._locks: dict[str, _KeyLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> TaggedCache:
        backend: CacheBackend
        if settings.backend == "redis":
            backend = RedisCacheBackend.from_url(settings.redis_url, key_prefix=settings.key_prefix)
        else:
            backend = InMemoryCacheBackend(tagging=True)
        return cls(
            backend,
            enabled=settings.enabled,
            query_ttl_seconds=settings.query_ttl_seconds,
            metadata_ttl_seconds=settings.metadata_ttl_seconds,
            article_ttl_seconds=settings.article_ttl_seconds,
        )

    def remember_query(self, key: str, producer: Callable[[], T], ttl: int | None = None) -> T:
        return self._remember(key, producer, ttl or self.query_ttl_seconds, (TAG_ARTICLES,))

    def remember_article(self, key: str, producer: Callable[[], T], ttl: int | None = None) -> T:
        return self._remember(key, producer, ttl or self.article_ttl_seconds, (TAG_ARTICLES,))

    def remember_metadata(
        self,
        key: str,
        producer: Callable[[], T],
        tag: str,
        ttl: int | None = None,
    ) -> T:
        return self._remember(key, producer, ttl or self.metadata_ttl_seconds, (tag, TAG_METADATA))

    def invalidate(self, scope: CacheScope | str) -> None:
        """Drop entries of one scope; failures are logged, never raised."""

        scope = CacheScope(scope)
        if scope is CacheScope.ALL:
            self.clear_all()
            return
        try:
            if self.supports_tags:
                self.backend.flush_tags(_SCOPE_TAGS[scope])  # type: ignore[attr-defined]
                return
            keys = _SCOPE_KEYS[scope]
            if not keys:
                logger.warning(
                    "Cache backend %s has no tag support; %s entries expire by TTL only",
                    self.backend.driver,
                    scope.value,
                )
            for key in keys:
                self.backend.forget(key)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Cache invalidation of %s failed: %s", scope.value, exc)
        else:
            logger.info("Cache scope %s invalidated", scope.value)

    def clear_all(self) -> None:
        try:
            self.backend.flush()
        except (redis.RedisError, OSError) as exc:
            logger.warning("Cache flush failed: %s", exc)
        else:
            logger.info("Cache flushed")

    def stats(self) -> dict[str, Any]:
        return {
            "driver": self.backend.driver,
            "enabled": self.enabled,
            "supports_tags": self.supports_tags,
            "ttl": {
                "query": self.query_ttl_seconds,
                "metadata": self.metadata_ttl_seconds,
                "article": self.article_ttl_seconds,
            },
        }

    def _remember(
        self,
        key: str,
        producer: Callable[[], T],
        ttl: int,
        tags: tuple[str, ...],
    ) -> T:
        if not self.enabled:
            return producer()
        cached = self._safe_get(key)
        if cached is not None:
            return cached
        with self._key_lock(key):
            cached = self._safe_get(key)
            if cached is not None:
                return cached
            value = producer()
            self._safe_put(key, value, ttl, tags)
            return value

    def _safe_get(self, key: str) -> Any | None:
        try:
            return self.backend.get(key)
        except (redis.RedisError, OSError, ValueError) as exc:
            logger.warning("Cache read of %s failed: %s", key, exc)
            return None

    def _safe_put(self, key: str, value: Any, ttl: int, tags: tuple[str, ...]) -> None:
        try:
            if self.supports_tags:
                self.backend.set_tagged(key, value, ttl, tags)  # type: ignore[attr-defined]
            else:
                self.backend.set(key, value, ttl)
        except (redis.RedisError, OSError, TypeError) as exc:
            logger.warning("Cache write of %s failed: %s", key, exc)

    @contextmanager
    def _key_lock(self, key: str) -> Iterator[None]:
        """Hold the lock for key; it is dropped once no caller waits on it."""

        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[key]
