import json
import logging
import time
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from blog.config import settings

logger = logging.getLogger(__name__)

# Keys evicted on every article or comment mutation.
LISTING_KEY = "articles.index"
STATS_KEY = "stats"
CONTENT_KEYS: tuple[str, ...] = (LISTING_KEY, STATS_KEY)


class MemoryStore:
    """
    In-process key/value store with per-key expiry.

    Values are kept as the same JSON strings the Redis store would hold so
    both backends hand back identically shaped data.  *clock* defaults to
    ``time.monotonic`` and can be replaced to step time forward in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[float | None, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        expires_at = self._clock() + ex if ex else None
        self._data[key] = (expires_at, value)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._data.clear()


class CacheManager:
    """
    Key/value cache shared by every request, with explicit TTLs and
    explicit invalidation.

    Backed by Redis in production or by a ``MemoryStore``.  All public
    methods are safe to call when the backend is unavailable: reads return
    None and writes are skipped, so a cache outage never fails a request.
    """

    def __init__(self, backend: str = "redis", url: str | None = None, store=None) -> None:
        self.backend = backend
        self._url = url or settings.REDIS_URL
        self._store = store
        self._hits: int = 0
        self._misses: int = 0

    @classmethod
    def in_memory(cls, clock: Callable[[], float] = time.monotonic) -> "CacheManager":
        return cls(backend="memory", store=MemoryStore(clock))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the backend.  Called once at application startup."""
        if self._store is not None:
            return
        if self.backend == "memory":
            self._store = MemoryStore()
            logger.info("Using in-process memory cache")
            return

        self._store = redis.from_url(
            self._url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._store.ping()
            logger.info("Redis connected: %s", self._url)
        except RedisError as exc:
            logger.warning("Redis ping failed, cache degraded to misses: %s", exc)

    async def disconnect(self) -> None:
        if self._store is not None:
            await self._store.aclose()
            self._store = None

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any:
        """Return the cached value for *key*, or None on a miss or backend error."""
        if self._store is None:
            self._misses += 1
            return None
        try:
            data = await self._store.get(key)
        except RedisError as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            data = None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key* for *ttl* seconds (no expiry when None)."""
        if self._store is None:
            return
        try:
            await self._store.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def forget(self, *keys: str) -> None:
        if self._store is None or not keys:
            return
        try:
            await self._store.delete(*keys)
            logger.debug("Cache evicted %s", ", ".join(keys))
        except RedisError as exc:
            logger.warning("Cache DELETE error for keys=%r: %s", keys, exc)

    async def remember(self, key: str, ttl: int, producer: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for *key*; on a miss await *producer*,
        store its result for *ttl* seconds and return it.

        Empty collections are cached like any other value.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await producer()
        await self.put(key, value, ttl=ttl)
        return value

    async def invalidate_content(self) -> None:
        """Evict the listing and stats entries after any article or comment write."""
        await self.forget(*CONTENT_KEYS)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Snapshot of hit/miss counters."""
        total = self._hits + self._misses
        return {
            "backend": self.backend,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Process-wide instance, handed to request handlers through ``get_cache``.
cache = CacheManager(backend=settings.CACHE_BACKEND)
