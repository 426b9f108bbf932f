# src/storage/ttl_cache.py

"""In-memory TTL cache with stale-on-error fallback."""

import enum
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from src.config.settings import Settings

logger = logging.getLogger("listing_hub.cache")

Producer = Callable[[], Awaitable[Any]]


class CacheStatus(enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    EMPTY = "empty"


@dataclass
class CacheEntry:
    """Last successfully produced value for one key."""

    key: str
    value: Any
    fetched_at: float
    ttl: float
    status: CacheStatus = CacheStatus.FRESH

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl


@dataclass
class CacheResult:
    """Value served for a read plus how it was obtained."""

    value: Any
    status: CacheStatus
    error: BaseException | None = None


@dataclass
class CacheInfo:
    """Diagnostic snapshot of one key."""

    key: str
    has_value: bool
    age: float | None = None
    expired: bool = True
    expires_in: float | None = None


class TTLCacheStore:
    """Keyed store of producer results with per-key lifetimes.

    A fresh entry is served without touching the producer. An expired
    or missing entry triggers the producer; when it fails, the last
    good value is served instead (marked stale), or an empty value
    when nothing was ever cached. Entries are never evicted by age,
    only replaced or explicitly invalidated.

    Concurrent reads of the same expired key may each run the
    producer; the last one to finish wins.
    """

    def __init__(
        self,
        ttls: Mapping[str, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
        default_ttl: float | None = None,
    ) -> None:
        self._ttls: dict[str, float] = dict(
            ttls if ttls is not None else Settings.CACHE_TTLS
        )
        self._default_ttl = (
            default_ttl
            if default_ttl is not None
            else Settings.DEFAULT_CACHE_TTL
        )
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def ttl_for(self, key: str) -> float:
        return self._ttls.get(key, self._default_ttl)

    def entry(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def fetch(
        self,
        key: str,
        producer: Producer,
        *,
        ttl: float | None = None,
        empty_factory: Callable[[], Any] = list,
    ) -> CacheResult:
        """Serve *key*, refreshing through *producer* when needed.

        Never raises for producer failures; the failure is returned
        on :attr:`CacheResult.error`.
        """
        now = self._clock()
        current = self._entries.get(key)
        if current is not None and current.is_fresh(now):
            logger.debug(
                "Cache hit for '%s' (age %.1fs)", key, current.age(now)
            )
            return CacheResult(current.value, CacheStatus.FRESH)

        try:
            value = await producer()
        except Exception as exc:
            if current is not None:
                current.status = CacheStatus.STALE
                logger.warning(
                    "Refresh of '%s' failed, serving stale value "
                    "(age %.1fs): %s",
                    key,
                    current.age(self._clock()),
                    exc,
                    exc_info=True,
                )
                return CacheResult(current.value, CacheStatus.STALE, exc)
            logger.error(
                "Fetch of '%s' failed with nothing cached: %s",
                key,
                exc,
                exc_info=True,
            )
            return CacheResult(empty_factory(), CacheStatus.EMPTY, exc)

        self.put(key, value, ttl)
        logger.info("Cache stored '%s'", key)
        return CacheResult(value, CacheStatus.FRESH)

    async def get(
        self,
        key: str,
        producer: Producer,
        *,
        ttl: float | None = None,
        empty_factory: Callable[[], Any] = list,
    ) -> Any:
        """Like :meth:`fetch` but returns only the value."""
        result = await self.fetch(
            key, producer, ttl=ttl, empty_factory=empty_factory
        )
        return result.value

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value* directly, as if a producer had returned it."""
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            fetched_at=self._clock(),
            ttl=ttl if ttl is not None else self.ttl_for(key),
        )

    def invalidate(self, key: str) -> bool:
        """Drop *key*; returns whether anything was cached."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info("Cache invalidated '%s'", key)
        return removed

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache cleared (%d entries)", count)
        return count

    def info(self, key: str) -> CacheInfo:
        current = self._entries.get(key)
        if current is None:
            return CacheInfo(key=key, has_value=False)
        now = self._clock()
        age = current.age(now)
        return CacheInfo(
            key=key,
            has_value=True,
            age=age,
            expired=not current.is_fresh(now),
            expires_in=max(0.0, current.ttl - age),
        )
