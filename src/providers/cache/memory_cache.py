"""In-memory cache provider using ``cachetools.TLRUCache``.

Holds chat answers for single-process deployments.  Each entry carries its
own time-to-live, falling back to the default given at construction.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import TLRUCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory cache with per-entry expiry.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds, used when :meth:`set` is called
        without one.
    timer:
        Clock used for expiry.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: int = 300,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = ttl
        # Values are stored as (value, ttl) so the expiry function can read
        # the per-entry lifetime.
        self._cache: TLRUCache[str, tuple[Any, int]] = TLRUCache(
            maxsize=max_size,
            ttu=self._time_to_use,
            timer=timer,
        )

    def _time_to_use(self, _key: str, entry: tuple[Any, int], now: float) -> float:
        return now + entry[1]

    async def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry[0]

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        lifetime = ttl if ttl is not None else self._default_ttl
        if lifetime <= 0:
            self._cache.pop(key, None)
            return
        self._cache[key] = (value, lifetime)
        logger.debug("cache_set", key=key, ttl=lifetime)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        return key in self._cache
