"""Cache-aside reads with optional stampede control.

A read tries the cache first and falls back to the loader on a miss. Cache
failures never fail the read: decode and transport errors are logged and the
loader answers. With the rebuild lock enabled, only the caller that wins
``set_if_absent(<key>:lock)`` loads straight away; the others wait briefly and
re-read the cache once before loading themselves.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from anime_api.core.exceptions import CacheError
from anime_api.core.logger import LogFormat
from anime_api.services.cache.child_separation import ChildSeparatingJsonCache
from anime_api.services.cache.key_builder import CacheKeyBuilder
from anime_api.services.cache.kv_store import MISS

if TYPE_CHECKING:
    from anime_api.services.cache.cache_protocol import JsonCache

LOCK_VALUE = b"1"

T = TypeVar("T")


class CacheAside:
    """Read-through helper over a ``JsonCache``."""

    def __init__(
        self,
        cache: JsonCache,
        logger: logging.Logger | None = None,
        *,
        lock_enabled: bool = False,
        lock_ttl: float = 30,
        lock_wait: float = 0.05,
    ) -> None:
        """Initialize the helper.

        Args:
            cache: Top cache layer
            logger: Logger for cache fallbacks
            lock_enabled: Take the advisory rebuild lock before loading
            lock_ttl: Seconds before an abandoned lock releases itself
            lock_wait: Seconds a caller that lost the lock waits before re-reading

        """
        self.cache = cache
        self.logger = logger or logging.getLogger(__name__)
        self.lock_enabled = lock_enabled
        self.lock_ttl = lock_ttl
        self.lock_wait = lock_wait

    async def read(self, key: str, target: Any, *, with_children: bool = False) -> Any:
        """Read ``key``, returning ``MISS`` on absence or on any cache failure."""
        try:
            if with_children and isinstance(self.cache, ChildSeparatingJsonCache):
                return await self.cache.get_json_with_children(key, target)
            return await self.cache.get_json(key, target)
        except CacheError as e:
            self.logger.warning("Cache read failed for %s, falling back to storage: %s", LogFormat.key(key), e)
            return MISS

    async def write(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value``, logging instead of raising on cache failures."""
        try:
            await self.cache.set_json(key, value, ttl)
        except CacheError as e:
            self.logger.warning("Cache write failed for %s: %s", LogFormat.key(key), e)

    async def _acquire_lock(self, key: str) -> bool:
        try:
            return await self.cache.set_if_absent(CacheKeyBuilder.lock_key(key), LOCK_VALUE, self.lock_ttl)
        except CacheError as e:
            self.logger.warning("Rebuild lock unavailable for %s: %s", LogFormat.key(key), e)
            return True

    async def _release_lock(self, key: str) -> None:
        try:
            await self.cache.delete(CacheKeyBuilder.lock_key(key))
        except CacheError as e:
            self.logger.debug("Failed to release rebuild lock for %s: %s", key, e)

    async def get_or_load(
        self,
        key: str,
        target: Any,
        loader: Callable[[], Awaitable[T]],
        ttl: float,
        *,
        with_children: bool = False,
    ) -> T:
        """Return the cached value for ``key`` or load, cache and return it.

        Args:
            key: Cache key
            target: Type the cached payload is validated into
            loader: Coroutine factory that reads from storage
            ttl: Entry lifetime in seconds
            with_children: Re-attach separated episode lists on read

        Returns:
            The cached or freshly loaded value. ``None`` results are not cached.

        """
        cached = await self.read(key, target, with_children=with_children)
        if cached is not MISS:
            return cached

        holds_lock = False
        if self.lock_enabled:
            holds_lock = await self._acquire_lock(key)
            if not holds_lock:
                await asyncio.sleep(self.lock_wait)
                cached = await self.read(key, target, with_children=with_children)
                if cached is not MISS:
                    return cached

        try:
            value = await loader()
            if value is not None:
                await self.write(key, value, ttl)
        finally:
            if holds_lock:
                await self._release_lock(key)
        return value
