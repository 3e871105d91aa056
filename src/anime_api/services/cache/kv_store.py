"""Raw key-value byte stores behind the JSON cache layers.

Three interchangeable implementations share the ``KVStore`` protocol:

- ``RedisKVStore``: durable, networked store on ``redis.asyncio``
- ``InMemoryKVStore``: process-local store with TTL expiry (development, tests)
- ``NoOpKVStore``: used when caching is disabled; every read is a miss

A missing key is reported with the ``MISS`` sentinel, never with an exception.
Transport failures are raised as ``CacheTransportError``.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import time
from abc import abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Final, Literal, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from anime_api.core.exceptions import CacheTransportError, InvalidTTLError
from anime_api.core.logger import LogFormat

if TYPE_CHECKING:
    from anime_api.core.models.config_models import RedisConfig


class CacheMiss(Enum):
    """Sentinel type for an absent cache key."""

    MISS = "MISS"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS: Final = CacheMiss.MISS
MissType = Literal[CacheMiss.MISS]

DELETE_BATCH_SIZE = 500


def require_ttl(key: str, ttl: float) -> None:
    """Reject entries that would be stored without a positive TTL.

    Raises:
        InvalidTTLError: If ``ttl`` is zero or negative

    """
    if ttl <= 0:
        msg = f"TTL must be positive, got {ttl} for key {key}"
        raise InvalidTTLError(msg, key)


class KVStore(Protocol):
    """Byte-level cache store interface."""

    @abstractmethod
    async def get(self, key: str) -> bytes | MissType:
        """Return the stored bytes, or ``MISS`` if the key is absent."""

    @abstractmethod
    async def set(self, key: str, data: bytes, ttl: float) -> None:
        """Store bytes under ``key`` for ``ttl`` seconds (must be positive)."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete a key, returning the number of removed entries."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob (``*``, ``?``), returning the count."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a key is present."""

    @abstractmethod
    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        """Store bytes only if the key is absent; True when the caller acquired it."""

    @abstractmethod
    async def close(self) -> None:
        """Release underlying resources."""


class NoOpKVStore:
    """Store that keeps nothing. Selected when caching is disabled by config."""

    async def get(self, key: str) -> bytes | MissType:
        return MISS

    async def set(self, key: str, data: bytes, ttl: float) -> None:
        require_ttl(key, ttl)

    async def delete(self, key: str) -> int:
        return 0

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def exists(self, key: str) -> bool:
        return False

    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        return False

    async def close(self) -> None:
        return None


class InMemoryKVStore:
    """Process-local byte store with per-entry expiry.

    Entries are ``(data, expires_at)`` pairs keyed by cache key, guarded by a
    single ``asyncio.Lock``. Expired entries are dropped lazily on access.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Monotonic seconds source used for expiry

        """
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _now(self) -> float:
        return self._clock()

    def _live(self, key: str, now: float) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at <= now:
            del self._entries[key]
            return None
        return data

    async def get(self, key: str) -> bytes | MissType:
        async with self._lock:
            data = self._live(key, self._now())
            return MISS if data is None else data

    async def set(self, key: str, data: bytes, ttl: float) -> None:
        require_ttl(key, ttl)
        async with self._lock:
            self._entries[key] = (bytes(data), self._now() + ttl)

    async def delete(self, key: str) -> int:
        async with self._lock:
            return 1 if self._entries.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        async with self._lock:
            now = self._now()
            matched = [key for key in list(self._entries) if fnmatch.fnmatchcase(key, pattern)]
            removed = 0
            for key in matched:
                if self._live(key, now) is not None:
                    removed += 1
                self._entries.pop(key, None)
            return removed

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return self._live(key, self._now()) is not None

    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        require_ttl(key, ttl)
        async with self._lock:
            now = self._now()
            if self._live(key, now) is not None:
                return False
            self._entries[key] = (bytes(data), now + ttl)
            return True

    async def keys(self, pattern: str = "*") -> list[str]:
        """List live keys matching a glob, sorted."""
        async with self._lock:
            now = self._now()
            return sorted(key for key in list(self._entries) if fnmatch.fnmatchcase(key, pattern) and self._live(key, now) is not None)

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()


class RedisKVStore:
    """Durable store on a shared ``redis.asyncio`` connection pool."""

    def __init__(self, client: Redis, *, scan_count: int = 100, logger: logging.Logger | None = None) -> None:
        """Initialize the Redis store.

        Args:
            client: Configured ``redis.asyncio.Redis`` client (timeouts set on the client)
            scan_count: ``COUNT`` hint used when enumerating keys for pattern deletes
            logger: Logger for store events

        """
        self._client = client
        self._scan_count = scan_count
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: RedisConfig, logger: logging.Logger | None = None) -> RedisKVStore:
        """Build a store from ``RedisConfig`` (connection is lazy; call ``ping``)."""
        client = Redis(
            host=config.host,
            port=config.port,
            password=config.password or None,
            db=config.db,
            socket_connect_timeout=config.connect_timeout_seconds,
            socket_timeout=config.operation_timeout_seconds,
        )
        return cls(client, scan_count=config.scan_count, logger=logger)

    async def ping(self, timeout: float) -> None:
        """Verify connectivity within ``timeout`` seconds.

        Raises:
            CacheTransportError: If the server cannot be reached in time

        """
        try:
            await asyncio.wait_for(self._client.ping(), timeout=timeout)
        except (RedisError, OSError, TimeoutError) as e:
            msg = f"failed to connect to Redis: {e}"
            raise CacheTransportError(msg, "ping") from e

    async def get(self, key: str) -> bytes | MissType:
        try:
            data = await self._client.get(key)
        except (RedisError, OSError) as e:
            msg = f"redis get error: {e}"
            raise CacheTransportError(msg, "get", key) from e
        if data is None:
            return MISS
        return data if isinstance(data, bytes) else str(data).encode()

    async def set(self, key: str, data: bytes, ttl: float) -> None:
        require_ttl(key, ttl)
        try:
            await self._client.set(key, data, px=int(ttl * 1000))
        except (RedisError, OSError) as e:
            msg = f"redis set error: {e}"
            raise CacheTransportError(msg, "set", key) from e

    async def delete(self, key: str) -> int:
        try:
            return int(await self._client.delete(key))
        except (RedisError, OSError) as e:
            msg = f"redis delete error: {e}"
            raise CacheTransportError(msg, "delete", key) from e

    async def delete_pattern(self, pattern: str) -> int:
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern, count=self._scan_count)]
            if not keys:
                self.logger.debug("No keys found for pattern %s", LogFormat.key(pattern))
                return 0
            deleted = 0
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                deleted += int(await self._client.delete(*keys[start : start + DELETE_BATCH_SIZE]))
        except (RedisError, OSError) as e:
            msg = f"redis delete pattern error: {e}"
            raise CacheTransportError(msg, "delete_pattern", pattern) from e
        return deleted

    async def exists(self, key: str) -> bool:
        try:
            return int(await self._client.exists(key)) > 0
        except (RedisError, OSError) as e:
            msg = f"redis exists error: {e}"
            raise CacheTransportError(msg, "exists", key) from e

    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        require_ttl(key, ttl)
        try:
            return bool(await self._client.set(key, data, px=int(ttl * 1000), nx=True))
        except (RedisError, OSError) as e:
            msg = f"redis setnx error: {e}"
            raise CacheTransportError(msg, "set_if_absent", key) from e

    async def close(self) -> None:
        await self._client.aclose()


async def create_kv_store(config: RedisConfig, logger: logging.Logger | None = None) -> KVStore:
    """Select and connect the store configured for this process.

    Args:
        config: Redis/cache section of the application config
        logger: Logger for store events

    Returns:
        A no-op store when caching is disabled, otherwise the configured backend.

    Raises:
        CacheTransportError: If the Redis backend cannot be reached

    """
    log = logger or logging.getLogger(__name__)
    if not config.enabled:
        log.info("Caching disabled, using %s", LogFormat.entity("NoOpKVStore"))
        return NoOpKVStore()
    if config.backend == "memory":
        log.info("Using %s", LogFormat.entity("InMemoryKVStore"))
        return InMemoryKVStore()

    store = RedisKVStore.from_config(config, logger=log)
    await store.ping(config.connect_timeout_seconds)
    log.info("Connected %s to %s:%s", LogFormat.entity("RedisKVStore"), config.host, config.port)
    return store
