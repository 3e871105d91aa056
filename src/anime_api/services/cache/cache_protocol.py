"""Typed JSON cache interface shared by every cache layer.

The layers stack as ``JsonCacheService`` (codec over a ``KVStore``), then
``CompressingJsonCache`` (gzip above a size threshold), then
``PruningJsonCache`` or ``ChildSeparatingJsonCache`` (write-side payload
shaping). Each layer implements this protocol so services depend on the
interface rather than on a concrete stack.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from anime_api.core.exceptions import CacheDecodeError
    from anime_api.services.cache.kv_store import MissType


class JsonCache(Protocol):
    """Typed get/set over JSON-encoded cache entries."""

    @abstractmethod
    async def get_json(self, key: str, target: Any) -> Any | MissType:
        """Read and validate a cached value.

        Args:
            key: Cache key
            target: Destination type, generic alias or pydantic ``TypeAdapter``

        Returns:
            The validated value, or ``MISS`` if the key is absent

        Raises:
            CacheDecodeError: If the stored bytes do not decode into ``target``
            CacheTransportError: If the store round trip fails

        """

    @abstractmethod
    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        """Encode ``value`` now and store it in the background.

        Args:
            key: Cache key
            value: JSON-compatible data or pydantic models
            ttl: Time-to-live in seconds (must be positive)

        Raises:
            CacheEncodeError: If the value cannot be serialized

        """

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete one key, returning the number of removed entries."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob, returning the number of removed entries."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a key is present."""

    @abstractmethod
    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        """Atomically store ``data`` if the key is absent (advisory lock primitive)."""

    @abstractmethod
    def reject(self, key: str, error: Exception) -> CacheDecodeError:
        """Report an undecodable entry, schedule its deletion and return the error to raise."""

    @abstractmethod
    async def close(self) -> None:
        """Release underlying resources."""


class DelegatingJsonCache:
    """Base for layers that reshape writes and delegate everything else to ``inner``."""

    def __init__(self, inner: JsonCache) -> None:
        self.inner = inner

    async def get_json(self, key: str, target: Any) -> Any | MissType:
        return await self.inner.get_json(key, target)

    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        await self.inner.set_json(key, value, ttl)

    async def delete(self, key: str) -> int:
        return await self.inner.delete(key)

    async def delete_pattern(self, pattern: str) -> int:
        return await self.inner.delete_pattern(pattern)

    async def exists(self, key: str) -> bool:
        return await self.inner.exists(key)

    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        return await self.inner.set_if_absent(key, data, ttl)

    def reject(self, key: str, error: Exception) -> CacheDecodeError:
        return self.inner.reject(key, error)

    async def close(self) -> None:
        await self.inner.close()
