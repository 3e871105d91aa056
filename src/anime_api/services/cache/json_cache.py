"""Typed JSON cache over a raw ``KVStore``.

Writes are encoded synchronously and stored in the background: ``set_json``
returns as soon as the bytes exist, so a read issued right after it may still
miss. Reads decode with orjson and validate through pydantic; entries that fail
to decode are reported as ``CacheDecodeError`` and deleted in the background.
"""

from __future__ import annotations

import logging
import time
import zlib
from typing import TYPE_CHECKING, Any

from anime_api.core.exceptions import CacheDecodeError, CacheEncodeError, CacheError
from anime_api.core.logger import LogFormat
from anime_api.infrastructure.cache.json_utils import dumps_json, is_json_error, loads_json, validate_as
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor, get_task_supervisor
from anime_api.services.cache.cache_compression import decompress_payload, is_gzip
from anime_api.services.cache.cache_metrics import CacheMetrics, CacheOperation, CacheOutcome, elapsed_ms
from anime_api.services.cache.kv_store import MISS, MissType, require_ttl

if TYPE_CHECKING:
    from anime_api.services.cache.kv_store import KVStore

DEFAULT_WRITE_TIMEOUT_SECONDS = 5.0


class JsonCacheService:
    """JSON codec, metrics and fire-and-forget writes on top of a byte store."""

    def __init__(
        self,
        store: KVStore,
        supervisor: BackgroundTaskSupervisor | None = None,
        metrics: CacheMetrics | None = None,
        logger: logging.Logger | None = None,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the JSON cache service.

        Args:
            store: Byte store that holds the entries
            supervisor: Owner of background writes (defaults to the shared supervisor)
            metrics: Metrics sink
            logger: Logger for cache events
            write_timeout: Seconds a background write may take before it is abandoned

        """
        self.store = store
        self.supervisor = supervisor or get_task_supervisor()
        self.metrics = metrics or CacheMetrics()
        self.logger = logger or logging.getLogger(__name__)
        self.write_timeout = write_timeout

    # Codec

    @staticmethod
    def encode(key: str, value: Any) -> bytes:
        """Serialize ``value`` to JSON bytes.

        Raises:
            CacheEncodeError: If the value is not serializable

        """
        try:
            return dumps_json(value)
        except (TypeError, ValueError) as e:
            msg = f"failed to encode value for {key}: {e}"
            raise CacheEncodeError(msg, key) from e

    def decode(self, key: str, data: bytes, target: Any) -> Any:
        """Decode JSON bytes (gzip-compressed or raw) into ``target``.

        Raises:
            CacheDecodeError: If the bytes are not JSON or do not match ``target``

        """
        if is_gzip(data):
            try:
                data = decompress_payload(data)
            except (OSError, EOFError, zlib.error) as e:
                raise self.reject(key, e) from e
        try:
            return validate_as(loads_json(data), target)
        except ValueError as e:
            raise self.reject(key, e) from e

    def reject(self, key: str, error: Exception) -> CacheDecodeError:
        """Record an undecodable entry, schedule its deletion and build the error to raise."""
        reason = "malformed JSON" if is_json_error(error) else "invalid payload"
        self.metrics.record(CacheOperation.GET, CacheOutcome.UNMARSHAL_ERROR, 0.0, key)
        self.logger.warning("Discarding undecodable cache entry %s (%s): %s", LogFormat.key(key), reason, error)
        self.supervisor.spawn(self._delete_bad_entry(key), name=f"cache-heal:{key}", timeout=self.write_timeout)
        return CacheDecodeError(f"failed to decode cached value for {key} ({reason}): {error}", key)

    async def _delete_bad_entry(self, key: str) -> None:
        await self.store.delete(key)

    # Raw hooks used by wrapping layers

    async def fetch_bytes(self, key: str) -> bytes | MissType:
        """Read raw bytes, recording a miss or transport error."""
        start = time.perf_counter()
        try:
            data = await self.store.get(key)
        except CacheError:
            self.metrics.record(CacheOperation.GET, CacheOutcome.ERROR, elapsed_ms(start), key)
            raise
        if data is MISS:
            self.metrics.record(CacheOperation.GET, CacheOutcome.MISS, elapsed_ms(start), key)
            self.logger.debug("Cache miss for %s", LogFormat.key(key))
        return data

    def record_hit(self, key: str, duration_ms: float) -> None:
        self.metrics.record(CacheOperation.GET, CacheOutcome.HIT, duration_ms, key)

    async def store_bytes(self, key: str, data: bytes, ttl: float) -> None:
        """Schedule a background write of raw bytes and return immediately."""
        require_ttl(key, ttl)
        self.supervisor.spawn(self._write(key, data, ttl), name=f"cache-write:{key}", timeout=self.write_timeout)

    async def _write(self, key: str, data: bytes, ttl: float) -> None:
        start = time.perf_counter()
        try:
            await self.store.set(key, data, ttl)
        except CacheError:
            self.metrics.record(CacheOperation.SET, CacheOutcome.ERROR, elapsed_ms(start), key)
            raise
        self.metrics.record(CacheOperation.SET, CacheOutcome.SUCCESS, elapsed_ms(start), key)
        self.logger.debug("Cached %s (%s bytes) in %s", LogFormat.key(key), len(data), LogFormat.duration_ms(elapsed_ms(start)))

    # JsonCache protocol

    async def get_json(self, key: str, target: Any) -> Any | MissType:
        start = time.perf_counter()
        data = await self.fetch_bytes(key)
        if data is MISS:
            return MISS
        value = self.decode(key, data, target)
        self.record_hit(key, elapsed_ms(start))
        return value

    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        await self.store_bytes(key, self.encode(key, value), ttl)

    async def delete(self, key: str) -> int:
        start = time.perf_counter()
        try:
            deleted = await self.store.delete(key)
        except CacheError:
            self.metrics.record(CacheOperation.DELETE, CacheOutcome.ERROR, elapsed_ms(start), key)
            raise
        self.metrics.record(CacheOperation.DELETE, CacheOutcome.SUCCESS, elapsed_ms(start), key)
        return deleted

    async def delete_pattern(self, pattern: str) -> int:
        start = time.perf_counter()
        try:
            deleted = await self.store.delete_pattern(pattern)
        except CacheError:
            self.metrics.record(CacheOperation.DELETE_PATTERN, CacheOutcome.ERROR, elapsed_ms(start), pattern)
            raise
        self.metrics.record(CacheOperation.DELETE_PATTERN, CacheOutcome.SUCCESS, elapsed_ms(start), pattern)
        self.logger.debug("Deleted %s keys matching %s", LogFormat.number(deleted), LogFormat.key(pattern))
        return deleted

    async def exists(self, key: str) -> bool:
        return await self.store.exists(key)

    async def set_if_absent(self, key: str, data: bytes, ttl: float) -> bool:
        return await self.store.set_if_absent(key, data, ttl)

    async def close(self) -> None:
        await self.store.close()
