"""Transparent gzip compression for JSON cache entries.

Encoded payloads larger than the threshold are stored gzip-compressed; smaller
ones are stored as raw JSON. Reads detect the gzip magic bytes, so entries
written with or without this layer decode the same way.
"""

from __future__ import annotations

import gzip
import io
import logging
import time
import zlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from anime_api.core.logger import LogFormat
from anime_api.services.cache.cache_metrics import elapsed_ms
from anime_api.services.cache.kv_store import MISS, MissType

if TYPE_CHECKING:
    from anime_api.core.exceptions import CacheDecodeError
    from anime_api.services.cache.json_cache import JsonCacheService

GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class CompressionConfig:
    """Configuration for cache compression behavior."""

    threshold_bytes: int = 1024  # Compress payloads larger than this
    level: int = 6  # gzip level (1-9)
    enable_metrics: bool = True


@dataclass
class CompressionMetrics:
    """Running totals for compressed writes and reads."""

    total_compressions: int = 0
    total_raw_writes: int = 0
    total_decompressions: int = 0
    bytes_before_compression: int = 0
    bytes_after_compression: int = 0
    compression_time_ms: float = 0.0
    storage_time_ms: float = 0.0
    decompression_time_ms: float = 0.0
    decode_time_ms: float = 0.0
    last_ratio: float = 1.0

    def record_compression(self, original_size: int, compressed_size: int, duration_ms: float) -> None:
        """Record one compressed write.

        Args:
            original_size: JSON payload size in bytes
            compressed_size: Size at rest in bytes
            duration_ms: Time spent compressing

        """
        self.total_compressions += 1
        self.bytes_before_compression += original_size
        self.bytes_after_compression += compressed_size
        self.compression_time_ms += duration_ms
        self.last_ratio = compressed_size / original_size if original_size else 1.0

    def record_read(self, storage_ms: float, decompress_ms: float | None, decode_ms: float) -> None:
        """Record the phase durations of one read (``decompress_ms`` is None for raw entries)."""
        self.storage_time_ms += storage_ms
        self.decode_time_ms += decode_ms
        if decompress_ms is not None:
            self.total_decompressions += 1
            self.decompression_time_ms += decompress_ms

    def get_compression_ratio(self) -> float:
        """Overall compressed/original size ratio (lower is better)."""
        if self.bytes_before_compression == 0:
            return 1.0
        return self.bytes_after_compression / self.bytes_before_compression

    def get_space_savings_percent(self) -> float:
        """Space saved by compression, as a percentage."""
        if self.bytes_before_compression == 0:
            return 0.0
        savings = self.bytes_before_compression - self.bytes_after_compression
        return (savings / self.bytes_before_compression) * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_compressions": self.total_compressions,
            "total_raw_writes": self.total_raw_writes,
            "total_decompressions": self.total_decompressions,
            "bytes_before_compression": self.bytes_before_compression,
            "bytes_after_compression": self.bytes_after_compression,
            "compression_time_ms": self.compression_time_ms,
            "storage_time_ms": self.storage_time_ms,
            "decompression_time_ms": self.decompression_time_ms,
            "decode_time_ms": self.decode_time_ms,
            "compression_ratio": self.get_compression_ratio(),
            "space_savings_percent": self.get_space_savings_percent(),
        }


def is_gzip(data: bytes) -> bool:
    """Check for the gzip magic bytes."""
    return data[:2] == GZIP_MAGIC


def compress_payload(data: bytes, level: int) -> bytes:
    return gzip.compress(data, compresslevel=level)


def decompress_payload(data: bytes) -> bytes:
    """Stream-decompress a gzip payload."""
    with gzip.GzipFile(fileobj=io.BytesIO(data), mode="rb") as stream:
        return stream.read()


class CompressingJsonCache:
    """Compression layer over ``JsonCacheService``."""

    def __init__(
        self,
        inner: JsonCacheService,
        config: CompressionConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the compression layer.

        Args:
            inner: JSON cache service providing the codec and the byte hooks
            config: Compression configuration
            logger: Logger for compression events

        """
        self.inner = inner
        self.config = config or CompressionConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = CompressionMetrics()

    def should_compress(self, data: bytes) -> bool:
        return len(data) > self.config.threshold_bytes

    def pack(self, data: bytes) -> bytes:
        """Return the bytes to store for an encoded payload."""
        if not self.should_compress(data):
            if self.config.enable_metrics:
                self.metrics.total_raw_writes += 1
            return data

        start = time.perf_counter()
        compressed = compress_payload(data, self.config.level)
        duration_ms = elapsed_ms(start)
        if self.config.enable_metrics:
            self.metrics.record_compression(len(data), len(compressed), duration_ms)
        self.logger.debug(
            "Compressed %d bytes to %d bytes (ratio %.2f) in %s",
            len(data),
            len(compressed),
            len(compressed) / len(data),
            LogFormat.duration_ms(duration_ms),
        )
        return compressed

    async def get_json(self, key: str, target: Any) -> Any | MissType:
        start = time.perf_counter()
        data = await self.inner.fetch_bytes(key)
        storage_ms = elapsed_ms(start)
        if data is MISS:
            return MISS

        decompress_ms: float | None = None
        if is_gzip(data):
            phase = time.perf_counter()
            try:
                data = decompress_payload(data)
            except (OSError, EOFError, zlib.error) as e:
                raise self.inner.reject(key, e) from e
            decompress_ms = elapsed_ms(phase)

        phase = time.perf_counter()
        value = self.inner.decode(key, data, target)
        decode_ms = elapsed_ms(phase)
        self.inner.record_hit(key, elapsed_ms(start))
        if self.config.enable_metrics:
            self.metrics.record_read(storage_ms, decompress_ms, decode_ms)
        return value

    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        await self.inner.store_bytes(key, self.pack(self.inner.encode(key, value)), ttl)

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

    def get_metrics(self) -> dict[str, Any]:
        return self.metrics.to_dict()

    def reset_metrics(self) -> None:
        """Reset compression metrics."""
        self.metrics = CompressionMetrics()
        self.logger.info("Compression metrics reset")


__all__ = [
    "GZIP_MAGIC",
    "CompressingJsonCache",
    "CompressionConfig",
    "CompressionMetrics",
    "compress_payload",
    "decompress_payload",
    "is_gzip",
]
