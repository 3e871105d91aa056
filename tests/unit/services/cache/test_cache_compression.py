"""Tests for the transparent compression layer."""

from __future__ import annotations

from unittest.mock import MagicMock

import allure
import hypothesis.strategies as st
import pytest
from hypothesis import HealthCheck, given, settings

from anime_api.core.exceptions import CacheDecodeError
from anime_api.core.models.anime_models import Anime, AnimeEpisode
from anime_api.infrastructure.cache.json_utils import dumps_json
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor
from anime_api.services.cache.cache_compression import (
    GZIP_MAGIC,
    CompressingJsonCache,
    CompressionConfig,
    CompressionMetrics,
    compress_payload,
    decompress_payload,
    is_gzip,
)
from anime_api.services.cache.json_cache import JsonCacheService
from anime_api.services.cache.kv_store import MISS, InMemoryKVStore

THRESHOLD = 1024


def create_layer(store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> CompressingJsonCache:
    inner = JsonCacheService(store, supervisor, logger=MagicMock(), write_timeout=1.0)
    return CompressingJsonCache(inner, CompressionConfig(threshold_bytes=THRESHOLD), logger=MagicMock())


def anime_with_episodes(count: int) -> Anime:
    episodes = [
        AnimeEpisode(id=f"ep-{i}", anime_id="a1", episode=i, title_en=f"Episode {i}", synopsis="The party travels north. " * 3)
        for i in range(1, count + 1)
    ]
    return Anime(id="a1", title_en="Frieren", episodes=episodes)


@allure.epic("Anime API")
@allure.feature("Cache Compression")
class TestCompressionHelpers:
    def test_gzip_round_trip(self) -> None:
        data = b'{"a": "' + b"x" * 5000 + b'"}'
        compressed = compress_payload(data, 6)
        assert compressed[:2] == GZIP_MAGIC
        assert is_gzip(compressed)
        assert not is_gzip(data)
        assert decompress_payload(compressed) == data

    def test_metrics_ratio_and_savings(self) -> None:
        metrics = CompressionMetrics()
        assert metrics.get_compression_ratio() == 1.0
        metrics.record_compression(4000, 1000, 0.5)
        assert metrics.get_compression_ratio() == 0.25
        assert metrics.get_space_savings_percent() == 75.0
        assert metrics.last_ratio == 0.25
        metrics.record_read(0.1, None, 0.2)
        metrics.record_read(0.1, 0.3, 0.2)
        assert metrics.total_decompressions == 1
        assert metrics.to_dict()["space_savings_percent"] == 75.0


@allure.epic("Anime API")
@allure.feature("Cache Compression")
class TestCompressingJsonCache:
    @allure.story("Threshold")
    @allure.title("Small payloads are stored as raw JSON")
    @pytest.mark.asyncio
    async def test_small_payload_stored_raw(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        value = Anime(id="a1", title_en="Frieren")

        await layer.set_json("k", value, 60)
        await supervisor.drain(1.0)

        raw = await memory_store.get("k")
        assert raw is not MISS
        assert raw[:1] == b"{"
        assert await layer.get_json("k", Anime) == value
        assert layer.metrics.total_raw_writes == 1

    @allure.story("Threshold")
    @allure.title("Large payloads are stored gzip-compressed and read back identically")
    @pytest.mark.asyncio
    async def test_large_payload_compressed(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        value = anime_with_episodes(30)
        encoded_size = len(dumps_json(value))
        assert encoded_size > 4096

        with allure.step("Write"):
            await layer.set_json("k", value, 60)
            await supervisor.drain(1.0)

        with allure.step("Bytes at rest are gzip and much smaller"):
            raw = await memory_store.get("k")
            assert raw is not MISS
            assert raw[:2] == GZIP_MAGIC
            assert len(raw) / encoded_size < 0.5
            assert layer.metrics.get_compression_ratio() < 0.5

        with allure.step("Read decodes to the original"):
            assert await layer.get_json("k", Anime) == value
            assert layer.metrics.total_decompressions == 1

    @allure.story("Compatibility")
    @allure.title("Raw entries written below the layer read through it")
    @pytest.mark.asyncio
    async def test_reads_uncompressed_entries(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        await memory_store.set("k", b'[{"id": "a1"}]', 60)
        assert [anime.id for anime in await layer.get_json("k", list[Anime])] == ["a1"]

    @pytest.mark.asyncio
    async def test_miss(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        assert await layer.get_json("absent", Anime) is MISS

    @allure.story("Decode Errors")
    @allure.title("Corrupt compressed entries raise and are removed")
    @pytest.mark.asyncio
    async def test_corrupt_gzip(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        await memory_store.set("k", GZIP_MAGIC + b"\x08broken", 60)
        with pytest.raises(CacheDecodeError):
            await layer.get_json("k", Anime)
        await supervisor.drain(1.0)
        assert await memory_store.get("k") is MISS

    def test_reset_metrics(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        layer.pack(b"x" * 2048)
        assert layer.get_metrics()["total_compressions"] == 1
        layer.reset_metrics()
        assert layer.get_metrics()["total_compressions"] == 0


@pytest.mark.unit
class TestCompressionProperties:
    """Bytes at rest follow the threshold; decoded values never change."""

    @given(text=st.text(alphabet=st.characters(min_codepoint=32, max_codepoint=126), max_size=3000))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_pack_follows_threshold(self, text: str, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        encoded = dumps_json({"title": text})
        packed = layer.pack(encoded)
        if len(encoded) > THRESHOLD:
            assert packed[:2] == GZIP_MAGIC
            assert decompress_payload(packed) == encoded
        else:
            assert packed == encoded
            assert packed[:1] == b"{"
