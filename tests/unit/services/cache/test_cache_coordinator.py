"""Tests for the invalidation coordinator."""

from __future__ import annotations

import fnmatch
from unittest.mock import AsyncMock, MagicMock

import allure
import hypothesis.strategies as st
import pytest
from hypothesis import HealthCheck, given, settings

from anime_api.core.exceptions import CacheTransportError
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor
from anime_api.services.cache.cache_coordinator import CacheEvent, CacheEventType, InvalidationCoordinator
from anime_api.services.cache.json_cache import JsonCacheService
from anime_api.services.cache.key_builder import CacheKeyBuilder, RankedList
from anime_api.services.cache.kv_store import InMemoryKVStore

keys = CacheKeyBuilder("anime-api")


async def seed(store: InMemoryKVStore, anime_id: str = "X") -> None:
    for key in (
        keys.anime_by_id(anime_id),
        CacheKeyBuilder.separated_children(keys.anime_by_id(anime_id)),
        keys.anime_by_id("other"),
        keys.episodes_by_anime_id(anime_id),
        keys.episodes_by_anime_id("other"),
        keys.episode_by_id("e1"),
        keys.anime_by_season("SPRING_2024"),
        keys.anime_by_season("FALL_2023", ["titleEn"]),
        keys.ranked_list(RankedList.TOP_RATED, 10),
        keys.ranked_list(RankedList.NEWEST, 5),
        keys.currently_airing(10),
        "unrelated:key",
    ):
        await store.set(key, b"{}", 60)


def create_coordinator(store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> InvalidationCoordinator:
    return InvalidationCoordinator(JsonCacheService(store, supervisor, logger=MagicMock()), keys, MagicMock())


async def assert_plan_applied(coordinator: InvalidationCoordinator, store: InMemoryKVStore, event: CacheEvent) -> None:
    remaining = await store.keys()
    for step in coordinator.plan(event):
        pattern = step.target if step.is_pattern else step.target.replace("*", "[*]")
        assert not [key for key in remaining if fnmatch.fnmatchcase(key, pattern)], step


@allure.epic("Anime API")
@allure.feature("Cache Invalidation")
class TestInvalidationCoordinator:
    @allure.story("Anime Mutation")
    @allure.title("Invalidating an anime clears its keys, season buckets and every anime key")
    @pytest.mark.asyncio
    async def test_invalidate_anime(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)

        with allure.step("Invalidate anime X"):
            deleted = await coordinator.invalidate_anime("X")

        with allure.step("Nothing matching the declared patterns remains"):
            remaining = await memory_store.keys()
            for pattern in ("anime-api:anime:id:X", "anime-api:episodes:anime:X", "anime-api:anime:season:*", "anime-api:anime:*"):
                assert not [key for key in remaining if fnmatch.fnmatchcase(key, pattern)]
            assert remaining == [
                "anime-api:episode:id:e1",
                "anime-api:episodes:anime:other",
                "unrelated:key",
            ]
            assert deleted == 9

    @allure.story("Episode Mutation")
    @allure.title("Invalidating episodes touches only that anime's episode list")
    @pytest.mark.asyncio
    async def test_invalidate_episodes(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)
        assert await coordinator.invalidate_episodes("X") == 1
        assert not await memory_store.exists(keys.episodes_by_anime_id("X"))
        assert await memory_store.exists(keys.episodes_by_anime_id("other"))

    @pytest.mark.asyncio
    async def test_invalidate_seasons(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)
        assert await coordinator.invalidate_seasons() == 2
        assert await memory_store.exists(keys.anime_by_id("X"))

    @pytest.mark.asyncio
    async def test_invalidate_ranked_lists(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)
        assert await coordinator.invalidate_ranked_lists() == 2
        assert await memory_store.exists(keys.anime_by_id("X"))

    @pytest.mark.asyncio
    async def test_invalidate_all_anime(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)
        assert await coordinator.invalidate_all_anime() == 8
        assert await memory_store.keys() == [
            "anime-api:episode:id:e1",
            "anime-api:episodes:anime:X",
            "anime-api:episodes:anime:other",
            "unrelated:key",
        ]

    @pytest.mark.asyncio
    async def test_invalidate_all_episodes(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)
        assert await coordinator.invalidate_all_episodes() == 3

    @pytest.mark.asyncio
    async def test_flush_all(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        coordinator = create_coordinator(memory_store, supervisor)
        await seed(memory_store)
        await coordinator.flush_all()
        assert await memory_store.keys() == []

    @allure.story("Failure Isolation")
    @allure.title("A failing step does not stop the remaining steps")
    @pytest.mark.asyncio
    async def test_failed_step_continues(self) -> None:
        cache = MagicMock()
        cache.delete = AsyncMock(side_effect=CacheTransportError("down", "delete"))
        cache.delete_pattern = AsyncMock(return_value=2)
        logger = MagicMock()
        coordinator = InvalidationCoordinator(cache, keys, logger)

        deleted = await coordinator.invalidate_anime("X")

        assert deleted == 6
        assert cache.delete.await_count == 2
        assert cache.delete_pattern.await_count == 3
        logger.warning.assert_called_once()

    def test_event_requires_anime_id(self) -> None:
        with pytest.raises(ValueError, match="anime_id required"):
            CacheEvent(CacheEventType.ANIME_MUTATED)
        with pytest.raises(ValueError, match="anime_id required"):
            CacheEvent(CacheEventType.EPISODES_MUTATED, anime_id="")

    def test_ranked_plan_covers_every_family(self) -> None:
        coordinator = InvalidationCoordinator(MagicMock(), keys)
        targets = {step.target for step in coordinator.plan(CacheEvent(CacheEventType.RANKED_LISTS_STALE))}
        assert targets == {keys.ranked_list_pattern(kind) for kind in RankedList}


@pytest.mark.unit
class TestInvalidationCompleteness:
    """After any event, no key matching its declared steps remains."""

    @given(
        event_type=st.sampled_from(list(CacheEventType)),
        anime_id=st.sampled_from(["X", "other", "a-1"]),
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @pytest.mark.asyncio
    async def test_event_leaves_no_matching_keys(
        self, event_type: CacheEventType, anime_id: str, supervisor: BackgroundTaskSupervisor
    ) -> None:
        store = InMemoryKVStore()
        coordinator = create_coordinator(store, supervisor)
        await seed(store, anime_id)
        event = CacheEvent(event_type, anime_id=anime_id)

        await coordinator.handle(event)

        await assert_plan_applied(coordinator, store, event)
