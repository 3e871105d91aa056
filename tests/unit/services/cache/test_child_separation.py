"""Tests for large-child separation."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import allure
import pytest

from anime_api.core.exceptions import CacheDecodeError
from anime_api.core.models.anime_models import Anime
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor
from anime_api.services.cache.child_separation import (
    EXTENDED_FIELD_EXCLUSIONS,
    SEPARATED_MARKER,
    ChildSeparatingJsonCache,
)
from anime_api.services.cache.field_pruning import FieldPruner
from anime_api.services.cache.json_cache import JsonCacheService
from anime_api.services.cache.key_builder import CacheKeyBuilder
from anime_api.services.cache.kv_store import MISS, InMemoryKVStore

KEY = "anime-api:anime:id:a1"
CHILDREN_KEY = CacheKeyBuilder.separated_children(KEY)


def create_layer(store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor, max_children: int = 0) -> ChildSeparatingJsonCache:
    inner = JsonCacheService(store, supervisor, logger=MagicMock(), write_timeout=1.0)
    return ChildSeparatingJsonCache(inner, max_children_in_cache=max_children, logger=MagicMock())


@allure.epic("Anime API")
@allure.feature("Child Separation")
class TestSeparate:
    def test_single_parent(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        parent, children = layer.separate({"id": "a1", "episodes": [{"id": "e1"}]})
        assert children == [{"id": "e1"}]
        assert parent == {"id": "a1", SEPARATED_MARKER: "episodes"}

    def test_list_of_parents(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        parents, children = layer.separate([{"id": "a1", "episodes": [{"id": "e1"}]}, {"id": "a2", "episodes": []}])
        assert children == {"a1": [{"id": "e1"}]}
        assert SEPARATED_MARKER not in parents[1]
        assert parents[1]["episodes"] == []

    def test_threshold_keeps_short_lists(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor, max_children=2)
        parent, children = layer.separate({"id": "a1", "episodes": [{"id": "e1"}, {"id": "e2"}]})
        assert children is None
        assert len(parent["episodes"]) == 2

    def test_non_container_passthrough(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        assert layer.separate("plain") == ("plain", None)

    def test_default_pruner_uses_extended_exclusions(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        assert layer.pruner.exclusions is EXTENDED_FIELD_EXCLUSIONS
        assert {"source", "studios"} <= EXTENDED_FIELD_EXCLUSIONS["Anime"]


@allure.epic("Anime API")
@allure.feature("Child Separation")
class TestChildSeparatingJsonCache:
    @allure.story("Round Trip")
    @allure.title("Episodes are stored under their own key and stitched back on request")
    @pytest.mark.asyncio
    async def test_round_trip_with_children(
        self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor, anime_factory: Any, episode_factory: Any
    ) -> None:
        layer = create_layer(memory_store, supervisor)
        anime = anime_factory("a1", episodes=[episode_factory("a1", 1), episode_factory("a1", 2)])

        with allure.step("Write parent and children"):
            await layer.set_json(KEY, anime, 60)
            await supervisor.drain(1.0)
            assert await memory_store.exists(CHILDREN_KEY)

        with allure.step("Plain read returns the parent without episodes"):
            parent = await layer.get_json(KEY, Anime)
            assert parent.episodes == []

        with allure.step("Stitched read restores pruned episodes"):
            stitched = await layer.get_json_with_children(KEY, Anime)
            assert [episode.id for episode in stitched.episodes] == ["a1-ep1", "a1-ep2"]
            assert stitched.episodes[0].synopsis is None
            assert stitched.episodes[0].title_jp is None
            assert stitched.source is None
            assert stitched.synopsis is None
            assert stitched.title_en == "Title a1"

    @allure.story("Round Trip")
    @allure.title("Lists of anime keep each parent's episodes")
    @pytest.mark.asyncio
    async def test_round_trip_list(
        self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor, anime_factory: Any, episode_factory: Any
    ) -> None:
        layer = create_layer(memory_store, supervisor)
        animes = [
            anime_factory("a1", episodes=[episode_factory("a1", 1)]),
            anime_factory("a2"),
            anime_factory("a3", episodes=[episode_factory("a3", 1), episode_factory("a3", 2)]),
        ]
        await layer.set_json("list", animes, 60)
        await supervisor.drain(1.0)

        stitched = await layer.get_json_with_children("list", list[Anime])
        assert [len(anime.episodes) for anime in stitched] == [1, 0, 2]
        assert stitched[2].episodes[1].id == "a3-ep2"

    @pytest.mark.asyncio
    async def test_no_children_entry_when_nothing_detached(
        self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor, anime_factory: Any
    ) -> None:
        layer = create_layer(memory_store, supervisor)
        await layer.set_json(KEY, anime_factory("a1"), 60)
        await supervisor.drain(1.0)
        assert not await memory_store.exists(CHILDREN_KEY)
        stitched = await layer.get_json_with_children(KEY, Anime)
        assert stitched.episodes == []

    @allure.story("Expiry")
    @allure.title("A missing children entry makes the stitched read a miss")
    @pytest.mark.asyncio
    async def test_missing_children_is_miss(
        self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor, anime_factory: Any, episode_factory: Any
    ) -> None:
        layer = create_layer(memory_store, supervisor)
        await layer.set_json(KEY, anime_factory("a1", episodes=[episode_factory("a1", 1)]), 60)
        await supervisor.drain(1.0)
        await memory_store.delete(CHILDREN_KEY)

        assert await layer.get_json_with_children(KEY, Anime) is MISS

    @pytest.mark.asyncio
    async def test_parent_miss(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        assert await layer.get_json_with_children(KEY, Anime) is MISS

    @pytest.mark.asyncio
    async def test_custom_pruner(
        self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor, anime_factory: Any
    ) -> None:
        inner = JsonCacheService(memory_store, supervisor, logger=MagicMock())
        layer = ChildSeparatingJsonCache(inner, FieldPruner({"Anime": frozenset({"title_jp"})}))
        await layer.set_json(KEY, anime_factory("a1"), 60)
        await supervisor.drain(1.0)
        cached = await layer.get_json(KEY, Anime)
        assert cached.title_jp is None
        assert cached.synopsis == "A long synopsis"

    @allure.story("Self-Healing")
    @allure.title("A stitched payload that fails validation drops the parent and children entries")
    @pytest.mark.asyncio
    async def test_undecodable_stitched_value_heals(self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> None:
        layer = create_layer(memory_store, supervisor)
        await memory_store.set(KEY, b'{"id": "a1", "separated_children": "episodes"}', 60)
        await memory_store.set(CHILDREN_KEY, b'[{"episode": 1}]', 60)

        with allure.step("Stitched read raises"):
            with pytest.raises(CacheDecodeError) as exc_info:
                await layer.get_json_with_children(KEY, Anime)
            assert exc_info.value.key == KEY

        with allure.step("Both entries are deleted in the background"):
            await supervisor.drain(1.0)
            assert not await memory_store.exists(KEY)
            assert not await memory_store.exists(CHILDREN_KEY)

    @pytest.mark.asyncio
    async def test_undecodable_parent_without_children_heals(
        self, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor
    ) -> None:
        layer = create_layer(memory_store, supervisor)
        await memory_store.set(KEY, b'{"title_en": "no id"}', 60)

        with pytest.raises(CacheDecodeError):
            await layer.get_json_with_children(KEY, Anime)
        await supervisor.drain(1.0)
        assert not await memory_store.exists(KEY)
