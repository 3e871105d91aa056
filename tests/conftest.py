"""Pytest configuration and shared fixtures for anime-api."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from anime_api.core.core_config import build_config
from anime_api.core.models.anime_models import Anime, AnimeEpisode
from anime_api.core.models.config_models import AppConfig
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor, reset_task_supervisor
from anime_api.services.cache.cache_factory import CacheStack, build_cache_stack
from anime_api.services.cache.kv_store import InMemoryKVStore

MINIMAL_CONFIG_DATA: dict[str, Any] = {
    "app": {"env": "test"},
    "database": {"url": "sqlite+aiosqlite:///:memory:"},
    "redis": {"enabled": True, "backend": "memory"},
}


@pytest.fixture
def mock_console_logger() -> MagicMock:
    """Mock console logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_error_logger() -> MagicMock:
    """Mock error logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration with an in-memory database and cache, isolated from the environment."""
    return build_config(MINIMAL_CONFIG_DATA, environ={})


@pytest.fixture(autouse=True)
def _isolated_task_supervisor() -> None:
    """Keep the shared supervisor from leaking between event loops."""
    reset_task_supervisor()


@pytest.fixture
def supervisor() -> BackgroundTaskSupervisor:
    return BackgroundTaskSupervisor(logging.getLogger("tests.supervisor"), default_timeout=2.0)


@pytest.fixture
def memory_store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest_asyncio.fixture
async def cache_stack(app_config: AppConfig, memory_store: InMemoryKVStore, supervisor: BackgroundTaskSupervisor) -> AsyncIterator[CacheStack]:
    """Full cache stack over an in-memory store; pending writes are drained on teardown."""
    stack = build_cache_stack(app_config, memory_store, supervisor=supervisor, logger=logging.getLogger("tests.cache"))
    yield stack
    await supervisor.shutdown(timeout=2.0)


def make_episode(anime_id: str, number: int, aired: datetime | None = None, **overrides: Any) -> AnimeEpisode:
    """Build a stored-episode model with predictable ids and titles."""
    data: dict[str, Any] = {
        "id": f"{anime_id}-ep{number}",
        "anime_id": anime_id,
        "episode": number,
        "title_en": f"Episode {number}",
        "title_jp": f"第{number}話",
        "aired": aired,
        "synopsis": f"Synopsis of episode {number}",
    }
    data.update(overrides)
    return AnimeEpisode(**data)


def make_anime(anime_id: str, **overrides: Any) -> Anime:
    """Build an anime model with every prunable field populated."""
    data: dict[str, Any] = {
        "id": anime_id,
        "title_en": f"Title {anime_id}",
        "title_jp": f"タイトル {anime_id}",
        "synopsis": "A long synopsis",
        "title_synonyms": '["alt"]',
        "genres": '["Action"]',
        "licensors": '["Licensor"]',
        "broadcast": "Fridays at 01:30 (JST)",
        "source": "Manga",
        "studios": '["Studio"]',
        "duration": "24 min per ep",
        "rating": "8.5",
        "ranking": 1,
    }
    data.update(overrides)
    return Anime(**data)


@pytest.fixture
def anime_factory() -> Any:
    return make_anime


@pytest.fixture
def episode_factory() -> Any:
    return make_episode
