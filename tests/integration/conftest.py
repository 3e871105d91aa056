"""Integration fixtures: an in-memory SQLite catalog with seeded rows."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import insert

from anime_api.core.models.config_models import AppConfig
from anime_api.infrastructure.db.engine import Database
from anime_api.infrastructure.db.schema import (
    anime_character_staff_link_table,
    anime_character_table,
    anime_seasons_table,
    anime_staff_table,
    anime_table,
    anime_tags_table,
    episodes_table,
    tags_table,
)

# 2024-04-10 21:00 in Japan
AIRING_NOW = datetime(2024, 4, 10, 12, 0, tzinfo=UTC)


def anime_row(anime_id: str, title: str, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": anime_id,
        "title_en": title,
        "title_jp": f"{title} (JP)",
        "title_romaji": None,
        "title_kanji": None,
        "title_synonyms": "[]",
        "synopsis": f"Synopsis of {title}",
        "image_url": f"https://img.example/{anime_id}.jpg",
        "episodes": 12,
        "status": "airing",
        "start_date": "2024-04-01 00:00:00",
        "end_date": None,
        "genres": '["Fantasy"]',
        "duration": "24 min per ep",
        "broadcast": None,
        "source": "Manga",
        "licensors": "[]",
        "studios": '["Madhouse"]',
        "rating": None,
        "ranking": None,
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


def episode_row(anime_id: str, number: int, aired: str | None) -> dict[str, Any]:
    return {
        "id": f"{anime_id}-ep{number}",
        "anime_id": anime_id,
        "episode": number,
        "title_en": f"Episode {number}",
        "title_jp": f"第{number}話",
        "aired": aired,
        "synopsis": f"Episode {number} synopsis",
        "created_at": datetime(2024, 4, 1),
        "updated_at": datetime(2024, 4, 1),
    }


def season_row(record_id: str, anime_id: str | None, season: str, day: int) -> dict[str, Any]:
    return {
        "id": record_id,
        "anime_id": anime_id,
        "season": season,
        "status": "confirmed",
        "episode_count": 12,
        "notes": None,
        "created_at": datetime(2024, 1, day),
        "updated_at": datetime(2024, 1, day),
    }


ANIME_ROWS = [
    anime_row(
        "a1", "Frieren", rating="9.1", ranking=1, broadcast="Wednesdays at 21:20 (JST)", created_at=datetime(2024, 1, 3)
    ),
    anime_row(
        "a2", "Dungeon Meshi", rating="8.8", ranking=2, broadcast="Wednesdays at 20:50 (JST)", created_at=datetime(2024, 1, 2)
    ),
    anime_row("a3", "Kaiju No. 8", rating="N/A", ranking=3, broadcast="Fridays at 21:00 (JST)", created_at=datetime(2024, 1, 1)),
    anime_row("a4", "Old Show", rating="7.0", ranking=None, created_at=None),
    anime_row("a5", "Quiet Summer", rating="6.5", ranking=5, created_at=datetime(2023, 12, 31)),
]

# Stored in reverse so every read has to order them.
EPISODE_ROWS = [
    episode_row("a1", 3, "2024-04-17 21:20:00"),
    episode_row("a1", 2, "2024-04-10 21:20:00"),
    episode_row("a1", 1, "2024-04-03 21:20:00"),
    episode_row("a2", 2, "2024-04-17 20:50:00"),
    episode_row("a2", 1, "2024-04-10 20:50:00"),
    episode_row("a3", 1, "2024-04-12 21:00:00"),
    episode_row("a4", 1, "2023-10-01 00:00:00"),
]

SEASON_ROWS = [
    season_row("s1", "a1", "SPRING_2024", 1),
    season_row("s2", "a2", "SPRING_2024", 2),
    season_row("s3", "a3", "SPRING_2024", 3),
    season_row("s4", "a1", "SPRING_2024", 4),
    season_row("s5", None, "SPRING_2024", 5),
    season_row("s6", "a5", "SUMMER_2024", 6),
    season_row("s7", "a4", "FALL_2023", 7),
]


def character_row(character_id: str, anime_id: str, name: str, role: str = "main") -> dict[str, Any]:
    return {"id": character_id, "anime_id": anime_id, "name": name, "role": role, "summary": f"{name} summary"}


def staff_row(staff_id: str, given_name: str, family_name: str) -> dict[str, Any]:
    return {"id": staff_id, "given_name": given_name, "family_name": family_name, "blood_type": "A", "hobbies": None}


CHARACTER_ROWS = [
    character_row("c1", "a1", "Frieren"),
    character_row("c2", "a1", "Fern"),
    character_row("c3", "a1", "Stark", role="supporting"),
    character_row("c4", "a2", "Laios"),
]

STAFF_ROWS = [
    staff_row("st1", "Atsumi", "Tanezaki"),
    staff_row("st2", "Kana", "Ichinose"),
    staff_row("st3", "Jill", "Harris"),
]

# c3 (Stark) has no linked staff.
CHARACTER_STAFF_LINKS = [
    {"character_id": "c1", "staff_id": "st1"},
    {"character_id": "c2", "staff_id": "st2"},
    {"character_id": "c2", "staff_id": "st3"},
]


async def seed_catalog(database: Database) -> None:
    """Insert the reference catalog."""
    async with database.begin() as conn:
        await conn.execute(insert(anime_table), ANIME_ROWS)
        await conn.execute(insert(episodes_table), EPISODE_ROWS)
        await conn.execute(insert(anime_seasons_table), SEASON_ROWS)
        await conn.execute(insert(tags_table), [{"id": 1, "name": "Fantasy"}, {"id": 2, "name": "Adventure"}])
        await conn.execute(insert(anime_tags_table), [{"anime_id": "a1", "tag_id": 1}, {"anime_id": "a1", "tag_id": 2}])
        await conn.execute(insert(anime_character_table), CHARACTER_ROWS)
        await conn.execute(insert(anime_staff_table), STAFF_ROWS)
        await conn.execute(insert(anime_character_staff_link_table), CHARACTER_STAFF_LINKS)


@pytest_asyncio.fixture
async def database(app_config: AppConfig) -> AsyncIterator[Database]:
    """Seeded in-memory catalog, disposed after the test."""
    db = Database.from_config(app_config.database, logging.getLogger("tests.db"))
    await db.create_schema()
    await seed_catalog(db)
    yield db
    await db.close()


@pytest.fixture
def airing_now() -> datetime:
    return AIRING_NOW
