"""Season membership records (``anime_seasons``)."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update

from anime_api.infrastructure.db.row_mapping import anime_season_from_row
from anime_api.infrastructure.db.schema import anime_seasons_table

if TYPE_CHECKING:
    from anime_api.core.models.anime_models import AnimeSeason
    from anime_api.infrastructure.db.engine import Database


def _utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _values(record: AnimeSeason) -> dict[str, Any]:
    return {
        "anime_id": record.anime_id,
        "season": record.season,
        "status": record.status.value,
        "episode_count": record.episode_count,
        "notes": record.notes,
    }


class AnimeSeasonRepository:
    """CRUD over ``anime_seasons``."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def _select(self, *criteria: Any) -> list[AnimeSeason]:
        statement = select(anime_seasons_table).where(*criteria).order_by(anime_seasons_table.c.created_at, anime_seasons_table.c.id)
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return [anime_season_from_row(row) for row in result.mappings().all()]

    async def find_by_anime_id(self, anime_id: str) -> list[AnimeSeason]:
        return await self._select(anime_seasons_table.c.anime_id == anime_id)

    async def find_by_season(self, season: str) -> list[AnimeSeason]:
        return await self._select(anime_seasons_table.c.season == season)

    async def find_by_id(self, record_id: str) -> AnimeSeason | None:
        records = await self._select(anime_seasons_table.c.id == record_id)
        return records[0] if records else None

    async def create(self, record: AnimeSeason) -> AnimeSeason:
        """Insert a record, generating an id and timestamps when missing."""
        now = _utc_now()
        created = record.model_copy(
            update={
                "id": record.id or str(uuid.uuid4()),
                "created_at": record.created_at or now,
                "updated_at": record.updated_at or now,
            }
        )
        async with self.database.begin() as conn:
            await conn.execute(
                insert(anime_seasons_table).values(
                    id=created.id, created_at=created.created_at, updated_at=created.updated_at, **_values(created)
                )
            )
        return created

    async def update(self, record: AnimeSeason) -> bool:
        """Overwrite a record by id; returns False when it does not exist."""
        now = _utc_now()
        async with self.database.begin() as conn:
            result = await conn.execute(
                update(anime_seasons_table).where(anime_seasons_table.c.id == record.id).values(updated_at=now, **_values(record))
            )
        return result.rowcount > 0

    async def delete(self, record_id: str) -> bool:
        async with self.database.begin() as conn:
            result = await conn.execute(delete(anime_seasons_table).where(anime_seasons_table.c.id == record_id))
        return result.rowcount > 0
