"""Episode reads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from anime_api.infrastructure.db.row_mapping import episode_from_row
from anime_api.infrastructure.db.schema import episodes_table

if TYPE_CHECKING:
    from anime_api.core.models.anime_models import AnimeEpisode
    from anime_api.infrastructure.db.engine import Database


class EpisodeRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_by_anime_id(self, anime_id: str) -> list[AnimeEpisode]:
        """Episodes of one anime ordered by episode number."""
        statement = select(episodes_table).where(episodes_table.c.anime_id == anime_id).order_by(episodes_table.c.episode.asc())
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return [episode_from_row(row) for row in result.mappings().all()]

    async def find_by_id(self, episode_id: str) -> AnimeEpisode | None:
        async with self.database.connect() as conn:
            result = await conn.execute(select(episodes_table).where(episodes_table.c.id == episode_id))
            row = result.mappings().first()
        return episode_from_row(row) if row is not None else None
