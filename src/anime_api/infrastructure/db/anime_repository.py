"""Anime reads: lookups by id, ranked lists, search and the airing window."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from anime_api.infrastructure.db.row_mapping import anime_from_row, episode_from_row
from anime_api.infrastructure.db.schema import anime_table, episodes_table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select

    from anime_api.core.models.anime_models import Anime
    from anime_api.infrastructure.db.engine import Database
    from anime_api.services.airing.timezone_utils import AiringWindow

UNRATED = "N/A"


class AnimeRepository:
    """Read access to the ``anime`` table and its episodes."""

    def __init__(self, database: Database, logger: logging.Logger | None = None) -> None:
        self.database = database
        self.logger = logger or logging.getLogger(__name__)

    async def _fetch(self, statement: Select) -> list[Anime]:
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return [anime_from_row(row) for row in result.mappings().all()]

    async def _attach_episodes(self, animes: list[Anime]) -> list[Anime]:
        if not animes:
            return animes
        by_id = {anime.id: anime for anime in animes}
        statement = (
            select(episodes_table)
            .where(episodes_table.c.anime_id.in_(list(by_id)))
            .order_by(episodes_table.c.anime_id, episodes_table.c.episode)
        )
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            for row in result.mappings().all():
                by_id[row["anime_id"]].episodes.append(episode_from_row(row))
        return animes

    async def find_by_id(self, anime_id: str) -> Anime | None:
        animes = await self._fetch(select(anime_table).where(anime_table.c.id == anime_id))
        return animes[0] if animes else None

    async def find_by_id_with_episodes(self, anime_id: str) -> Anime | None:
        anime = await self.find_by_id(anime_id)
        if anime is None:
            return None
        await self._attach_episodes([anime])
        return anime

    async def find_by_ids(self, anime_ids: Sequence[str]) -> list[Anime]:
        """Fetch anime in one query, returned in the order of ``anime_ids`` (unknown ids skipped)."""
        if not anime_ids:
            return []
        animes = await self._fetch(select(anime_table).where(anime_table.c.id.in_(list(anime_ids))))
        by_id = {anime.id: anime for anime in animes}
        return [by_id[anime_id] for anime_id in dict.fromkeys(anime_ids) if anime_id in by_id]

    async def find_by_ids_with_episodes(self, anime_ids: Sequence[str]) -> list[Anime]:
        return await self._attach_episodes(await self.find_by_ids(anime_ids))

    async def top_rated(self, limit: int) -> list[Anime]:
        statement = select(anime_table).where(anime_table.c.rating != UNRATED).order_by(anime_table.c.rating.desc()).limit(limit)
        return await self._fetch(statement)

    async def most_popular(self, limit: int) -> list[Anime]:
        statement = (
            select(anime_table).where(anime_table.c.ranking.is_not(None)).order_by(anime_table.c.ranking.asc()).limit(limit)
        )
        return await self._fetch(statement)

    async def newest(self, limit: int) -> list[Anime]:
        statement = (
            select(anime_table)
            .where(anime_table.c.created_at.is_not(None))
            .order_by(anime_table.c.created_at.desc())
            .limit(limit)
        )
        return await self._fetch(statement)

    async def search(self, query: str, *, page: int = 1, limit: int = 20) -> list[Anime]:
        """Substring match over the title columns, ordered by ranking."""
        pattern = f"%{query}%"
        statement = (
            select(anime_table)
            .where(
                or_(
                    anime_table.c.title_en.like(pattern),
                    anime_table.c.title_jp.like(pattern),
                    anime_table.c.title_romaji.like(pattern),
                    anime_table.c.title_kanji.like(pattern),
                    anime_table.c.title_synonyms.like(pattern),
                )
            )
            .order_by(anime_table.c.ranking.asc(), anime_table.c.id.asc())
            .limit(limit)
            .offset(max(page - 1, 0) * limit)
        )
        return await self._fetch(statement)

    async def airing_with_episodes(self, window: AiringWindow) -> list[Anime]:
        """Anime with at least one episode airing inside ``window``, each carrying those episodes in air order."""
        start, end = window.storage_bounds()
        statement = (
            select(episodes_table)
            .where(episodes_table.c.aired >= start, episodes_table.c.aired < end)
            .order_by(episodes_table.c.aired.asc(), episodes_table.c.episode.asc())
        )
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            episode_rows = result.mappings().all()

        anime_ids = list(dict.fromkeys(row["anime_id"] for row in episode_rows if row["anime_id"] is not None))
        animes = await self.find_by_ids(anime_ids)
        by_id = {anime.id: anime for anime in animes}
        for row in episode_rows:
            anime = by_id.get(row["anime_id"])
            if anime is not None:
                anime.episodes.append(episode_from_row(row))
        self.logger.debug("Airing window %s..%s matched %d anime", start, end, len(animes))
        return animes
