"""Season query planner.

One entry point, :meth:`SeasonQueryPlanner.find_by_season`, answers "anime in
season X" with five interchangeable fetch shapes. Every strategy returns the
same set of anime ids; they differ in projected columns, joins and round trips.
"""

from __future__ import annotations

import logging
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, text

from anime_api.core.logger import LogFormat
from anime_api.core.models.season import parse_season
from anime_api.infrastructure.db.anime_repository import AnimeRepository
from anime_api.infrastructure.db.field_selection import FieldSelection
from anime_api.infrastructure.db.row_mapping import (
    EPISODE_LABEL_PREFIX,
    anime_from_row,
    group_joined_rows,
    sort_episodes,
)
from anime_api.infrastructure.db.schema import anime_seasons_table, anime_table, episodes_table

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from sqlalchemy import Select

    from anime_api.core.models.anime_models import Anime
    from anime_api.core.models.season import Season
    from anime_api.infrastructure.db.engine import Database

# Columns read by season listings; the heavy text columns stay behind.
PROJECTED_ANIME_COLUMNS = (
    "id",
    "title_en",
    "title_jp",
    "title_romaji",
    "title_kanji",
    "image_url",
    "episodes",
    "status",
    "start_date",
    "end_date",
    "duration",
    "broadcast",
    "rating",
    "ranking",
    "created_at",
    "updated_at",
)
PROJECTED_EPISODE_COLUMNS = ("id", "anime_id", "episode", "title_en", "title_jp", "aired")


class SeasonStrategy(StrEnum):
    """Fetch shapes for a season query."""

    JOIN_ALL = "join_all"
    PROJECTED = "projected"
    ANIME_ONLY = "anime_only"
    BATCHED = "batched"
    FIELD_SELECTIVE = "field_selective"

    @property
    def loads_episodes(self) -> bool:
        return self in EPISODE_STRATEGIES


EPISODE_STRATEGIES = frozenset({SeasonStrategy.JOIN_ALL, SeasonStrategy.PROJECTED, SeasonStrategy.BATCHED})


def select_strategy(
    *,
    with_episodes: bool,
    fields: Iterable[str] | None,
    batched: bool,
) -> SeasonStrategy:
    """Pick a strategy from the shape of the request.

    Args:
        with_episodes: Whether the caller reads episodes
        fields: Logical anime fields the caller declared, if any
        batched: Prefer round trips over one wide join when episodes are needed

    Returns:
        The strategy to run

    """
    if not with_episodes:
        return SeasonStrategy.FIELD_SELECTIVE if fields else SeasonStrategy.ANIME_ONLY
    return SeasonStrategy.BATCHED if batched else SeasonStrategy.PROJECTED


def _labeled_episode_columns(names: Sequence[str] | None = None) -> list[Any]:
    columns = episodes_table.c if names is None else [episodes_table.c[name] for name in names]
    return [column.label(f"{EPISODE_LABEL_PREFIX}{column.name}") for column in columns]


def _unique_by_id(animes: Iterable[Anime]) -> list[Anime]:
    unique: dict[str, Anime] = {}
    for anime in animes:
        unique.setdefault(anime.id, anime)
    return list(unique.values())


class SeasonQueryPlanner:
    """Runs season queries against the catalog."""

    def __init__(
        self,
        database: Database,
        logger: logging.Logger | None = None,
        *,
        strict_field_selection: bool = False,
        anime_repository: AnimeRepository | None = None,
    ) -> None:
        """Initialize the planner.

        Args:
            database: Storage handle
            logger: Logger for strategy timing
            strict_field_selection: Raise when a field selection maps to no column
            anime_repository: Repository used by the batched strategy

        """
        self.database = database
        self.logger = logger or logging.getLogger(__name__)
        self.strict_field_selection = strict_field_selection
        self.anime_repository = anime_repository or AnimeRepository(database, self.logger)

    async def find_by_season(
        self,
        season: str | Season,
        *,
        with_episodes: bool = False,
        fields: Iterable[str] | None = None,
        batched: bool = True,
        limit: int | None = None,
        strategy: SeasonStrategy | None = None,
    ) -> list[Anime]:
        """Return the anime of one season.

        Args:
            season: Season string such as ``SPRING_2024``
            with_episodes: Populate episode collections
            fields: Logical anime fields to project (field-selective strategy only)
            batched: Use separate round trips instead of a wide join for episodes
            limit: Maximum number of anime returned
            strategy: Force a specific strategy

        Returns:
            Anime without duplicates; episodes are ordered by number for strategies that
            load them and empty otherwise

        Raises:
            SeasonParseError: If ``season`` is malformed (raised before any query runs)

        """
        parsed = parse_season(season)
        chosen = strategy or select_strategy(with_episodes=with_episodes, fields=fields, batched=batched)
        if with_episodes and not chosen.loads_episodes:
            self.logger.warning("Strategy %s does not load episodes; returning anime only", chosen)

        start = time.perf_counter()
        match chosen:
            case SeasonStrategy.JOIN_ALL:
                animes = await self._join_all(str(parsed))
            case SeasonStrategy.PROJECTED:
                animes = await self._projected(str(parsed))
            case SeasonStrategy.ANIME_ONLY:
                animes = await self._anime_only(str(parsed))
            case SeasonStrategy.BATCHED:
                animes = await self._batched(str(parsed))
            case SeasonStrategy.FIELD_SELECTIVE:
                animes = await self._field_selective(str(parsed), fields, limit)

        animes = _unique_by_id(animes)
        if chosen.loads_episodes:
            animes = [sort_episodes(anime) for anime in animes]
        if limit is not None:
            animes = animes[:limit]
        self.logger.debug(
            "Season %s via %s: %s anime in %s",
            LogFormat.key(str(parsed)),
            LogFormat.entity(chosen.value),
            LogFormat.number(len(animes)),
            LogFormat.duration_ms((time.perf_counter() - start) * 1000),
        )
        return animes

    async def _rows(self, statement: Select | Any, params: Mapping[str, Any] | None = None) -> list[Mapping[str, Any]]:
        async with self.database.connect() as conn:
            result = await conn.execute(statement, params or {})
            return list(result.mappings().all())

    @staticmethod
    def _season_join() -> Any:
        return anime_seasons_table.join(anime_table, anime_seasons_table.c.anime_id == anime_table.c.id)

    async def _join_all(self, season: str) -> list[Anime]:
        statement = (
            select(anime_table, *_labeled_episode_columns())
            .select_from(self._season_join().outerjoin(episodes_table, episodes_table.c.anime_id == anime_table.c.id))
            .where(anime_seasons_table.c.season == season)
            .order_by(anime_table.c.id, episodes_table.c.episode)
        )
        return group_joined_rows(await self._rows(statement))

    async def _projected(self, season: str) -> list[Anime]:
        statement = (
            select(
                *[anime_table.c[name] for name in PROJECTED_ANIME_COLUMNS],
                *_labeled_episode_columns(PROJECTED_EPISODE_COLUMNS),
            )
            .select_from(self._season_join().outerjoin(episodes_table, episodes_table.c.anime_id == anime_table.c.id))
            .where(anime_seasons_table.c.season == season)
        )
        return group_joined_rows(await self._rows(statement))

    async def _anime_only(self, season: str) -> list[Anime]:
        statement = (
            select(anime_table)
            .select_from(self._season_join())
            .where(anime_seasons_table.c.season == season)
            .order_by(anime_table.c.ranking.asc(), anime_table.c.title_en.asc())
        )
        return [anime_from_row(row) for row in await self._rows(statement)]

    async def _batched(self, season: str) -> list[Anime]:
        statement = (
            select(anime_seasons_table.c.anime_id)
            .where(anime_seasons_table.c.season == season, anime_seasons_table.c.anime_id.is_not(None))
            .order_by(anime_seasons_table.c.created_at, anime_seasons_table.c.id)
        )
        anime_ids = [row["anime_id"] for row in await self._rows(statement)]
        return await self.anime_repository.find_by_ids_with_episodes(anime_ids)

    async def _field_selective(self, season: str, fields: Iterable[str] | None, limit: int | None) -> list[Anime]:
        selection = FieldSelection(fields, logger=self.logger, strict=self.strict_field_selection)
        sql = (
            f"SELECT {selection.build_select_clause('a')} "  # noqa: S608
            "FROM anime a "
            "WHERE a.id IN (SELECT s.anime_id FROM anime_seasons s WHERE s.season = :season) "
            "ORDER BY a.ranking ASC, a.title_en ASC"
        )
        params: dict[str, Any] = {"season": season}
        if limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = limit
        return [anime_from_row(row) for row in await self._rows(text(sql), params)]
