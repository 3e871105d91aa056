"""Anime read service: cached lookups, ranked lists, season buckets and the airing list."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from anime_api.core.logger import LogFormat
from anime_api.core.models.anime_models import Anime, AnimeWithNextEpisode
from anime_api.core.models.config_models import TTLFamily
from anime_api.core.models.season import Season, parse_season
from anime_api.services.airing.air_time import process_currently_airing
from anime_api.services.airing.timezone_utils import AiringWindow
from anime_api.services.cache.key_builder import RankedList

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from anime_api.core.models.config_models import AppConfig
    from anime_api.infrastructure.db.anime_repository import AnimeRepository
    from anime_api.infrastructure.db.season_planner import SeasonQueryPlanner
    from anime_api.services.cache.cache_aside import CacheAside
    from anime_api.services.cache.key_builder import CacheKeyBuilder

DEFAULT_LIST_LIMIT = 10
DEFAULT_AIRING_LIMIT = 20


class AnimeService:
    """Answers anime queries through the cache, falling back to storage."""

    def __init__(
        self,
        config: AppConfig,
        repository: AnimeRepository,
        planner: SeasonQueryPlanner,
        aside: CacheAside,
        keys: CacheKeyBuilder,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.planner = planner
        self.aside = aside
        self.keys = keys
        self.logger = logger or logging.getLogger(__name__)

    @property
    def anime_ttl(self) -> int:
        return self.config.ttl_seconds(TTLFamily.ANIME)

    @property
    def season_ttl(self) -> int:
        return self.config.ttl_seconds(TTLFamily.SEASON)

    async def anime_by_id(self, anime_id: str) -> Anime | None:
        return await self.aside.get_or_load(
            self.keys.anime_by_id(anime_id),
            Anime,
            lambda: self.repository.find_by_id(anime_id),
            self.anime_ttl,
        )

    async def anime_by_ids(self, anime_ids: Sequence[str]) -> list[Anime]:
        """Fetch several anime; the result follows the order of ``anime_ids``."""
        if not anime_ids:
            return []
        animes = await self.aside.get_or_load(
            self.keys.anime_by_ids(anime_ids),
            list[Anime],
            lambda: self.repository.find_by_ids(sorted(set(anime_ids))),
            self.anime_ttl,
        )
        by_id = {anime.id: anime for anime in animes}
        return [by_id[anime_id] for anime_id in dict.fromkeys(anime_ids) if anime_id in by_id]

    async def _ranked(self, kind: RankedList, limit: int, loader: Callable[[int], Awaitable[list[Anime]]]) -> list[Anime]:
        return await self.aside.get_or_load(
            self.keys.ranked_list(kind, limit),
            list[Anime],
            lambda: loader(limit),
            self.anime_ttl,
        )

    async def top_rated(self, limit: int = DEFAULT_LIST_LIMIT) -> list[Anime]:
        return await self._ranked(RankedList.TOP_RATED, limit, self.repository.top_rated)

    async def most_popular(self, limit: int = DEFAULT_LIST_LIMIT) -> list[Anime]:
        return await self._ranked(RankedList.MOST_POPULAR, limit, self.repository.most_popular)

    async def newest(self, limit: int = DEFAULT_LIST_LIMIT) -> list[Anime]:
        return await self._ranked(RankedList.NEWEST, limit, self.repository.newest)

    async def search(self, query: str, *, page: int = 1, limit: int = 20) -> list[Anime]:
        """Title substring search; results are not cached."""
        return await self.repository.search(query, page=page, limit=limit)

    async def currently_airing(
        self,
        limit: int = DEFAULT_AIRING_LIMIT,
        start: datetime | None = None,
        end: datetime | None = None,
        days: int | None = None,
        now: datetime | None = None,
    ) -> list[AnimeWithNextEpisode]:
        """Anime airing in a window, ranked as recently aired followed by upcoming.

        Results are cached per resolved window (so a new Japan day starts a new
        entry) with the episode TTL, since the ranking moves with ``now``.

        Args:
            limit: Maximum number of anime returned
            start: Window start (defaults to now); snapped to the start of the Japan day
            end: Window end (defaults to ``start + days``)
            days: Window length in days when ``end`` is absent (defaults to 7)
            now: Reference instant for classification (defaults to the current UTC time)

        Returns:
            Ranked anime, each with its next episode and display info

        """
        current = now or datetime.now(UTC)
        window = AiringWindow.from_request(start, end, days, current)

        async def load() -> list[AnimeWithNextEpisode]:
            animes = await self.repository.airing_with_episodes(window)
            return process_currently_airing(animes, limit, current)

        result = await self.aside.get_or_load(
            self.keys.currently_airing(limit, window.start, window.end),
            list[AnimeWithNextEpisode],
            load,
            self.config.ttl_seconds(TTLFamily.EPISODE),
            with_children=True,
        )
        self.logger.debug("Currently airing (limit %s): %s anime", LogFormat.number(limit), LogFormat.number(len(result)))
        return result

    async def anime_by_season(
        self,
        season: str | Season,
        *,
        fields: Sequence[str] | None = None,
        with_episodes: bool = False,
        limit: int | None = None,
    ) -> list[Anime]:
        """Anime of one season through the query planner.

        Raises:
            SeasonParseError: If ``season`` is malformed

        """
        parsed = parse_season(season)
        key = self.keys.anime_by_season(parsed, fields)
        if with_episodes:
            key = f"{key}:with_episodes"
        if limit is not None:
            key = f"{key}:limit:{limit}"
        return await self.aside.get_or_load(
            key,
            list[Anime],
            lambda: self.planner.find_by_season(parsed, with_episodes=with_episodes, fields=fields, limit=limit),
            self.season_ttl,
            with_children=with_episodes,
        )

    async def anime_by_season_and_year(self, season_name: str, year: int, limit: int = DEFAULT_LIST_LIMIT) -> list[Anime]:
        """Convenience wrapper taking the season name (any case) and year separately."""
        return await self.anime_by_season(Season.create(season_name, year), limit=limit)
