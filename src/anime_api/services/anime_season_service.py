"""Anime season records with cache invalidation on write."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from anime_api.core.logger import LogFormat
from anime_api.core.models.season import parse_season

if TYPE_CHECKING:
    from anime_api.core.models.anime_models import AnimeSeason
    from anime_api.infrastructure.db.anime_season_repository import AnimeSeasonRepository
    from anime_api.services.cache.cache_coordinator import InvalidationCoordinator


class AnimeSeasonService:
    """CRUD over season records.

    Reads go straight to storage. Every successful write drops the cached
    season buckets and the entries of the linked anime.
    """

    def __init__(
        self,
        repository: AnimeSeasonRepository,
        coordinator: InvalidationCoordinator,
        logger: logging.Logger | None = None,
    ) -> None:
        self.repository = repository
        self.coordinator = coordinator
        self.logger = logger or logging.getLogger(__name__)

    async def find_by_anime_id(self, anime_id: str) -> list[AnimeSeason]:
        return await self.repository.find_by_anime_id(anime_id)

    async def find_by_season(self, season: str) -> list[AnimeSeason]:
        """Records of one season.

        Raises:
            SeasonParseError: If ``season`` is malformed

        """
        return await self.repository.find_by_season(str(parse_season(season)))

    async def _invalidate(self, *anime_ids: str | None) -> None:
        deleted = await self.coordinator.invalidate_seasons()
        for anime_id in dict.fromkeys(anime_ids):
            if anime_id:
                deleted += await self.coordinator.invalidate_anime(anime_id)
        self.logger.debug("Season write invalidated %s cache entries", LogFormat.number(deleted))

    async def create(self, record: AnimeSeason) -> AnimeSeason:
        """Store a new record.

        Raises:
            SeasonParseError: If the record's season is malformed

        """
        parse_season(record.season)
        created = await self.repository.create(record)
        await self._invalidate(created.anime_id)
        return created

    async def update(self, record: AnimeSeason) -> bool:
        parse_season(record.season)
        previous = await self.repository.find_by_id(record.id)
        updated = await self.repository.update(record)
        if updated:
            await self._invalidate(record.anime_id, previous.anime_id if previous else None)
        return updated

    async def delete(self, record_id: str) -> bool:
        previous = await self.repository.find_by_id(record_id)
        deleted = await self.repository.delete(record_id)
        if deleted:
            await self._invalidate(previous.anime_id if previous else None)
        return deleted
