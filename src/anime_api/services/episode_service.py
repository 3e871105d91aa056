"""Episode read service."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from anime_api.core.models.anime_models import AnimeEpisode
from anime_api.core.models.config_models import TTLFamily
from anime_api.services.airing.air_time import find_next_episode

if TYPE_CHECKING:
    from anime_api.core.models.config_models import AppConfig
    from anime_api.infrastructure.db.episode_repository import EpisodeRepository
    from anime_api.services.airing.air_time import NextEpisodeResult
    from anime_api.services.cache.cache_aside import CacheAside
    from anime_api.services.cache.key_builder import CacheKeyBuilder


class EpisodeService:
    def __init__(
        self,
        config: AppConfig,
        repository: EpisodeRepository,
        aside: CacheAside,
        keys: CacheKeyBuilder,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.aside = aside
        self.keys = keys
        self.logger = logger or logging.getLogger(__name__)

    async def episodes_by_anime_id(self, anime_id: str) -> list[AnimeEpisode]:
        """Episodes of an anime ordered by episode number (cached with the episode TTL)."""
        return await self.aside.get_or_load(
            self.keys.episodes_by_anime_id(anime_id),
            list[AnimeEpisode],
            lambda: self.repository.find_by_anime_id(anime_id),
            self.config.ttl_seconds(TTLFamily.EPISODE),
        )

    async def next_episode(self, anime_id: str, broadcast: str | None, now: datetime | None = None) -> NextEpisodeResult | None:
        """The first episode airing in the future or within the last 24 hours."""
        episodes = await self.episodes_by_anime_id(anime_id)
        return find_next_episode(episodes, broadcast, now or datetime.now(UTC))
