"""Character and staff read service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from anime_api.core.models.anime_models import CharacterWithStaff
from anime_api.core.models.config_models import TTLFamily

if TYPE_CHECKING:
    from anime_api.core.models.anime_models import AnimeCharacter, AnimeStaff
    from anime_api.core.models.config_models import AppConfig
    from anime_api.infrastructure.db.character_repository import CharacterRepository
    from anime_api.infrastructure.db.staff_repository import StaffRepository
    from anime_api.services.cache.cache_aside import CacheAside
    from anime_api.services.cache.key_builder import CacheKeyBuilder


class CharacterService:
    def __init__(
        self,
        config: AppConfig,
        characters: CharacterRepository,
        staff: StaffRepository,
        aside: CacheAside,
        keys: CacheKeyBuilder,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.characters = characters
        self.staff = staff
        self.aside = aside
        self.keys = keys
        self.logger = logger or logging.getLogger(__name__)

    async def characters_and_staff_by_anime_id(self, anime_id: str) -> list[CharacterWithStaff]:
        """Characters of an anime with their staff (cached with the anime TTL)."""
        return await self.aside.get_or_load(
            self.keys.characters_by_anime_id(anime_id),
            list[CharacterWithStaff],
            lambda: self.characters.find_with_staff_by_anime_id(anime_id),
            self.config.ttl_seconds(TTLFamily.ANIME),
        )

    async def character_by_id(self, character_id: str) -> AnimeCharacter | None:
        return await self.characters.find_by_id(character_id)

    async def staff_by_character_id(self, character_id: str) -> list[AnimeStaff]:
        return await self.staff.find_by_character_id(character_id)
