"""Domain and configuration models."""

from anime_api.core.models.anime_models import (
    AirTimeDisplayInfo,
    AirTimeVariant,
    Anime,
    AnimeCharacter,
    AnimeEpisode,
    AnimeSeason,
    AnimeSeasonStatus,
    AnimeStaff,
    AnimeWithNextEpisode,
    CatalogEntity,
    CharacterWithStaff,
    Episode,
    Tag,
)
from anime_api.core.models.config_models import AppConfig, TTLFamily
from anime_api.core.models.season import Season, parse_season

__all__ = [
    "AirTimeDisplayInfo",
    "AirTimeVariant",
    "Anime",
    "AnimeCharacter",
    "AnimeEpisode",
    "AnimeSeason",
    "AnimeSeasonStatus",
    "AnimeStaff",
    "AnimeWithNextEpisode",
    "AppConfig",
    "CatalogEntity",
    "CharacterWithStaff",
    "Episode",
    "Season",
    "TTLFamily",
    "Tag",
    "parse_season",
]
