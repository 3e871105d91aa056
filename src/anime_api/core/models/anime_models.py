"""Pydantic models for catalog entities and their read-side projections."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class AnimeSeasonStatus(StrEnum):
    """Lifecycle status of an anime within a season."""

    UNKNOWN = "unknown"
    CONFIRMED = "confirmed"
    ANNOUNCED = "announced"
    CANCELLED = "cancelled"


class AirTimeVariant(StrEnum):
    """Display variant for an episode air time."""

    AIRING = "airing"
    COUNTDOWN = "countdown"
    AIRED = "aired"
    SCHEDULED = "scheduled"


class CatalogEntity(BaseModel):
    """Base class for cacheable catalog entities.

    ``entity_kind`` names the exclusion-table row that applies to the model
    when it is pruned for caching. Subclasses inherit the kind of their parent.
    """

    entity_kind: ClassVar[str | None] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AnimeEpisode(CatalogEntity):
    """Episode row as stored in the ``episodes`` table."""

    entity_kind: ClassVar[str | None] = "AnimeEpisode"

    id: str
    anime_id: str | None = None
    episode: int | None = None
    title_en: str | None = None
    title_jp: str | None = None
    aired: datetime | None = None  # Aware, Japan local time
    synopsis: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Episode(CatalogEntity):
    """Episode projection returned by airing queries."""

    entity_kind: ClassVar[str | None] = "Episode"

    id: str
    anime_id: str | None = None
    episode_number: int | None = None
    title_en: str | None = None
    title_jp: str | None = None
    air_date: datetime | None = None
    air_time: datetime | None = None  # UTC
    synopsis: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_anime_episode(cls, episode: AnimeEpisode, air_time: datetime | None = None) -> Episode:
        """Project a stored episode into the airing representation."""
        return cls(
            id=episode.id,
            anime_id=episode.anime_id,
            episode_number=episode.episode,
            title_en=episode.title_en,
            title_jp=episode.title_jp,
            air_date=episode.aired,
            air_time=air_time,
            synopsis=episode.synopsis,
            created_at=episode.created_at,
            updated_at=episode.updated_at,
        )


class Anime(CatalogEntity):
    """Anime row with its (optionally populated) episode collection."""

    entity_kind: ClassVar[str | None] = "Anime"

    id: str
    title_en: str | None = None
    title_jp: str | None = None
    title_romaji: str | None = None
    title_kanji: str | None = None
    title_synonyms: str | None = None  # JSON array encoded as string
    synopsis: str | None = None
    image_url: str | None = None
    episode_count: int | None = None  # Column ``episodes``
    status: str | None = None
    start_date: str | None = None  # Naive Japan local time
    end_date: str | None = None
    genres: str | None = None
    duration: str | None = None
    broadcast: str | None = None
    source: str | None = None
    licensors: str | None = None
    studios: str | None = None
    rating: str | None = None
    ranking: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    episodes: list[AnimeEpisode] = Field(default_factory=list)


class AirTimeDisplayInfo(BaseModel):
    """How an anime card should present the next episode air time."""

    show: bool
    text: str
    variant: AirTimeVariant


class AnimeWithNextEpisode(Anime):
    """Anime with a computed next-episode pointer for airing-window queries."""

    next_episode: Episode | None = None
    air_time_display: AirTimeDisplayInfo | None = None


class AnimeSeason(CatalogEntity):
    """Season membership record for an anime."""

    entity_kind: ClassVar[str | None] = "AnimeSeason"

    id: str
    season: str
    status: AnimeSeasonStatus = AnimeSeasonStatus.UNKNOWN
    episode_count: int | None = None
    notes: str | None = None
    anime_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Tag(CatalogEntity):
    """Catalog tag."""

    entity_kind: ClassVar[str | None] = "Tag"

    id: int
    name: str


class AnimeStaff(CatalogEntity):
    """Staff member (voice actor) row."""

    entity_kind: ClassVar[str | None] = "AnimeStaff"

    id: str
    given_name: str | None = None
    family_name: str | None = None
    image: str | None = None
    birthday: str | None = None
    birth_place: str | None = None
    blood_type: str | None = None
    hobbies: str | None = None
    summary: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AnimeCharacter(CatalogEntity):
    """Character row belonging to one anime."""

    entity_kind: ClassVar[str | None] = "AnimeCharacter"

    id: str
    anime_id: str | None = None
    name: str | None = None
    role: str | None = None
    birthday: str | None = None
    zodiac: str | None = None
    gender: str | None = None
    race: str | None = None
    height: str | None = None
    weight: str | None = None
    title: str | None = None
    martial_status: str | None = None
    summary: str | None = None
    image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CharacterWithStaff(BaseModel):
    """A character together with the staff linked to it."""

    character: AnimeCharacter
    staff: list[AnimeStaff] = Field(default_factory=list)
