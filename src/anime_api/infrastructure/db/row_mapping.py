"""Row to model conversion at the storage boundary."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from anime_api.core.models.anime_models import (
    Anime,
    AnimeCharacter,
    AnimeEpisode,
    AnimeSeason,
    AnimeStaff,
    CharacterWithStaff,
    Tag,
)
from anime_api.services.airing.timezone_utils import parse_japan_local

EPISODE_LABEL_PREFIX = "ep_"
STAFF_LABEL_PREFIX = "staff_"


def anime_from_row(row: Mapping[str, Any]) -> Anime:
    """Build an ``Anime`` from an ``anime`` row (any subset of columns)."""
    data = dict(row)
    if "episodes" in data:
        data["episode_count"] = data.pop("episodes")
    return Anime.model_validate(data)


def episode_from_row(row: Mapping[str, Any]) -> AnimeEpisode:
    """Build an ``AnimeEpisode``; ``aired`` is read as Japan local time (unparsable values become None)."""
    data = dict(row)
    aired = data.get("aired")
    if isinstance(aired, str):
        data["aired"] = parse_japan_local(aired)
    return AnimeEpisode.model_validate(data)


def prefixed_episode(row: Mapping[str, Any], prefix: str = EPISODE_LABEL_PREFIX) -> AnimeEpisode | None:
    """Extract the episode half of a joined row whose episode columns carry ``prefix``.

    Returns:
        The episode, or None for the all-NULL side of an outer join

    """
    data = {key[len(prefix) :]: value for key, value in row.items() if key.startswith(prefix)}
    if data.get("id") is None:
        return None
    return episode_from_row(data)


def unprefixed(row: Mapping[str, Any], prefix: str = EPISODE_LABEL_PREFIX) -> dict[str, Any]:
    """The anime half of a joined row."""
    return {key: value for key, value in row.items() if not key.startswith(prefix)}


def anime_season_from_row(row: Mapping[str, Any]) -> AnimeSeason:
    return AnimeSeason.model_validate(dict(row))


def tag_from_row(row: Mapping[str, Any]) -> Tag:
    return Tag.model_validate(dict(row))


def group_joined_rows(rows: list[Mapping[str, Any]]) -> list[Anime]:
    """Fold ``anime ⟕ episodes`` rows into anime with their episodes, keeping first-seen order."""
    grouped: dict[str, Anime] = {}
    seen_episodes: set[str] = set()
    for row in rows:
        anime_id = row["id"]
        anime = grouped.get(anime_id)
        if anime is None:
            anime = anime_from_row(unprefixed(row))
            grouped[anime_id] = anime
        episode = prefixed_episode(row)
        if episode is not None and episode.id not in seen_episodes:
            seen_episodes.add(episode.id)
            anime.episodes.append(episode)
    return list(grouped.values())


def sort_episodes(anime: Anime) -> Anime:
    """Order an anime's episodes by episode number (unnumbered episodes last)."""
    anime.episodes.sort(key=lambda episode: (episode.episode is None, episode.episode or 0))
    return anime


def character_from_row(row: Mapping[str, Any]) -> AnimeCharacter:
    return AnimeCharacter.model_validate(dict(row))


def staff_from_row(row: Mapping[str, Any]) -> AnimeStaff:
    return AnimeStaff.model_validate(dict(row))


def group_character_rows(rows: list[Mapping[str, Any]]) -> list[CharacterWithStaff]:
    """Fold ``character ⟕ link ⟕ staff`` rows into characters with their staff, keeping first-seen order.

    Staff columns carry ``STAFF_LABEL_PREFIX``; a character without linked
    staff yields one row whose staff half is all NULL.
    """
    grouped: dict[str, CharacterWithStaff] = {}
    for row in rows:
        character_id = row["id"]
        entry = grouped.get(character_id)
        if entry is None:
            entry = CharacterWithStaff(character=character_from_row(unprefixed(row, STAFF_LABEL_PREFIX)))
            grouped[character_id] = entry
        staff = {key[len(STAFF_LABEL_PREFIX) :]: value for key, value in row.items() if key.startswith(STAFF_LABEL_PREFIX)}
        if staff.get("id") is not None and all(member.id != staff["id"] for member in entry.staff):
            entry.staff.append(staff_from_row(staff))
    return list(grouped.values())
