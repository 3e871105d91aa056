"""Cache key schema.

All keys live under one namespace prefix and are case-sensitive. Patterns use
glob syntax (``*`` and ``?``) and are consumed by ``delete_pattern``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from enum import StrEnum

from anime_api.core.models.season import Season

DEFAULT_NAMESPACE = "anime-api"
NONE_PART = "none"
CHILDREN_SUFFIX = ":episodes"
LOCK_SUFFIX = ":lock"


class RankedList(StrEnum):
    """Ranked anime list families, each with its own key namespace."""

    TOP_RATED = "top_rated"
    MOST_POPULAR = "most_popular"
    NEWEST = "newest"


def _instant(value: datetime | None) -> str:
    if value is None:
        return NONE_PART
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _part(value: object | None) -> str:
    return NONE_PART if value is None else str(value)


class CacheKeyBuilder:
    """Builds cache keys and invalidation patterns for one namespace."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.namespace = namespace

    def _key(self, *parts: object) -> str:
        return ":".join([self.namespace, *(str(part) for part in parts)])

    def anime_by_id(self, anime_id: str) -> str:
        return self._key("anime", "id", anime_id)

    def anime_by_ids(self, anime_ids: Iterable[str]) -> str:
        """Key for an id-set lookup; ids are sorted so the order of the request does not matter."""
        return self._key("anime", "ids", ",".join(sorted(anime_ids)))

    def anime_by_season(self, season: str | Season, fields: Sequence[str] | None = None) -> str:
        """Key for a season bucket.

        Args:
            season: Canonical season string
            fields: Requested logical fields, kept in caller order

        Returns:
            ``<ns>:anime:season:<season>:all`` or ``...:fields:<csv>``

        """
        if fields:
            return self._key("anime", "season", season, "fields", ",".join(fields))
        return self._key("anime", "season", season, "all")

    def anime_by_season_pattern(self, season: str | Season) -> str:
        return self._key("anime", "season", season, "*")

    def all_seasons_pattern(self) -> str:
        return self._key("anime", "season", "*")

    def episodes_by_anime_id(self, anime_id: str) -> str:
        return self._key("episodes", "anime", anime_id)

    def episode_by_id(self, episode_id: str) -> str:
        return self._key("episode", "id", episode_id)

    def characters_by_anime_id(self, anime_id: str) -> str:
        """Key for an anime's characters with staff; lives under ``anime:`` so anime invalidation clears it."""
        return self._key("anime", "characters", anime_id)

    def anime_pattern(self) -> str:
        return self._key("anime", "*")

    def episode_pattern(self) -> str:
        return f"{self.namespace}:episode*"

    def anime_by_id_pattern(self, anime_id: str) -> str:
        """Every key that mentions ``anime`` and ends in segments starting with the id."""
        return f"{self.namespace}:*anime*:{anime_id}*"

    def currently_airing(
        self,
        limit: int | None,
        start: datetime | None = None,
        end: datetime | None = None,
        days: int | None = None,
    ) -> str:
        """Key for a currently-airing query; absent parts render as ``none``, instants as UTC ISO-8601."""
        return self._key("airing", _part(limit), _instant(start), _instant(end), _part(days))

    def currently_airing_pattern(self) -> str:
        return self._key("airing", "*")

    def ranked_list(self, kind: RankedList | str, limit: int) -> str:
        return self._key("anime", RankedList(kind).value, limit)

    def ranked_list_pattern(self, kind: RankedList | str) -> str:
        return self._key("anime", RankedList(kind).value, "*")

    @staticmethod
    def separated_children(key: str) -> str:
        """Key under which detached episode lists of ``key`` are stored."""
        return f"{key}{CHILDREN_SUFFIX}"

    @staticmethod
    def lock_key(key: str) -> str:
        """Advisory rebuild-lock key for ``key``."""
        return f"{key}{LOCK_SUFFIX}"

    def flush_pattern(self) -> str:
        return "*"
