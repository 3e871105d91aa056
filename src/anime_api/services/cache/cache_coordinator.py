"""Invalidation coordinator: maps catalog mutation events to cache deletions.

Each event expands to a fixed list of keys and glob patterns. Every deletion
step is attempted even when an earlier one fails, so one transport error does
not leave the remaining families stale. Pattern deletion enumerates and then
deletes, so keys written concurrently may survive an event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from anime_api.core.exceptions import CacheError
from anime_api.core.logger import LogFormat
from anime_api.services.cache.key_builder import CacheKeyBuilder, RankedList

if TYPE_CHECKING:
    from anime_api.services.cache.cache_protocol import JsonCache


class CacheEventType(Enum):
    """Types of cache invalidation events."""

    ANIME_MUTATED = "anime_mutated"
    EPISODES_MUTATED = "episodes_mutated"
    SEASON_DATA_MUTATED = "season_data_mutated"
    RANKED_LISTS_STALE = "ranked_lists_stale"
    ALL_ANIME = "all_anime"
    ALL_EPISODES = "all_episodes"
    FULL_FLUSH = "full_flush"


_EVENTS_REQUIRING_ANIME_ID = frozenset({CacheEventType.ANIME_MUTATED, CacheEventType.EPISODES_MUTATED})


@dataclass(frozen=True)
class CacheEvent:
    """Cache event for event-driven invalidation."""

    event_type: CacheEventType
    anime_id: str | None = None
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate event data."""
        if self.event_type in _EVENTS_REQUIRING_ANIME_ID and not self.anime_id:
            msg = f"anime_id required for {self.event_type.value}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class InvalidationStep:
    """One deletion: an exact key or a glob pattern."""

    target: str
    is_pattern: bool


class InvalidationCoordinator:
    """Central dispatcher that turns mutation events into key and pattern deletes."""

    def __init__(self, cache: JsonCache, key_builder: CacheKeyBuilder | None = None, logger: logging.Logger | None = None) -> None:
        """Initialize the invalidation coordinator.

        Args:
            cache: Cache layer used for deletions
            key_builder: Key schema for the cache namespace
            logger: Logger for coordination activities

        """
        self.cache = cache
        self.keys = key_builder or CacheKeyBuilder()
        self.logger = logger or logging.getLogger(__name__)

    def plan(self, event: CacheEvent) -> list[InvalidationStep]:
        """Expand an event into its deletion steps."""
        keys = self.keys
        match event.event_type:
            case CacheEventType.ANIME_MUTATED:
                anime_id = str(event.anime_id)
                return [
                    InvalidationStep(keys.anime_by_id(anime_id), is_pattern=False),
                    InvalidationStep(keys.episodes_by_anime_id(anime_id), is_pattern=False),
                    InvalidationStep(keys.all_seasons_pattern(), is_pattern=True),
                    InvalidationStep(keys.anime_pattern(), is_pattern=True),
                    InvalidationStep(keys.currently_airing_pattern(), is_pattern=True),
                ]
            case CacheEventType.EPISODES_MUTATED:
                return [InvalidationStep(keys.episodes_by_anime_id(str(event.anime_id)), is_pattern=False)]
            case CacheEventType.SEASON_DATA_MUTATED:
                return [InvalidationStep(keys.all_seasons_pattern(), is_pattern=True)]
            case CacheEventType.RANKED_LISTS_STALE:
                return [InvalidationStep(keys.ranked_list_pattern(kind), is_pattern=True) for kind in RankedList]
            case CacheEventType.ALL_ANIME:
                return [
                    InvalidationStep(keys.anime_pattern(), is_pattern=True),
                    InvalidationStep(keys.all_seasons_pattern(), is_pattern=True),
                    InvalidationStep(keys.currently_airing_pattern(), is_pattern=True),
                ]
            case CacheEventType.ALL_EPISODES:
                return [InvalidationStep(keys.episode_pattern(), is_pattern=True)]
            case CacheEventType.FULL_FLUSH:
                return [InvalidationStep(keys.flush_pattern(), is_pattern=True)]
        msg = f"Unknown cache event type: {event.event_type}"
        raise ValueError(msg)

    async def handle(self, event: CacheEvent) -> int:
        """Process an event.

        Args:
            event: Mutation event

        Returns:
            Total number of deleted cache entries

        """
        total = 0
        failures = 0
        for step in self.plan(event):
            try:
                if step.is_pattern:
                    total += await self.cache.delete_pattern(step.target)
                else:
                    total += await self.cache.delete(step.target)
            except CacheError:
                failures += 1
                self.logger.exception("Failed to invalidate %s for %s", step.target, event.event_type.value)

        if failures:
            self.logger.warning(
                "Invalidation %s finished with %s failed steps", LogFormat.entity(event.event_type.value), LogFormat.error(str(failures))
            )
        else:
            self.logger.debug("Invalidation %s removed %s entries", LogFormat.entity(event.event_type.value), LogFormat.number(total))
        return total

    async def invalidate_anime(self, anime_id: str) -> int:
        return await self.handle(CacheEvent(CacheEventType.ANIME_MUTATED, anime_id=anime_id))

    async def invalidate_episodes(self, anime_id: str) -> int:
        return await self.handle(CacheEvent(CacheEventType.EPISODES_MUTATED, anime_id=anime_id))

    async def invalidate_seasons(self) -> int:
        return await self.handle(CacheEvent(CacheEventType.SEASON_DATA_MUTATED))

    async def invalidate_ranked_lists(self) -> int:
        return await self.handle(CacheEvent(CacheEventType.RANKED_LISTS_STALE))

    async def invalidate_all_anime(self) -> int:
        return await self.handle(CacheEvent(CacheEventType.ALL_ANIME))

    async def invalidate_all_episodes(self) -> int:
        return await self.handle(CacheEvent(CacheEventType.ALL_EPISODES))

    async def flush_all(self) -> int:
        """Delete every key in the store."""
        return await self.handle(CacheEvent(CacheEventType.FULL_FLUSH))
