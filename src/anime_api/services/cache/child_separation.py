"""Large-child separation for cached anime payloads.

Episode lists longer than ``max_children_in_cache`` are detached from their
parent and stored as a separate entry under ``<key>:episodes`` with the same
TTL. A single parent stores its list directly; a list of parents stores one
``{parent_id: [episodes...]}`` mapping. Each detached parent carries a
``separated_children`` marker naming the field that was removed, so a reader
that wants the children back can tell a detached list from an empty one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from anime_api.core.logger import LogFormat
from anime_api.infrastructure.cache.json_utils import validate_as
from anime_api.services.cache.cache_protocol import DelegatingJsonCache
from anime_api.services.cache.field_pruning import DEFAULT_FIELD_EXCLUSIONS, FieldPruner, merge_exclusions
from anime_api.services.cache.key_builder import CacheKeyBuilder
from anime_api.services.cache.kv_store import MISS, MissType

if TYPE_CHECKING:
    from anime_api.services.cache.cache_protocol import JsonCache

CHILD_FIELDS = ("episodes", "anime_episodes")
SEPARATED_MARKER = "separated_children"

EXTENDED_FIELD_EXCLUSIONS = merge_exclusions(
    DEFAULT_FIELD_EXCLUSIONS,
    {
        "Anime": {"source", "studios"},
        "AnimeEpisode": {"title_jp"},
        "Episode": {"title_jp"},
    },
)


class ChildSeparatingJsonCache(DelegatingJsonCache):
    """Cache layer that prunes parents and stores long child lists on their own."""

    def __init__(
        self,
        inner: JsonCache,
        pruner: FieldPruner | None = None,
        max_children_in_cache: int = 0,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the separation layer.

        Args:
            inner: Layer that stores the parent and child entries
            pruner: Field pruner (defaults to the extended exclusion set)
            max_children_in_cache: Lists longer than this are detached (0 detaches every non-empty list)
            logger: Logger for separation events

        """
        super().__init__(inner)
        self.pruner = pruner or FieldPruner(EXTENDED_FIELD_EXCLUSIONS)
        self.max_children_in_cache = max_children_in_cache
        self.logger = logger or logging.getLogger(__name__)

    def _detach(self, parent: dict[str, Any]) -> list[Any] | None:
        for field_name in CHILD_FIELDS:
            children = parent.get(field_name)
            if isinstance(children, list) and len(children) > self.max_children_in_cache:
                del parent[field_name]
                parent[SEPARATED_MARKER] = field_name
                return children
        return None

    def separate(self, value: Any) -> tuple[Any, Any | None]:
        """Split a pruned payload into ``(parents, detached children)``.

        Returns:
            The parent payload and the children payload, or None when nothing was detached

        """
        if isinstance(value, dict):
            return value, self._detach(value)
        if isinstance(value, list):
            mapping: dict[str, list[Any]] = {}
            for parent in value:
                if not isinstance(parent, dict):
                    continue
                children = self._detach(parent)
                if children is not None:
                    mapping[str(parent.get("id"))] = children
            return value, mapping or None
        return value, None

    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        parents, children = self.separate(self.pruner.prune(value))
        await self.inner.set_json(key, parents, ttl)
        if children is not None:
            children_key = CacheKeyBuilder.separated_children(key)
            self.logger.debug("Separated %s children into %s", LogFormat.number(len(children)), LogFormat.key(children_key))
            await self.inner.set_json(children_key, children, ttl)

    async def get_json_with_children(self, key: str, target: Any) -> Any | MissType:
        """Read a parent entry and re-attach its separated children.

        Returns:
            The stitched value, or ``MISS`` if the parent or a required children entry is absent

        Raises:
            CacheDecodeError: If the stitched payload does not match ``target``; the parent
                and children entries are then deleted in the background

        """
        parents = await self.inner.get_json(key, Any)
        if parents is MISS:
            return MISS
        if not _has_marker(parents):
            return self._validate(key, _strip_markers(parents), target)

        children_key = CacheKeyBuilder.separated_children(key)
        children = await self.inner.get_json(children_key, Any)
        if children is MISS:
            self.logger.debug("Children entry for %s expired before its parent", LogFormat.key(key))
            return MISS
        return self._validate(key, _attach(parents, children), target, children_key)

    def _validate(self, key: str, payload: Any, target: Any, children_key: str | None = None) -> Any:
        try:
            return validate_as(payload, target)
        except ValueError as e:
            if children_key is not None:
                self.inner.reject(children_key, e)
            raise self.inner.reject(key, e) from e


def _has_marker(value: Any) -> bool:
    if isinstance(value, dict):
        return SEPARATED_MARKER in value
    if isinstance(value, list):
        return any(isinstance(item, dict) and SEPARATED_MARKER in item for item in value)
    return False


def _strip_markers(value: Any) -> Any:
    if isinstance(value, dict):
        value.pop(SEPARATED_MARKER, None)
    elif isinstance(value, list):
        for item in value:
            if isinstance(item, dict):
                item.pop(SEPARATED_MARKER, None)
    return value


def _attach(parents: Any, children: Any) -> Any:
    if isinstance(parents, dict):
        field_name = parents.pop(SEPARATED_MARKER, None)
        if field_name is not None:
            parents[field_name] = children if isinstance(children, list) else []
        return parents
    for parent in parents:
        if not isinstance(parent, dict):
            continue
        field_name = parent.pop(SEPARATED_MARKER, None)
        if field_name is not None and isinstance(children, dict):
            parent[field_name] = children.get(str(parent.get("id")), [])
    return parents
