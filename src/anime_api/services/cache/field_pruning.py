"""Write-side field pruning for cached catalog entities.

Before a value is encoded, its entity models are turned into plain dicts with
the excluded fields removed. Exclusions are looked up by ``entity_kind``, so a
subclass (``AnimeWithNextEpisode``) is pruned like its parent (``Anime``).
Readers must tolerate the pruned fields being absent; every pruned field is
optional on the models.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from pydantic import BaseModel

from anime_api.services.cache.cache_protocol import DelegatingJsonCache

if TYPE_CHECKING:
    from anime_api.services.cache.cache_protocol import JsonCache

ExclusionTable: TypeAlias = Mapping[str, frozenset[str]]

DEFAULT_FIELD_EXCLUSIONS: ExclusionTable = {
    "Anime": frozenset({"synopsis", "title_synonyms", "genres", "licensors", "broadcast"}),
    "AnimeEpisode": frozenset({"synopsis"}),
    "Episode": frozenset({"synopsis"}),
}


def merge_exclusions(base: ExclusionTable, extra: Mapping[str, Iterable[str]]) -> dict[str, frozenset[str]]:
    """Combine two exclusion tables kind by kind."""
    merged = {kind: frozenset(fields) for kind, fields in base.items()}
    for kind, fields in extra.items():
        merged[kind] = merged.get(kind, frozenset()) | frozenset(fields)
    return merged


class FieldPruner:
    """Structural walker that drops excluded fields from entity models."""

    def __init__(self, exclusions: ExclusionTable | None = None) -> None:
        self.exclusions: ExclusionTable = DEFAULT_FIELD_EXCLUSIONS if exclusions is None else exclusions

    def excluded_fields(self, kind: str | None) -> frozenset[str]:
        if kind is None:
            return frozenset()
        return self.exclusions.get(kind, frozenset())

    def prune(self, value: Any) -> Any:
        """Return a JSON-ready copy of ``value`` without excluded fields.

        ``None`` propagates, lists and tuples are walked element-wise, dict
        values are walked, and models are converted field by field. Models of
        an unknown kind keep all fields but are still walked.
        """
        if value is None:
            return None
        if isinstance(value, BaseModel):
            return self._prune_model(value)
        if isinstance(value, Mapping):
            return {key: self.prune(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.prune(item) for item in value]
        return value

    def _prune_model(self, model: BaseModel) -> dict[str, Any]:
        excluded = self.excluded_fields(getattr(type(model), "entity_kind", None))
        return {
            name: self.prune(getattr(model, name))
            for name in type(model).model_fields
            if name not in excluded
        }


class PruningJsonCache(DelegatingJsonCache):
    """Cache layer that prunes values before they are encoded."""

    def __init__(self, inner: JsonCache, pruner: FieldPruner | None = None) -> None:
        super().__init__(inner)
        self.pruner = pruner or FieldPruner()

    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        await self.inner.set_json(key, self.pruner.prune(value), ttl)
