"""Assembles the layered cache stack from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from anime_api.core.logger import LogFormat
from anime_api.core.models.config_models import TTLFamily
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor, get_task_supervisor
from anime_api.services.cache.cache_aside import CacheAside
from anime_api.services.cache.cache_compression import CompressingJsonCache, CompressionConfig
from anime_api.services.cache.cache_coordinator import InvalidationCoordinator
from anime_api.services.cache.cache_metrics import CacheMetrics
from anime_api.services.cache.child_separation import EXTENDED_FIELD_EXCLUSIONS, ChildSeparatingJsonCache
from anime_api.services.cache.field_pruning import DEFAULT_FIELD_EXCLUSIONS, FieldPruner, PruningJsonCache
from anime_api.services.cache.json_cache import JsonCacheService
from anime_api.services.cache.key_builder import CacheKeyBuilder
from anime_api.services.cache.kv_store import NoOpKVStore, create_kv_store

if TYPE_CHECKING:
    from anime_api.core.models.config_models import AppConfig
    from anime_api.services.cache.cache_protocol import JsonCache
    from anime_api.services.cache.kv_store import KVStore


@dataclass
class CacheStack:
    """Every cache component a service needs, wired together."""

    store: KVStore
    json_cache: JsonCacheService
    compressing: CompressingJsonCache
    top: JsonCache
    keys: CacheKeyBuilder
    coordinator: InvalidationCoordinator
    aside: CacheAside
    metrics: CacheMetrics
    supervisor: BackgroundTaskSupervisor

    async def close(self, drain_timeout: float | None = None) -> None:
        """Let pending writes finish, then close the store."""
        await self.supervisor.drain(drain_timeout)
        await self.store.close()


def build_cache_stack(
    config: AppConfig,
    store: KVStore,
    *,
    supervisor: BackgroundTaskSupervisor | None = None,
    logger: logging.Logger | None = None,
) -> CacheStack:
    """Wrap ``store`` in the JSON, compression and shaping layers selected by config.

    Args:
        config: Application configuration
        store: Byte store at the bottom of the stack
        supervisor: Owner of background writes (defaults to the shared supervisor)
        logger: Logger shared by the layers

    Returns:
        The assembled stack

    """
    log = logger or logging.getLogger(__name__)
    cache_config = config.cache
    supervisor = supervisor or get_task_supervisor()
    metrics = CacheMetrics(sample_size=cache_config.metrics_sample_size)

    json_cache = JsonCacheService(store, supervisor, metrics, log, write_timeout=cache_config.write_timeout_seconds)
    compressing = CompressingJsonCache(
        json_cache,
        CompressionConfig(threshold_bytes=cache_config.compression_threshold_bytes, level=cache_config.compression_level),
        logger=log,
    )

    exclusions = EXTENDED_FIELD_EXCLUSIONS if cache_config.extended_exclusions else DEFAULT_FIELD_EXCLUSIONS
    top: JsonCache
    if cache_config.separate_children:
        top = ChildSeparatingJsonCache(
            compressing, FieldPruner(exclusions), max_children_in_cache=cache_config.max_children_in_cache, logger=log
        )
    else:
        top = PruningJsonCache(compressing, FieldPruner(exclusions))

    keys = CacheKeyBuilder(config.cache_namespace)
    aside = CacheAside(
        top,
        log,
        lock_enabled=cache_config.rebuild_lock_enabled and not isinstance(store, NoOpKVStore),
        lock_ttl=config.ttl_seconds(TTLFamily.LOCK),
        lock_wait=cache_config.rebuild_lock_wait_seconds,
    )
    log.debug("Cache stack ready: %s over %s", LogFormat.entity(type(top).__name__), LogFormat.entity(type(store).__name__))
    return CacheStack(
        store=store,
        json_cache=json_cache,
        compressing=compressing,
        top=top,
        keys=keys,
        coordinator=InvalidationCoordinator(top, keys, log),
        aside=aside,
        metrics=metrics,
        supervisor=supervisor,
    )


async def create_cache_stack(
    config: AppConfig,
    *,
    supervisor: BackgroundTaskSupervisor | None = None,
    logger: logging.Logger | None = None,
) -> CacheStack:
    """Connect the configured store and build the stack on top of it."""
    store = await create_kv_store(config.redis, logger)
    return build_cache_stack(config, store, supervisor=supervisor, logger=logger)
