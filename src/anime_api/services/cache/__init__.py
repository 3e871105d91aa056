"""Layered JSON cache: KV stores, codec, compression, pruning, separation and invalidation."""

from anime_api.services.cache.cache_aside import CacheAside
from anime_api.services.cache.cache_coordinator import CacheEvent, CacheEventType, InvalidationCoordinator
from anime_api.services.cache.cache_factory import CacheStack, build_cache_stack, create_cache_stack
from anime_api.services.cache.key_builder import CacheKeyBuilder, RankedList
from anime_api.services.cache.kv_store import MISS, InMemoryKVStore, KVStore, NoOpKVStore, RedisKVStore

__all__ = [
    "MISS",
    "CacheAside",
    "CacheEvent",
    "CacheEventType",
    "CacheKeyBuilder",
    "CacheStack",
    "InMemoryKVStore",
    "InvalidationCoordinator",
    "KVStore",
    "NoOpKVStore",
    "RankedList",
    "RedisKVStore",
    "build_cache_stack",
    "create_cache_stack",
]
