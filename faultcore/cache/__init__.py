"""Two-tier caching for faultcore services.

Cached values live either in a directory of JSON files (one per key) or in
process memory, optionally backed by a compressed snapshot in blob storage
that survives restarts. Both tiers implement ``CacheService``, and every
storage failure degrades to a cache miss.

Key Features:
    - Deterministic key to file name mapping (hashed when unsafe)
    - Self-healing reads of corrupted JSON files
    - Background expiration sweep for the file tier
    - Warm load and periodic flush of the in-memory tier

Usage:
    >>> from faultcore.cache import create_cache_service
    >>>
    >>> cache = await create_cache_service("file_system")
    >>> value = await cache.try_get("user:42", dict)
    >>> if value is None:
    >>>     value = await compute()
    >>>     await cache.create_entry("user:42", value)
    >>> await cache.close()
"""

from faultcore.cache.base import CacheService
from faultcore.cache.blob import BlobCachingService, CacheBlobClient
from faultcore.cache.factory import CachingType, create_cache_service
from faultcore.cache.file_store import FileCacheService
from faultcore.cache.keys import file_path_for_key, gen_cache_key, gen_hash_string
from faultcore.cache.loader import CacheLoader, CacheLoaderService
from faultcore.cache.memory_store import MemoryCacheService
from faultcore.cache.models import (
    BlobStorageConfig,
    CacheEntryRecord,
    CachePriority,
    CacheStats,
    FileCacheConfig,
    MemoryCacheConfig,
    WarmCacheSnapshot,
)
from faultcore.cache.sanitize import sanitize_json
from faultcore.cache.serialization import JsonSerializer, PayloadRegistry

__all__ = [
    "CacheService",
    "FileCacheService",
    "MemoryCacheService",
    "CacheLoader",
    "CacheLoaderService",
    "CacheBlobClient",
    "BlobCachingService",
    "CachingType",
    "create_cache_service",
    "FileCacheConfig",
    "MemoryCacheConfig",
    "BlobStorageConfig",
    "CacheEntryRecord",
    "CachePriority",
    "CacheStats",
    "WarmCacheSnapshot",
    "JsonSerializer",
    "PayloadRegistry",
    "gen_cache_key",
    "gen_hash_string",
    "file_path_for_key",
    "sanitize_json",
]
