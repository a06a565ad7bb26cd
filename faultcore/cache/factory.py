"""Build the configured cache tier."""

import logging
from enum import Enum

from faultcore.cache.base import CacheService
from faultcore.cache.blob import BlobCachingService, CacheBlobClient
from faultcore.cache.file_store import FileCacheService
from faultcore.cache.loader import CacheLoaderService
from faultcore.cache.memory_store import MemoryCacheService
from faultcore.cache.models import BlobStorageConfig, FileCacheConfig, MemoryCacheConfig
from faultcore.cache.serialization import JsonSerializer
from faultcore.core.config import (
    load_blob_storage_config,
    load_caching_type,
    load_file_cache_config,
    load_memory_cache_config,
)
from faultcore.core.exceptions import ConfigurationError
from faultcore.observability.setup import setup_telemetry

logger = logging.getLogger(__name__)


class CachingType(str, Enum):
    """Cache tier selectable at deployment time."""

    NONE = "none"
    IN_MEMORY = "in_memory"
    FILE_SYSTEM = "file_system"


async def create_cache_service(
    caching_type: CachingType | str | None = None,
    *,
    file_config: FileCacheConfig | None = None,
    memory_config: MemoryCacheConfig | None = None,
    blob_config: BlobStorageConfig | None = None,
    blob_client: CacheBlobClient | None = None,
    serializer: JsonSerializer | None = None,
) -> CacheService:
    """Create and start the cache service for a tier.

    Configuration not passed explicitly is loaded from faultcore.yaml and the
    environment. ``none`` yields a disabled in-memory service, so callers
    always get a working ``CacheService``.

    Args:
        caching_type: Tier to build (defaults to the configured type)
        file_config: File tier configuration
        memory_config: In-memory tier configuration
        blob_config: Warm snapshot storage configuration
        blob_client: Blob client to use instead of building one from
            blob_config
        serializer: Serializer shared by the tier

    Returns:
        Started cache service; close it with ``await service.close()``

    Raises:
        ConfigurationError: If the tier name is unknown or the selected tier
            is misconfigured
    """
    try:
        tier = CachingType(caching_type or load_caching_type())
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown caching type: {caching_type!r}",
            details={"valid": [t.value for t in CachingType]},
        ) from e

    setup_telemetry()
    serializer = serializer or JsonSerializer()
    service: CacheService

    if tier is CachingType.FILE_SYSTEM:
        file_config = file_config or FileCacheConfig(**load_file_cache_config())
        service = FileCacheService(file_config, serializer=serializer)

    elif tier is CachingType.IN_MEMORY:
        memory_config = memory_config or MemoryCacheConfig(**load_memory_cache_config())
        loader = None
        if memory_config.enabled and memory_config.use_cache_loader:
            blob_config = blob_config or BlobStorageConfig(**load_blob_storage_config())
            if blob_client is None:
                blob_service = BlobCachingService.from_config(blob_config)
                await blob_service.initialize()
                blob_client = blob_service
            loader = CacheLoaderService(blob_client, blob_config)
        service = MemoryCacheService(
            memory_config, cache_loader=loader, serializer=serializer
        )

    else:
        service = MemoryCacheService(
            MemoryCacheConfig(enabled=False), serializer=serializer
        )

    await service.start()
    logger.info(f"Cache service ready: {tier.value}")
    return service
