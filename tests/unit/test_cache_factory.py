"""Unit tests for cache tier selection."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from faultcore.cache.factory import CachingType, create_cache_service
from faultcore.cache.file_store import FileCacheService
from faultcore.cache.loader import CacheLoaderService
from faultcore.cache.memory_store import MemoryCacheService
from faultcore.cache.models import MemoryCacheConfig
from faultcore.core.exceptions import ConfigurationError


class TestCreateCacheService:
    """Tests for create_cache_service."""

    async def test_file_system(self, file_config):
        service = await create_cache_service(
            CachingType.FILE_SYSTEM, file_config=file_config
        )
        try:
            assert isinstance(service, FileCacheService)
            assert service._sweep_task is not None
        finally:
            await service.close()

    async def test_in_memory(self):
        service = await create_cache_service(
            "in_memory", memory_config=MemoryCacheConfig()
        )
        assert isinstance(service, MemoryCacheService)
        assert service.cache_loader is None

    async def test_none_is_disabled_memory(self):
        service = await create_cache_service("none")
        assert isinstance(service, MemoryCacheService)
        assert service.enabled is False

    async def test_unknown_type_raises(self):
        with pytest.raises(ConfigurationError):
            await create_cache_service("redis")

    async def test_type_from_configuration(self, file_config):
        with patch(
            "faultcore.cache.factory.load_caching_type", return_value="in_memory"
        ), patch(
            "faultcore.cache.factory.load_memory_cache_config",
            return_value={"enabled": True},
        ):
            service = await create_cache_service()
        assert isinstance(service, MemoryCacheService)

    async def test_in_memory_with_loader(self, blob_client, blob_config):
        """Test the loader is wired to the given blob client and warm-loaded."""
        service = await create_cache_service(
            "in_memory",
            memory_config=MemoryCacheConfig(use_cache_loader=True),
            blob_config=blob_config,
            blob_client=blob_client,
        )
        try:
            assert isinstance(service.cache_loader, CacheLoaderService)
            assert service.cache_loader.blob_client is blob_client
            assert service._flush_task is not None
        finally:
            await service.close()
        assert blob_client.closed

    async def test_builds_blob_client_from_config(self, blob_config):
        blob_service = MagicMock()
        blob_service.initialize = AsyncMock()
        blob_service.get = AsyncMock(return_value=None)
        blob_service.put = AsyncMock(return_value='"0x1"')
        blob_service.close = AsyncMock()
        with patch(
            "faultcore.cache.factory.BlobCachingService.from_config",
            return_value=blob_service,
        ) as from_config:
            service = await create_cache_service(
                "in_memory",
                memory_config=MemoryCacheConfig(use_cache_loader=True),
                blob_config=blob_config,
            )

        from_config.assert_called_once_with(blob_config)
        blob_service.initialize.assert_awaited_once()
        assert service.cache_loader.blob_client is blob_service
        await service.close()
        blob_service.close.assert_awaited_once()
