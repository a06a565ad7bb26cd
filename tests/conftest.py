"""Pytest configuration and fixtures for faultcore tests."""

import pytest

from faultcore.cache.blob import CacheBlobClient
from faultcore.cache.file_store import FileCacheService
from faultcore.cache.models import BlobStorageConfig, FileCacheConfig, MemoryCacheConfig
from faultcore.cache.serialization import JsonSerializer, PayloadRegistry
from faultcore.core.exceptions import PreconditionFailedError


class InMemoryBlobClient(CacheBlobClient):
    """Blob client keeping objects in a dict, for loader and factory tests."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.etags: dict[str, str] = {}
        self.deleted: list[str] = []
        self.closed = False
        self._version = 0

    async def get(self, key: str) -> bytes | None:
        return self.objects.get(key)

    async def put(self, key: str, data: bytes, if_match: str | None = None) -> str:
        if if_match is not None and self.etags.get(key) != if_match:
            raise PreconditionFailedError(f"ETag mismatch for {key}")
        self._version += 1
        etag = f'"0x{self._version:04X}"'
        self.objects[key] = data
        self.etags[key] = etag
        return etag

    async def delete(self, key: str) -> None:
        self.objects.pop(key, None)
        self.etags.pop(key, None)
        self.deleted.append(key)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# SHARED CACHE FIXTURES
# =============================================================================


@pytest.fixture
def serializer():
    """Fresh serializer with default options."""
    return JsonSerializer()


@pytest.fixture
def registry():
    """Default payload registry."""
    return PayloadRegistry.default()


@pytest.fixture
def file_config(tmp_path):
    """File cache configuration rooted in a temporary directory."""
    return FileCacheConfig(cache_location=str(tmp_path / "cache"), sweep_interval=0.05)


@pytest.fixture
async def file_cache(file_config, serializer):
    """File cache service; closed after the test."""
    service = FileCacheService(file_config, serializer=serializer)
    yield service
    await service.close()


@pytest.fixture
def memory_config():
    """In-memory cache configuration without the warm loader."""
    return MemoryCacheConfig()


@pytest.fixture
def blob_config():
    """Blob storage configuration for the warm snapshot."""
    return BlobStorageConfig(connection_string="UseDevelopmentStorage=true")


@pytest.fixture
def blob_client():
    """In-memory blob client."""
    return InMemoryBlobClient()
