"""Unit tests for the Azure blob client with a mocked container."""

import gzip
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core import MatchConditions
from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)

from faultcore.cache.blob import BlobCachingService
from faultcore.cache.models import BlobStorageConfig
from faultcore.core.exceptions import ConfigurationError, PreconditionFailedError


def make_downloader(data: bytes, encoding: str | None) -> MagicMock:
    downloader = MagicMock()
    downloader.readall = AsyncMock(return_value=data)
    downloader.properties.content_settings.content_encoding = encoding
    return downloader


@pytest.fixture
def blob():
    """Mocked blob client returned for every path."""
    mock_blob = MagicMock()
    mock_blob.blob_name = "prod/cache/memory-cache.json"
    mock_blob.download_blob = AsyncMock()
    mock_blob.upload_blob = AsyncMock(return_value={"etag": '"0x1"'})
    mock_blob.delete_blob = AsyncMock()
    return mock_blob


@pytest.fixture
def container(blob):
    mock_container = MagicMock()
    mock_container.container_name = "faultcore"
    mock_container.get_blob_client.return_value = blob
    mock_container.create_container = AsyncMock()
    mock_container.close = AsyncMock()
    return mock_container


@pytest.fixture
def service(container):
    return BlobCachingService(container, prefix="prod")


class TestBlobCachingService:
    """Tests for BlobCachingService."""

    async def test_put_compresses_and_sets_headers(self, service, container, blob):
        etag = await service.put("memory-cache.json", b'{"a": 1}')

        container.get_blob_client.assert_called_with("prod/cache/memory-cache.json")
        args, kwargs = blob.upload_blob.call_args
        assert gzip.decompress(args[0]) == b'{"a": 1}'
        assert kwargs["overwrite"] is True
        settings = kwargs["content_settings"]
        assert settings.content_encoding == "gzip"
        assert settings.content_type == "application/octet-stream"
        assert settings.cache_control == "public, max-age=300"
        assert "etag" not in kwargs
        assert etag == '"0x1"'

    async def test_put_with_if_match(self, service, blob):
        await service.put("k", b"x", if_match='"0x1"')
        kwargs = blob.upload_blob.call_args.kwargs
        assert kwargs["etag"] == '"0x1"'
        assert kwargs["match_condition"] == MatchConditions.IfNotModified

    async def test_put_precondition_failure(self, service, blob):
        blob.upload_blob.side_effect = ResourceModifiedError("412")
        with pytest.raises(PreconditionFailedError):
            await service.put("k", b"x", if_match='"stale"')

    async def test_get_decompresses_gzip(self, service, blob):
        blob.download_blob.return_value = make_downloader(gzip.compress(b"data"), "gzip")
        assert await service.get("k") == b"data"

    async def test_get_plain_body(self, service, blob):
        blob.download_blob.return_value = make_downloader(b"data", None)
        assert await service.get("k") == b"data"

    async def test_get_gzip_header_without_gzip_body(self, service, blob):
        """Test a body already decompressed in transit is returned as is."""
        blob.download_blob.return_value = make_downloader(b"data", "gzip")
        assert await service.get("k") == b"data"

    async def test_get_missing_returns_none(self, service, blob):
        blob.download_blob.side_effect = ResourceNotFoundError("missing")
        assert await service.get("k") is None

    async def test_delete_includes_snapshots(self, service, blob):
        await service.delete("k")
        blob.delete_blob.assert_awaited_once_with(delete_snapshots="include")

    async def test_delete_missing_is_noop(self, service, blob):
        blob.delete_blob.side_effect = ResourceNotFoundError("missing")
        await service.delete("k")

    async def test_initialize_creates_container(self, service, container):
        await service.initialize()
        container.create_container.assert_awaited_once()

    async def test_initialize_existing_container(self, service, container):
        container.create_container.side_effect = ResourceExistsError("exists")
        await service.initialize()

    async def test_close(self, service, container):
        await service.close()
        container.close.assert_awaited_once()


class TestFromConfig:
    """Tests for BlobCachingService.from_config."""

    def test_connection_string(self):
        config = BlobStorageConfig(
            connection_string="UseDevelopmentStorage=true", prefix="p"
        )
        with patch("faultcore.cache.blob.ContainerClient") as mock_client:
            service = BlobCachingService.from_config(config)

        mock_client.from_connection_string.assert_called_once_with(
            "UseDevelopmentStorage=true", container_name="faultcore"
        )
        assert service.prefix == "p"

    def test_account_url(self):
        config = BlobStorageConfig(account_url="https://acct.blob.core.windows.net")
        credential = object()
        with patch("faultcore.cache.blob.ContainerClient") as mock_client:
            BlobCachingService.from_config(config, credential=credential)

        mock_client.assert_called_once_with(
            "https://acct.blob.core.windows.net",
            container_name="faultcore",
            credential=credential,
        )

    def test_missing_settings_raise(self):
        with pytest.raises(ConfigurationError):
            BlobCachingService.from_config(BlobStorageConfig())
