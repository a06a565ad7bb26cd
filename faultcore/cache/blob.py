"""Blob storage client for the warm cache tier.

Objects are written gzip-compressed under ``{prefix}/cache/{key}`` in a
single container. The client adds no retry or caching of its own; retries
are left to the Azure SDK pipeline.
"""

import gzip
import logging
from abc import ABC, abstractmethod
from typing import Any

from azure.core import MatchConditions
from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import ContainerClient

from faultcore.cache.keys import blob_path_for
from faultcore.cache.models import BlobStorageConfig
from faultcore.core.exceptions import ConfigurationError, PreconditionFailedError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


class CacheBlobClient(ABC):
    """Abstract interface for the object store behind the warm cache."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Fetch an object.

        Returns:
            Decompressed bytes, or None if the object does not exist
        """
        pass

    @abstractmethod
    async def put(self, key: str, data: bytes, if_match: str | None = None) -> str:
        """Store an object, replacing any existing one.

        Args:
            key: Object key
            data: Uncompressed payload
            if_match: Only overwrite if the current ETag matches

        Returns:
            ETag of the stored object

        Raises:
            PreconditionFailedError: If if_match does not match
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Missing objects are not an error."""
        pass

    async def close(self) -> None:
        return None


class BlobCachingService(CacheBlobClient):
    """Azure Blob Storage implementation of ``CacheBlobClient``.

    Example:
        >>> client = BlobCachingService.from_config(BlobStorageConfig(
        ...     connection_string="UseDevelopmentStorage=true"))
        >>> await client.initialize()
        >>> etag = await client.put("memory-cache.json", b"{}")
        >>> await client.get("memory-cache.json")
        b'{}'
    """

    def __init__(self, container_client: ContainerClient, prefix: str = ""):
        self.container_client = container_client
        self.prefix = prefix

    @classmethod
    def from_config(
        cls, config: BlobStorageConfig, credential: Any = None
    ) -> "BlobCachingService":
        """Build a client from a connection string or an account URL.

        Raises:
            ConfigurationError: If neither is configured
        """
        if config.connection_string:
            container_client = ContainerClient.from_connection_string(
                config.connection_string, container_name=config.container
            )
        elif config.account_url:
            container_client = ContainerClient(
                config.account_url,
                container_name=config.container,
                credential=credential,
            )
        else:
            raise ConfigurationError(
                "Blob storage requires account_url or connection_string",
                details={"container": config.container},
            )
        return cls(container_client, prefix=config.prefix)

    def blob_path(self, key: str) -> str:
        return blob_path_for(key, self.prefix)

    async def initialize(self) -> None:
        """Create the container if it does not exist."""
        try:
            await self.container_client.create_container()
            logger.info(
                f"Created blob container {self.container_client.container_name}"
            )
        except ResourceExistsError:
            pass

    async def get(self, key: str) -> bytes | None:
        blob = self.container_client.get_blob_client(self.blob_path(key))
        try:
            downloader = await blob.download_blob()
            data = await downloader.readall()
        except ResourceNotFoundError:
            return None

        encoding = downloader.properties.content_settings.content_encoding
        if encoding == "gzip" and data.startswith(GZIP_MAGIC):
            data = gzip.decompress(data)

        logger.debug(f"Downloaded blob {blob.blob_name} ({len(data)} bytes)")
        return data

    async def put(self, key: str, data: bytes, if_match: str | None = None) -> str:
        blob = self.container_client.get_blob_client(self.blob_path(key))
        compressed = gzip.compress(data)
        content_settings = ContentSettings(
            content_type="application/octet-stream",
            content_encoding="gzip",
            cache_control="public, max-age=300",
        )

        conditions: dict[str, Any] = {}
        if if_match:
            conditions = {
                "etag": if_match,
                "match_condition": MatchConditions.IfNotModified,
            }

        try:
            result = await blob.upload_blob(
                compressed,
                overwrite=True,
                content_settings=content_settings,
                **conditions,
            )
        except ResourceModifiedError as e:
            raise PreconditionFailedError(
                f"Blob {blob.blob_name} was modified concurrently",
                details={"blob": blob.blob_name, "if_match": if_match},
            ) from e

        logger.debug(
            f"Uploaded blob {blob.blob_name} "
            f"({len(data)} bytes, {len(compressed)} compressed)"
        )
        return str(result.get("etag", ""))

    async def delete(self, key: str) -> None:
        blob = self.container_client.get_blob_client(self.blob_path(key))
        try:
            await blob.delete_blob(delete_snapshots="include")
            logger.debug(f"Deleted blob {blob.blob_name}")
        except ResourceNotFoundError:
            pass

    async def close(self) -> None:
        await self.container_client.close()
