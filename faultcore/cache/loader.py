"""Warm cache loader: moves memory-cache snapshots to and from blob storage."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError
from pydantic_core import from_json

from faultcore.cache.models import BlobStorageConfig, CacheEntryRecord, WarmCacheSnapshot

if TYPE_CHECKING:
    from faultcore.cache.blob import CacheBlobClient

logger = logging.getLogger(__name__)

_snapshot_adapter: TypeAdapter[WarmCacheSnapshot] = TypeAdapter(WarmCacheSnapshot)


class CacheLoader(ABC):
    """Abstract interface for the warm tier behind the in-memory cache."""

    @abstractmethod
    def put(self, key: str, record: CacheEntryRecord) -> None:
        """Stage a record in the write-behind buffer."""
        pass

    @abstractmethod
    def discard(self, key: str) -> None:
        """Drop a staged record. Missing keys are ignored."""
        pass

    @abstractmethod
    async def load_cache(self) -> WarmCacheSnapshot:
        """Fetch the persisted snapshot.

        Returns:
            Records keyed by cache key. Never raises for storage failures
        """
        pass

    @abstractmethod
    async def save_cache(self, snapshot: WarmCacheSnapshot | None = None) -> str | None:
        """Persist a snapshot and clear the write-behind buffer.

        Args:
            snapshot: Records to persist (defaults to the write-behind buffer)

        Returns:
            Version token of the stored snapshot, or None on failure
        """
        pass

    async def close(self) -> None:
        """Release the underlying storage client."""
        return None


class CacheLoaderService(CacheLoader):
    """Blob-backed warm cache loader.

    The whole snapshot is stored as one JSON object under a single blob key.
    """

    def __init__(self, blob_client: "CacheBlobClient", config: BlobStorageConfig):
        self.blob_client = blob_client
        self.config = config
        self._buffer: WarmCacheSnapshot = {}

    @property
    def blob_key(self) -> str:
        """Key of the snapshot blob (the client applies the path prefix)."""
        return self.config.cache_key or self.config.blob_name

    @property
    def buffer(self) -> WarmCacheSnapshot:
        return self._buffer

    def put(self, key: str, record: CacheEntryRecord) -> None:
        if not key or record is None:
            return
        self._buffer[key] = record

    def discard(self, key: str) -> None:
        self._buffer.pop(key, None)

    async def load_cache(self) -> WarmCacheSnapshot:
        key = self.blob_key
        try:
            data = await self.blob_client.get(key)
            if data is None:
                logger.info(f"No warm cache snapshot at {key}")
                return dict(self._buffer)

            raw = from_json(data)
            if not isinstance(raw, dict):
                logger.error(f"Warm cache snapshot {key} is not a JSON object")
                return dict(self._buffer)
        except Exception as e:
            logger.error(f"Failed to load warm cache snapshot {key}: {e}")
            return dict(self._buffer)

        snapshot: WarmCacheSnapshot = {}
        for entry_key, item in raw.items():
            try:
                snapshot[entry_key] = CacheEntryRecord.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid warm cache record {entry_key!r}: {e}")

        logger.info(f"Loaded {len(snapshot)} warm cache records from {key}")

        if snapshot and self.config.delete_after_load:
            try:
                await self.blob_client.delete(key)
            except Exception as e:
                logger.warning(f"Failed to delete loaded snapshot {key}: {e}")

        return snapshot

    async def save_cache(self, snapshot: WarmCacheSnapshot | None = None) -> str | None:
        key = self.blob_key
        records = snapshot if snapshot is not None else dict(self._buffer)
        try:
            data = _snapshot_adapter.dump_json(records)
            etag = await self.blob_client.put(key, data)
        except Exception as e:
            logger.error(f"Failed to save warm cache snapshot {key}: {e}")
            return None

        # Everything staged so far is now in the stored snapshot
        self._buffer.clear()
        logger.debug(f"Saved {len(records)} warm cache records to {key}")
        return etag

    async def close(self) -> None:
        await self.blob_client.close()
