"""File-backed cache tier with a background expiration sweep."""

import asyncio
import logging
import os
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeVar

import aiofiles
from pydantic import ValidationError

from faultcore.cache.base import CacheService
from faultcore.cache.keys import CACHE_FILE_SUFFIX, file_path_for_key
from faultcore.cache.models import CacheStats, FileCacheConfig, FileCacheIndexEntry
from faultcore.cache.sanitize import sanitize_json
from faultcore.cache.serialization import JsonSerializer
from faultcore.core.exceptions import ConfigurationError
from faultcore.observability.metrics import (
    record_cache_error,
    record_cache_evictions,
    record_cache_hit,
    record_cache_miss,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIER = "file"

# Returned by _deserialize when neither the raw nor the sanitized text parses
_CORRUPT = object()


def default_cache_directory() -> Path:
    """Per-user local application data ``cache`` folder."""
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / "cache"


def resolve_cache_directory(cache_location: str | None) -> Path:
    """Resolve the configured cache location to a directory path.

    Rooted paths are used as is, relative paths are placed under the system
    temp directory and an unset location falls back to
    ``default_cache_directory()``.

    Raises:
        ConfigurationError: If the location contains a NUL character
    """
    if cache_location is None or not cache_location.strip():
        return default_cache_directory()
    if "\x00" in cache_location:
        raise ConfigurationError(
            "Cache location contains invalid characters.",
            details={"cache_location": repr(cache_location)},
        )
    path = Path(cache_location)
    if path.is_absolute():
        return path
    return Path(tempfile.gettempdir()) / path


class FileCacheService(CacheService):
    """Cache tier storing one JSON file per key.

    Features:
        - Deterministic key to file mapping (hashed when the key is not a
          valid file name)
        - Self-healing reads: a corrupt file is repaired once through the
          JSON sanitizer, then deleted
        - Expiration index swept by a single background task
        - Fail-safe: storage errors are logged and treated as a miss

    Reads and writes of file contents are serialized through one
    ``asyncio.Lock`` per instance.

    Example:
        >>> config = FileCacheConfig(cache_location="/var/cache/faultcore")
        >>> async with FileCacheService(config) as cache:
        ...     await cache.create_entry("user:42", {"name": "x"})
        ...     await cache.try_get("user:42", dict)
        {'name': 'x'}
    """

    def __init__(
        self,
        config: FileCacheConfig,
        *,
        serializer: JsonSerializer | None = None,
        stop_event: asyncio.Event | None = None,
    ):
        """Initialize the file cache.

        Args:
            config: File cache configuration
            serializer: Shared serializer (a default one is created if None)
            stop_event: Event that stops the background sweep when set

        Raises:
            ConfigurationError: If the cache directory is invalid or cannot
                be created
        """
        self.config = config
        self.serializer = serializer or JsonSerializer()
        self.stats = CacheStats()
        self._directory = resolve_cache_directory(config.cache_location)
        self._index: dict[str, FileCacheIndexEntry] = {}
        self._lock = asyncio.Lock()
        self._stop_event = stop_event or asyncio.Event()
        self._sweep_task: asyncio.Task[None] | None = None

        if not config.enabled:
            logger.info("File cache disabled by configuration")
            return

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create cache directory {self._directory}: {e}",
                details={"cache_directory": str(self._directory)},
            ) from e

        self._scan_existing()
        logger.info(
            f"File cache initialized at {self._directory} "
            f"({len(self._index)} existing entries)"
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def cache_directory(self) -> Path:
        """Resolved cache directory."""
        return self._directory

    @property
    def index(self) -> MappingProxyType[str, FileCacheIndexEntry]:
        """Read-only view of the expiration index, keyed by file path."""
        return MappingProxyType(self._index)

    def entry_count(self) -> int:
        """Number of files tracked by the expiration index."""
        return len(self._index)

    def get_stats(self) -> CacheStats:
        return self.stats

    def _default_lifetime(self) -> timedelta:
        return timedelta(seconds=self.config.default_expiration)

    def _scan_existing(self) -> None:
        """Seed the index from cache files left by a previous run."""
        lifetime = self._default_lifetime()
        for path in self._directory.glob(f"*{CACHE_FILE_SUFFIX}"):
            created_at = datetime.now(UTC)
            if self.config.seed_expiration_from_mtime:
                try:
                    created_at = datetime.fromtimestamp(path.stat().st_mtime, UTC)
                except OSError as e:
                    logger.warning(f"Could not stat cache file {path}: {e}")
            self._index[str(path)] = FileCacheIndexEntry(
                path=path, absolute_expiration=lifetime, created_at=created_at
            )

    def _deserialize(self, text: str, value_type: Any) -> Any:
        try:
            return self.serializer.deserialize(text, value_type)
        except ValidationError:
            pass

        sanitized = sanitize_json(text)
        try:
            return self.serializer.deserialize(sanitized, value_type)
        except ValidationError:
            return _CORRUPT

    async def try_get(self, key: str, value_type: type[T] | Any = Any) -> T | None:
        """Read and deserialize the file cached under a key.

        Returns:
            The cached value, or None when the key is missing, the file is
            empty or unreadable, or the contents cannot be parsed as
            ``value_type`` even after sanitization (the file is then deleted)

        Note:
            Expiration is enforced by the sweep, not on read.
        """
        if not self.enabled:
            return None

        if not key:
            logger.warning("Cache lookup with empty key, treating as miss")
            return None

        try:
            path = file_path_for_key(key, self._directory)

            async with self._lock:
                if not path.exists():
                    self._record_miss()
                    return None

                try:
                    async with aiofiles.open(path, encoding="utf-8") as f:
                        text = await f.read()
                except UnicodeDecodeError as e:
                    logger.debug(f"Cache file {path.name} is not UTF-8: {e}")
                    value = _CORRUPT
                else:
                    if not text.strip():
                        self._record_miss()
                        return None
                    value = self._deserialize(text, value_type)

                if value is _CORRUPT:
                    logger.warning(f"Removing unreadable cache file {path.name}")
                    await self._delete(path)
                    self._record_miss()
                    return None

            self.stats.hits += 1
            self.stats.update_hit_rate()
            record_cache_hit(TIER)
            return value

        except Exception as e:
            logger.error(f"File cache lookup failed for key {key!r}: {e}")
            self._record_error("get")
            return None

    async def create_entry(
        self,
        key: str,
        value: Any,
        absolute_expiration: timedelta | None = None,
    ) -> None:
        """Serialize a value and write it to the key's file.

        The file is overwritten and the expiration index entry refreshed.
        Failures are logged and never raised.
        """
        if not self.enabled:
            return

        if not key:
            logger.warning("Ignoring cache write with empty key")
            return

        if value is None:
            logger.warning(f"Ignoring cache write of None for key {key!r}")
            return

        try:
            path = file_path_for_key(key, self._directory)
            serialized = self.serializer.serialize(value)
            if not serialized:
                logger.debug(f"Serialized value for key {key!r} is empty, skipping")
                return

            if absolute_expiration is None:
                absolute_expiration = self._default_lifetime()

            async with self._lock:
                async with aiofiles.open(path, "w", encoding="utf-8") as f:
                    await f.write(serialized)
                self._index[str(path)] = FileCacheIndexEntry(
                    path=path, absolute_expiration=absolute_expiration
                )
            logger.debug(f"Cached key {key!r} to {path.name}")

        except Exception as e:
            logger.error(f"File cache write failed for key {key!r}: {e}")
            self._record_error("set")

    async def remove(self, key: str) -> None:
        """Delete the key's file and index entry. Missing keys are ignored."""
        if not self.enabled or not key:
            return

        try:
            path = file_path_for_key(key, self._directory)
            async with self._lock:
                await self._delete(path)
        except Exception as e:
            logger.error(f"File cache remove failed for key {key!r}: {e}")
            self._record_error("remove")

    async def _delete(self, path: Path) -> None:
        await asyncio.to_thread(path.unlink, missing_ok=True)
        self._index.pop(str(path), None)

    async def sweep_expired(self, now: datetime | None = None) -> int:
        """Remove every expired file and its index entry.

        A file that cannot be deleted is logged and left for the next sweep.

        Returns:
            Number of entries removed
        """
        now = now or datetime.now(UTC)
        removed = 0

        async with self._lock:
            expired = [
                (name, entry)
                for name, entry in self._index.items()
                if entry.is_expired(now)
            ]
            for name, entry in expired:
                try:
                    await asyncio.to_thread(entry.path.unlink, missing_ok=True)
                except OSError as e:
                    logger.warning(f"Failed to delete expired cache file {name}: {e}")
                    self._record_error("sweep")
                    continue
                self._index.pop(name, None)
                removed += 1

        if removed:
            logger.info(f"Cache sweep removed {removed} expired entries")
            record_cache_evictions(TIER, removed)
        return removed

    async def clear(self) -> int:
        """Delete every cache file in the directory and empty the index.

        Returns:
            Number of files deleted
        """
        if not self.enabled:
            return 0

        def _clear_files() -> int:
            count = 0
            for path in self._directory.glob(f"*{CACHE_FILE_SUFFIX}"):
                try:
                    path.unlink(missing_ok=True)
                    count += 1
                except OSError as e:
                    logger.warning(f"Failed to delete cache file {path}: {e}")
            return count

        async with self._lock:
            count = await asyncio.to_thread(_clear_files)
            self._index.clear()

        logger.info(f"Cleared {count} files from {self._directory}")
        return count

    async def start(self) -> None:
        """Start the background sweep task.

        Safe to call multiple times (idempotent): at most one sweep task
        runs per instance.
        """
        if not self.enabled:
            return

        if self._sweep_task is not None and not self._sweep_task.done():
            logger.debug("Cache sweep already running, skipping start")
            return

        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        interval = self.config.sweep_interval
        logger.info(f"Starting cache sweep (interval={interval}s)")

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

            if self._stop_event.is_set():
                break

            try:
                await self.sweep_expired()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")

        logger.info("Cache sweep stopped")

    async def close(self) -> None:
        """Signal the sweep to stop and wait for it to finish."""
        self._stop_event.set()
        if self._sweep_task is not None:
            await self._sweep_task
            self._sweep_task = None

    def _record_miss(self) -> None:
        self.stats.misses += 1
        self.stats.update_hit_rate()
        record_cache_miss(TIER)

    def _record_error(self, operation: str) -> None:
        self.stats.errors += 1
        record_cache_error(TIER, operation)
