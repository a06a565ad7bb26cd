"""In-memory cache tier backed by cachetools, optionally warmed from blob storage."""

import asyncio
import logging
import math
import time
import types
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar, Union, get_args, get_origin

from cachetools import TLRUCache
from pydantic import ValidationError

from faultcore.cache.base import CacheService
from faultcore.cache.loader import CacheLoader
from faultcore.cache.models import (
    CacheEntryRecord,
    CachePriority,
    CacheStats,
    MemoryCacheConfig,
    WarmCacheSnapshot,
)
from faultcore.cache.serialization import JsonSerializer, PayloadRegistry
from faultcore.core.exceptions import UnknownPayloadKindError
from faultcore.observability.metrics import (
    record_cache_error,
    record_cache_hit,
    record_cache_miss,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIER = "memory"

DEFAULT_ENTRY_SIZE = 2048


@dataclass
class _MemoryEntry:
    value: Any
    deadline: float | None = None  # absolute, in timer units
    sliding: timedelta | None = None
    priority: CachePriority = CachePriority.NORMAL
    size: int = DEFAULT_ENTRY_SIZE


def _time_to_use(key: str, entry: _MemoryEntry, now: float) -> float:
    expires = entry.deadline if entry.deadline is not None else math.inf
    if entry.sliding is not None:
        expires = min(expires, now + entry.sliding.total_seconds())
    return expires


def _entry_size(entry: _MemoryEntry) -> int:
    return entry.size


def _matches_type(value: Any, value_type: Any) -> bool:
    if value_type is Any:
        return True
    origin = get_origin(value_type) or value_type
    if origin in (Union, types.UnionType):
        return any(_matches_type(value, arg) for arg in get_args(value_type))
    try:
        return isinstance(value, origin)
    except TypeError:
        return False


class MemoryCacheService(CacheService):
    """Hot cache tier holding live Python objects.

    Entries expire on an absolute deadline, a sliding window, or both, and
    are evicted by the engine once ``size_limit`` size units are in use.
    With ``use_cache_loader`` set, ``start()`` seeds the tier from the warm
    snapshot and a background task periodically flushes it back.

    Example:
        >>> service = MemoryCacheService(MemoryCacheConfig())
        >>> await service.create_entry("a", "1")
        >>> await service.try_get("a", str)
        '1'
    """

    def __init__(
        self,
        config: MemoryCacheConfig,
        *,
        cache_loader: CacheLoader | None = None,
        serializer: JsonSerializer | None = None,
        registry: PayloadRegistry | None = None,
        timer: Callable[[], float] = time.time,
    ):
        """Initialize the in-memory cache.

        Args:
            config: Memory cache configuration
            cache_loader: Warm-tier loader (used only with use_cache_loader)
            serializer: Shared serializer (a default one is created if None)
            registry: Payload kinds for snapshot records (defaults if None)
            timer: Wall clock in seconds, used for expiration deadlines
        """
        self.config = config
        self.cache_loader = cache_loader
        self.serializer = serializer or JsonSerializer()
        self.registry = registry or PayloadRegistry.default()
        self.stats = CacheStats()
        self._timer = timer
        self._cache: TLRUCache[str, _MemoryEntry] = TLRUCache(
            maxsize=config.size_limit,
            ttu=_time_to_use,
            timer=timer,
            getsizeof=_entry_size,
        )
        self._flush_task: asyncio.Task[None] | None = None
        self._started = False

        if not config.enabled:
            logger.info("Memory cache disabled by configuration")

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def uses_loader(self) -> bool:
        """Whether this tier is seeded from and flushed to the warm tier."""
        return (
            self.config.enabled
            and self.config.use_cache_loader
            and self.cache_loader is not None
        )

    def get_stats(self) -> CacheStats:
        return self.stats

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)

    async def start(self) -> None:
        """Warm-load from the loader, then schedule periodic flushes.

        Safe to call multiple times (idempotent). The warm load completes
        before this coroutine returns.
        """
        if self._started or not self.uses_loader:
            return
        self._started = True

        await self._warm_load()
        self._flush_task = asyncio.create_task(self._flush_loop())

    async def _warm_load(self) -> None:
        assert self.cache_loader is not None
        try:
            snapshot = await self.cache_loader.load_cache()
        except Exception as e:
            logger.error(f"Warm cache load failed: {e}")
            record_cache_error(TIER, "warm_load")
            return

        loaded = 0
        for key, record in snapshot.items():
            if record.is_expired():
                logger.debug(f"Skipping expired warm cache entry {key!r}")
                continue
            try:
                value = record.decode(self.registry, self.serializer)
            except (UnknownPayloadKindError, ValidationError) as e:
                logger.warning(f"Skipping undecodable warm cache entry {key!r}: {e}")
                continue

            deadline = None
            if record.absolute_expiration is not None:
                deadline = _as_utc(record.absolute_expiration).timestamp()
            elif record.absolute_expiration_relative_to_now is not None:
                deadline = (
                    self._timer()
                    + record.absolute_expiration_relative_to_now.total_seconds()
                )

            entry = _MemoryEntry(
                value=value,
                deadline=deadline,
                sliding=record.sliding_expiration,
                priority=record.priority,
                size=record.size or DEFAULT_ENTRY_SIZE,
            )
            if self._store(key, entry):
                loaded += 1

        logger.info(f"Warm cache loaded {loaded} of {len(snapshot)} entries")

    async def _flush_loop(self) -> None:
        await asyncio.sleep(self.config.flush_due_minutes * 60)
        while True:
            await self.flush()
            await asyncio.sleep(self.config.flush_interval_minutes * 60)

    def _store(self, key: str, entry: _MemoryEntry) -> bool:
        try:
            self._cache[key] = entry
        except ValueError as e:
            logger.warning(f"Cache entry {key!r} too large for memory cache: {e}")
            return False
        return True

    async def try_get(self, key: str, value_type: type[T] | Any = Any) -> T | None:
        """Get a live value if present, unexpired and of ``value_type``.

        A hit on an entry with a sliding window extends that window.
        """
        if not self.enabled or not key:
            return None

        entry = self._cache.get(key)
        if entry is None:
            self._record_miss()
            return None

        if not _matches_type(entry.value, value_type):
            logger.debug(f"Cached value for {key!r} is not a {value_type!r}")
            self._record_miss()
            return None

        if entry.sliding is not None:
            # Re-inserting recomputes the time-to-use from now
            self._store(key, entry)

        self.stats.hits += 1
        self.stats.update_hit_rate()
        record_cache_hit(TIER)
        return entry.value

    async def create_entry(
        self,
        key: str,
        value: Any,
        absolute_expiration: timedelta | None = None,
        *,
        sliding_expiration: timedelta | None = None,
        priority: CachePriority = CachePriority.NORMAL,
        size: int | None = None,
    ) -> None:
        """Store a live value and mirror it into the loader's buffer."""
        if not self.enabled:
            return

        if not key:
            logger.warning("Ignoring cache write with empty key")
            return

        if value is None:
            logger.warning(f"Ignoring cache write of None for key {key!r}")
            return

        deadline = None
        if absolute_expiration is not None:
            deadline = self._timer() + absolute_expiration.total_seconds()

        entry = _MemoryEntry(
            value=value,
            deadline=deadline,
            sliding=sliding_expiration,
            priority=priority,
            size=size or DEFAULT_ENTRY_SIZE,
        )
        if not self._store(key, entry):
            self.stats.errors += 1
            record_cache_error(TIER, "set")
            return

        if self.uses_loader:
            assert self.cache_loader is not None
            try:
                record = CacheEntryRecord.from_value(
                    key,
                    value,
                    registry=self.registry,
                    serializer=self.serializer,
                    absolute_expiration_relative_to_now=absolute_expiration,
                    sliding_expiration=sliding_expiration,
                    priority=priority,
                    size=size,
                )
                self.cache_loader.put(key, record)
            except Exception as e:
                logger.warning(f"Could not mirror {key!r} to the warm cache: {e}")

    async def remove(self, key: str) -> None:
        """Evict a key and drop it from the loader's write-behind buffer.

        A snapshot already stored in the warm tier is not rewritten until
        the next flush.
        """
        if not self.enabled or not key:
            return
        self._cache.pop(key, None)
        if self.uses_loader:
            assert self.cache_loader is not None
            self.cache_loader.discard(key)

    def snapshot(self) -> WarmCacheSnapshot:
        """Serialize every live entry whose payload kind is registered."""
        self._cache.expire()
        snapshot: WarmCacheSnapshot = {}
        for key in list(self._cache.keys()):
            entry = self._cache.get(key)
            if entry is None:
                continue

            absolute_expiration = None
            if entry.deadline is not None:
                absolute_expiration = datetime.fromtimestamp(entry.deadline, UTC)

            try:
                snapshot[key] = CacheEntryRecord.from_value(
                    key,
                    entry.value,
                    registry=self.registry,
                    serializer=self.serializer,
                    absolute_expiration=absolute_expiration,
                    sliding_expiration=entry.sliding,
                    priority=entry.priority,
                    size=entry.size,
                )
            except UnknownPayloadKindError as e:
                logger.debug(f"Not snapshotting {key!r}: {e}")

        return snapshot

    async def flush(self) -> bool:
        """Push the current snapshot to the warm tier.

        Returns:
            True if the loader accepted the snapshot
        """
        if not self.uses_loader:
            return False

        assert self.cache_loader is not None
        try:
            snapshot = self.snapshot()
            etag = await self.cache_loader.save_cache(snapshot)
        except Exception as e:
            logger.error(f"Warm cache flush failed: {e}")
            record_cache_error(TIER, "flush")
            return False

        if etag is None:
            return False
        logger.info(f"Flushed {len(snapshot)} entries to the warm cache")
        return True

    async def close(self) -> None:
        """Stop the flush task, perform one final flush and close the loader."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        if self._started and self.cache_loader is not None:
            await self.flush()
            await self.cache_loader.close()
            self._started = False

    def _record_miss(self) -> None:
        self.stats.misses += 1
        self.stats.update_hit_rate()
        record_cache_miss(TIER)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
