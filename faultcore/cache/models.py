"""Cache configuration, statistics and entry models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from faultcore.cache.serialization import JsonSerializer, PayloadRegistry

DEFAULT_FILE_EXPIRATION = timedelta(days=1)


class FileCacheConfig(BaseModel):
    """Configuration for the file-backed cache tier.

    Attributes:
        enabled: Whether caching is enabled
        cache_location: Cache directory. Rooted paths are used as is, relative
            paths resolve under the system temp directory, None resolves to the
            per-user local application data ``cache`` folder
        sweep_interval: Seconds between expiration sweeps
        default_expiration: Entry lifetime in seconds when none is given
        seed_expiration_from_mtime: Seed the expiration of files found at
            startup from their modification time rather than the scan time
    """

    enabled: bool = Field(default=True, description="Enable/disable caching")
    cache_location: str | None = Field(default=None, description="Cache directory")
    sweep_interval: float = Field(
        default=60.0, description="Sweep interval (seconds)", gt=0
    )
    default_expiration: int = Field(
        default=86400, description="Default TTL in seconds (24 hours)", ge=1
    )
    seed_expiration_from_mtime: bool = Field(
        default=True, description="Use file mtime as creation time at startup"
    )


class MemoryCacheConfig(BaseModel):
    """Configuration for the in-memory cache tier.

    Attributes:
        enabled: Whether caching is enabled
        use_cache_loader: Seed from and flush to the warm tier
        size_limit: Total size units the engine may hold
        flush_interval_minutes: Minutes between warm-tier flushes
        flush_due_minutes: Minutes before the first flush
    """

    enabled: bool = Field(default=True, description="Enable/disable caching")
    use_cache_loader: bool = Field(
        default=False, description="Use the warm cache loader"
    )
    size_limit: int = Field(default=100_000_000, description="Size limit", ge=1)
    flush_interval_minutes: float = Field(
        default=10.0, description="Flush interval (minutes)", gt=0
    )
    flush_due_minutes: float = Field(
        default=5.0, description="Initial flush delay (minutes)", ge=0
    )


class BlobStorageConfig(BaseModel):
    """Configuration for the blob container holding the warm snapshot."""

    account_url: str | None = Field(default=None, description="Account URL")
    connection_string: str | None = Field(
        default=None, description="Connection string"
    )
    container: str = Field(default="faultcore", description="Container name")
    blob_name: str = Field(default="memory-cache.json", description="Snapshot blob")
    cache_key: str = Field(default="", description="Explicit snapshot key")
    prefix: str = Field(default="", description="Blob path prefix")
    delete_after_load: bool = Field(
        default=True, description="Delete the snapshot after loading it"
    )


class CacheStats(BaseModel):
    """Cache performance statistics.

    Attributes:
        hits: Number of successful cache hits
        misses: Number of cache misses
        errors: Number of cache operation errors
        hit_rate: Cache hit rate (hits / total requests)
    """

    hits: int = Field(default=0, description="Cache hits")
    misses: int = Field(default=0, description="Cache misses")
    errors: int = Field(default=0, description="Cache errors")
    hit_rate: float = Field(default=0.0, description="Hit rate percentage")

    def update_hit_rate(self) -> None:
        """Recalculate hit rate based on current stats."""
        total = self.hits + self.misses
        self.hit_rate = (self.hits / total * 100) if total > 0 else 0.0


class CachePriority(str, Enum):
    """Eviction priority hint recorded with in-memory entries."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    NEVER_REMOVE = "never_remove"


class CacheEntryRecord(BaseModel):
    """Untyped, serialized form of a cached value plus its expiration metadata.

    This is the unit stored in the warm-tier snapshot. The payload is kept as
    JSON text together with the registered payload kind needed to decode it.
    """

    key: str
    value: str
    value_type_name: str
    absolute_expiration: datetime | None = None
    absolute_expiration_relative_to_now: timedelta | None = None
    sliding_expiration: timedelta | None = None
    priority: CachePriority = CachePriority.NORMAL
    size: int | None = None

    @classmethod
    def from_value(
        cls,
        key: str,
        value: Any,
        *,
        registry: "PayloadRegistry",
        serializer: "JsonSerializer",
        absolute_expiration: datetime | None = None,
        absolute_expiration_relative_to_now: timedelta | None = None,
        sliding_expiration: timedelta | None = None,
        priority: CachePriority = CachePriority.NORMAL,
        size: int | None = None,
    ) -> "CacheEntryRecord":
        """Build a record from a live value.

        Raises:
            ValueError: If value is None
            UnknownPayloadKindError: If the value's type is not registered
        """
        if value is None:
            raise ValueError(f"Cache entry value for key {key!r} is None")

        kind = registry.kind_for(value)
        relative = absolute_expiration_relative_to_now
        if absolute_expiration is None and relative is not None:
            absolute_expiration = datetime.now(UTC) + relative

        return cls(
            key=key,
            value=serializer.serialize(value),
            value_type_name=kind,
            absolute_expiration=absolute_expiration,
            absolute_expiration_relative_to_now=absolute_expiration_relative_to_now,
            sliding_expiration=sliding_expiration,
            priority=priority,
            size=size,
        )

    def decode(self, registry: "PayloadRegistry", serializer: "JsonSerializer") -> Any:
        """Decode the payload back to its registered type."""
        return registry.decode(self.value_type_name, self.value, serializer)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the absolute deadline has passed."""
        if self.absolute_expiration is None:
            return False
        now = now or datetime.now(UTC)
        deadline = self.absolute_expiration
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=UTC)
        return deadline <= now


# Key -> record; the unit of exchange with the blob tier
WarmCacheSnapshot = dict[str, CacheEntryRecord]


@dataclass
class FileCacheIndexEntry:
    """Expiration bookkeeping for one file in the file cache directory."""

    path: Path
    absolute_expiration: timedelta | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime = field(init=False)

    def __post_init__(self) -> None:
        if not self.path or str(self.path) == ".":
            raise ValueError("Cache item path cannot be empty")
        self.path = Path(self.path)
        lifetime = self.absolute_expiration
        if lifetime is None:
            lifetime = DEFAULT_FILE_EXPIRATION
        self.expires_at = self.created_at + lifetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the entry is past its expiration."""
        return self.expires_at < (now or datetime.now(UTC))
