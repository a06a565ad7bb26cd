"""Core infrastructure for faultcore."""

from faultcore.core.config import (
    Settings,
    load_blob_storage_config,
    load_caching_type,
    load_file_cache_config,
    load_memory_cache_config,
    settings,
)
from faultcore.core.exceptions import (
    CacheStorageError,
    ConfigurationError,
    EmbeddingError,
    FaultCoreError,
    PreconditionFailedError,
    UnknownPayloadKindError,
)

__all__ = [
    "Settings",
    "settings",
    "load_blob_storage_config",
    "load_caching_type",
    "load_file_cache_config",
    "load_memory_cache_config",
    "FaultCoreError",
    "ConfigurationError",
    "CacheStorageError",
    "PreconditionFailedError",
    "UnknownPayloadKindError",
    "EmbeddingError",
]
