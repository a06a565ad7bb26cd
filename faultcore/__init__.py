"""faultcore - shared infrastructure for AI-assisted fault analysis.

Provides the two-tier cache (file system or in-memory with a blob-backed
warm snapshot) used by the embedding, chat and analysis services.

Basic usage:
    >>> from faultcore import create_cache_service
    >>> cache = await create_cache_service()
    >>> await cache.create_entry("user:42", {"name": "x"})
    >>> await cache.try_get("user:42", dict)
    {'name': 'x'}
"""

from dotenv import load_dotenv

load_dotenv()

from faultcore.cache import (
    CacheService,
    CachingType,
    FileCacheService,
    MemoryCacheService,
    create_cache_service,
)
from faultcore.core import (
    CacheStorageError,
    ConfigurationError,
    EmbeddingError,
    FaultCoreError,
    PreconditionFailedError,
    UnknownPayloadKindError,
    settings,
)

__version__ = "0.1.0"

__all__ = [
    "CacheService",
    "CachingType",
    "FileCacheService",
    "MemoryCacheService",
    "create_cache_service",
    "FaultCoreError",
    "ConfigurationError",
    "CacheStorageError",
    "PreconditionFailedError",
    "UnknownPayloadKindError",
    "EmbeddingError",
    "settings",
    "__version__",
]
