"""Exception hierarchy for faultcore.

Storage-layer failures inside the cache stores are caught and logged, so
most of these surface only from construction (configuration) or from the
lower-level clients (blob storage, embeddings).
"""

from typing import Any


class FaultCoreError(Exception):
    """Base exception for all faultcore errors."""

    code: str = "FAULTCORE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(FaultCoreError):
    """Configuration error (missing settings, unusable cache directory)."""

    code: str = "CONFIGURATION_ERROR"


class CacheStorageError(FaultCoreError):
    """Backing storage operation failed (file system, blob container)."""

    code: str = "CACHE_STORAGE_ERROR"


class PreconditionFailedError(CacheStorageError):
    """Conditional blob write rejected because the ETag did not match."""

    code: str = "PRECONDITION_FAILED"


class UnknownPayloadKindError(FaultCoreError):
    """Payload type or kind name is not registered with the payload registry."""

    code: str = "UNKNOWN_PAYLOAD_KIND"


class EmbeddingError(FaultCoreError):
    """Embedding generation failed or returned an unexpected shape."""

    code: str = "EMBEDDING_FAILED"
