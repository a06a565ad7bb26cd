"""Cache service interface shared by the file and in-memory tiers."""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, TypeVar

from faultcore.cache.models import CacheStats

T = TypeVar("T")


class CacheService(ABC):
    """Abstract interface for a cache tier.

    Callers (embedding, chat and fault-analysis services) depend only on this
    contract, so the backing tier is a deployment-time choice.

    Implementations must:
    - Treat every storage failure as a miss (``try_get``) or a no-op
      (``create_entry``, ``remove``); nothing storage-related is raised
    - Degrade every operation to its uncached equivalent when disabled
    - Never raise from ``remove`` for a key that is not cached
    """

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether caching is enabled for this tier."""
        pass

    @abstractmethod
    async def try_get(self, key: str, value_type: type[T] | Any = Any) -> T | None:
        """Get the value cached under a key.

        Args:
            key: Cache key
            value_type: Expected type of the cached value

        Returns:
            The cached value, or None on a miss, a type mismatch or any error
        """
        pass

    @abstractmethod
    async def create_entry(
        self,
        key: str,
        value: Any,
        absolute_expiration: timedelta | None = None,
    ) -> None:
        """Cache a value under a key.

        Args:
            key: Cache key. Empty keys are ignored
            value: Value to cache. None is ignored
            absolute_expiration: Lifetime of the entry from now
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Missing keys are not an error."""
        pass

    @abstractmethod
    def get_stats(self) -> CacheStats:
        """Get hit/miss/error counters for this tier."""
        pass

    async def start(self) -> None:
        """Start background work owned by the tier."""
        return None

    async def close(self) -> None:
        """Stop background work and release resources."""
        return None

    async def __aenter__(self) -> "CacheService":
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
