"""Embedding service that memoizes provider calls through a cache tier."""

import logging

from faultcore.cache.base import CacheService
from faultcore.cache.keys import gen_cache_key
from faultcore.engines.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "EmbeddingService"


class CachedEmbeddingService:
    """Embeds text, reusing vectors already held by the cache.

    Example:
        >>> service = CachedEmbeddingService(OpenAIEmbeddingProvider(), cache)
        >>> vector = await service.get_embedding("kernel panic on boot")
    """

    def __init__(self, provider: EmbeddingProvider, cache: CacheService):
        self.provider = provider
        self.cache = cache

    @staticmethod
    def cache_key(text: str) -> str:
        return gen_cache_key(CACHE_KEY_PREFIX, text)

    async def get_embedding(self, text: str) -> list[float]:
        """Embedding for ``text``, from the cache when available.

        Raises:
            ValueError: If text is None
            EmbeddingError: If the provider fails or returns a vector of
                the wrong dimension
        """
        if text is None:
            raise ValueError("text cannot be None")

        key = self.cache_key(text)
        cached = await self.cache.try_get(key, list[float])
        if cached is not None and len(cached) == self.provider.dimension:
            logger.debug(f"Embedding cache hit for {key[:24]}")
            return cached

        embedding = self.provider.validate(await self.provider.embed(text))
        await self.cache.create_entry(key, embedding)
        return embedding

    async def get_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embeddings for several texts; only cache misses hit the provider."""
        results: list[list[float] | None] = []
        missing: list[int] = []
        for i, text in enumerate(texts):
            cached = await self.cache.try_get(self.cache_key(text), list[float])
            if cached is not None and len(cached) == self.provider.dimension:
                results.append(cached)
            else:
                results.append(None)
                missing.append(i)

        if missing:
            generated = await self.provider.embed_batch([texts[i] for i in missing])
            for i, embedding in zip(missing, generated, strict=True):
                embedding = self.provider.validate(embedding)
                await self.cache.create_entry(self.cache_key(texts[i]), embedding)
                results[i] = embedding

        return [r for r in results if r is not None]
