"""Embedding providers and the cached embedding service."""

from faultcore.engines.embeddings.base import EmbeddingProvider
from faultcore.engines.embeddings.cached import CachedEmbeddingService
from faultcore.engines.embeddings.openai import OpenAIEmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "CachedEmbeddingService",
]
