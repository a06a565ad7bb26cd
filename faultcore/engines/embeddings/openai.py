"""OpenAI embedding provider."""

import logging
from typing import Any

from openai import AsyncOpenAI

from faultcore.core.config import settings
from faultcore.core.exceptions import ConfigurationError, EmbeddingError
from faultcore.engines.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

_MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embedding provider.

    Default model: text-embedding-3-small (1536 dims, can be reduced)
    """

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        dimensions: int | None = None,
        timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenAI embedding provider.

        Args:
            model: Embedding model (defaults to settings.embedding_model)
            api_key: OpenAI API key (defaults to settings.openai_api_key)
            dimensions: Optional dimension reduction (text-embedding-3-* only)
            timeout: Request timeout in seconds
            client: Preconfigured client (api_key is then not required)

        Raises:
            ConfigurationError: If no API key is available

        Example:
            >>> provider = OpenAIEmbeddingProvider(api_key="sk-...")
            >>> embedding = await provider.embed("disk /dev/sda1 is full")
            >>> len(embedding)
            1536
        """
        self.model = model or settings.embedding_model
        self.dimensions = dimensions
        self.timeout = timeout

        if client is None:
            api_key = api_key or settings.openai_api_key
            if not api_key:
                raise ConfigurationError(
                    "OpenAI API key required. Set OPENAI_API_KEY or pass api_key."
                )
            client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.client = client

        if dimensions and self.model.startswith("text-embedding-3"):
            self._dimension = dimensions
        else:
            self._dimension = _MODEL_DIMENSIONS.get(self.model, dimensions or 1536)

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        params: dict[str, Any] = {"model": self.model, "input": texts}
        if self.dimensions and self.model.startswith("text-embedding-3"):
            params["dimensions"] = self.dimensions

        try:
            response = await self.client.embeddings.create(**params)
        except Exception as e:
            logger.error(f"OpenAI embedding API error: {e}")
            raise EmbeddingError(
                f"OpenAI embedding API failed: {e}", details={"model": self.model}
            ) from e

        return [item.embedding for item in response.data]

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def provider_name(self) -> str:
        return "openai"
