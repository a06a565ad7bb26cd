"""Embedding provider contract used by the fault-analysis services."""

from abc import ABC, abstractmethod

from faultcore.core.exceptions import EmbeddingError


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers.

    Providers turn incident text (log excerpts, fault descriptions) into
    fixed-size float vectors used for similarity search.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Raises:
            EmbeddingError: If embedding generation fails
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, in input order.

        Raises:
            EmbeddingError: If embedding generation fails
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Number of dimensions in each embedding vector."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier for logging (e.g. "openai")."""
        pass

    def validate(self, embedding: list[float]) -> list[float]:
        """Check an embedding has this provider's dimension.

        Raises:
            EmbeddingError: On a dimension mismatch
        """
        if len(embedding) != self.dimension:
            raise EmbeddingError(
                f"{self.provider_name} returned {len(embedding)} dimensions, "
                f"expected {self.dimension}",
                details={"provider": self.provider_name, "actual": len(embedding)},
            )
        return embedding
