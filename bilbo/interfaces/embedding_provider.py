"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-dimension vectors.  The
production adapter wraps Mistral's ``mistral-embed`` through the OpenAI
compatible API; tests inject a deterministic in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (bilbo/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and retrieval.

    Embeddings are written to
    :class:`~bilbo.interfaces.vector_store_provider.IVectorStoreProvider`
    at ingestion time and compared against it at query time.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Text strings to embed.  Implementations split the list to
            respect the provider's per-request limit (16 for Mistral).

        Returns
        -------
        list[list[float]]
            One vector per input text, in input order.  Each inner list has
            length equal to :meth:`get_dimension`.

        Raises
        ------
        bilbo.utils.errors.EmbeddingFailed
            If the API call fails or returns the wrong number of vectors.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors (1024 for Mistral)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
