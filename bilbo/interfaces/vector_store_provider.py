"""Abstract base class for vector-store service providers.

Stores one point per chunk and answers filtered nearest-neighbour queries.
The ingestion service only issues replace commands through this contract
(delete every point of a book, then insert the new set); the store owns
the points themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from bilbo.models.search import IndexedPoint, PointPayload, VectorHit


# Concrete implementation: ChromaDBProvider (bilbo/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the chunk vector index.

    All methods are async so a network-backed store never blocks the event
    loop.  Filters: a point matches *tags* when it carries **every** listed
    tag, and matches *author* when the name is one of its authors exactly.
    """

    @abstractmethod
    async def ensure_collection(self, dimension: int = 1024, distance: str = "cosine") -> None:
        """Create the collection if missing and check its vector size.

        Raises
        ------
        bilbo.utils.errors.VectorIndexError
            If stored vectors have a different dimension, or the store fails.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: int) -> int:
        """Delete every point belonging to *document_id*; return how many."""

    @abstractmethod
    async def upsert_points(self, points: Sequence[IndexedPoint]) -> int:
        """Insert or replace *points* in a single request; return the count.

        Callers bound request size by slicing; the store does no batching.
        """

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        tags: Sequence[str] = (),
        author: str | None = None,
        limit: int = 10,
    ) -> list[VectorHit]:
        """Return up to *limit* nearest points, best first.

        Parameters
        ----------
        vector:
            Query embedding.
        tags:
            Tags every returned point must carry.  Empty means no tag filter.
        author:
            Author every returned point must list, or ``None``.
        limit:
            Maximum number of hits.
        """

    @abstractmethod
    async def get_document_points(self, document_id: int) -> list[PointPayload]:
        """Return the payloads of every point stored for *document_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
