"""Abstract base class for the book metadata store.

The metadata store is the authority for book records and their child
collections (authors, tags, reseller links, chapter summaries), for
change detection fingerprints, and for the structured half of hybrid
search (full-text match OR substring match on title/editor).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from bilbo.models.book import BookDetail, BookMetadata, ChapterSummary, StoredBook
from bilbo.models.search import BookPage


# Concrete implementation: SQLiteBookStore (bilbo/providers/book_store/)
class IBookStoreProvider(ABC):
    """Contract for book metadata persistence and structured search.

    Every method raises :class:`bilbo.utils.errors.StorageError` when the
    backend fails.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    # -- Ingestion side -------------------------------------------------

    @abstractmethod
    async def find_book(self, reference: str) -> StoredBook | None:
        """Return the id and stored fingerprint for *reference*, if any."""

    @abstractmethod
    async def upsert_book(self, metadata: BookMetadata, body: str) -> int:
        """Replace the record for ``metadata.reference`` and return its id.

        Runs as one transaction.  Child collections (authors, tags,
        reseller links) are replaced wholesale, never merged.  The stored
        fingerprint is cleared; :meth:`commit_fingerprint` sets it once the
        rest of the pipeline has finished.  The id of an existing reference
        is kept across replacements.
        """

    @abstractmethod
    async def replace_chapter_summaries(
        self, document_id: int, summaries: Sequence[ChapterSummary]
    ) -> None:
        """Delete all chapter summaries of *document_id*, then insert *summaries*."""

    @abstractmethod
    async def commit_fingerprint(self, document_id: int, fingerprint: str) -> None:
        """Record *fingerprint* as the fully ingested content of *document_id*."""

    # -- Query side -----------------------------------------------------

    @abstractmethod
    async def search(
        self,
        query: str,
        tags: Sequence[str] = (),
        author: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> BookPage:
        """Structured search, most recently updated first.

        A book matches *query* when the full-text index matches it or its
        title/editor contains *query* as a case-insensitive substring.  A
        blank *query* matches every book.  *tags* requires every tag;
        *author* requires an exact author name.  ``total`` counts all
        matches, not just this page.
        """

    @abstractmethod
    async def get_by_reference(self, reference: str) -> BookDetail | None:
        """Return the full record for *reference*, or ``None``."""

    @abstractmethod
    async def list_tags(self) -> list[str]:
        """Return every tag in use, sorted."""

    @abstractmethod
    async def list_authors(self) -> list[str]:
        """Return every author in use, sorted."""

    @abstractmethod
    async def list_all_references(self) -> list[tuple[str, str]]:
        """Return ``(reference, title)`` of every book, sorted by title."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
