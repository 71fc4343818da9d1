"""Hybrid keyword + semantic book search.

The structured path always runs: the metadata store matches the query by
full text OR title/editor substring, under the tag/author filters, and
returns one page plus the filtered total.

On the first page only, when the trimmed query is non-empty and an
embedding provider is configured, a *semantic boost* follows: the query is
embedded, up to :data:`SEMANTIC_BOOST_LIMIT` nearest chunks are fetched
under the same filters, and every book not already on the page is appended
in similarity order, one hit per book.  The total stays the structured
total, so pagination arithmetic never depends on the boost.

A failure of the structured path is the caller's error.  A failure of the
boost is logged and the page is returned without it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from bilbo.models.book import BookSearchResult
from bilbo.models.search import SearchHit, SearchPage, VectorHit
from bilbo.utils.errors import BilboError

if TYPE_CHECKING:
    from bilbo.interfaces.book_store_provider import IBookStoreProvider
    from bilbo.interfaces.embedding_provider import IEmbeddingProvider
    from bilbo.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

SEMANTIC_BOOST_LIMIT = 10
SNIPPET_LENGTH = 200


class HybridSearchService:
    """Combines structured search with a first-page semantic boost.

    Parameters
    ----------
    book_store:
        Structured search and book lookup.
    vector_store:
        Chunk index for the semantic boost.
    embedding_provider:
        Optional; without it the boost never runs.
    max_page_size:
        Largest accepted ``page_size``.
    """

    def __init__(
        self,
        book_store: IBookStoreProvider,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider | None = None,
        max_page_size: int = 100,
    ) -> None:
        self._book_store = book_store
        self._vector_store = vector_store
        self._embedding_provider = embedding_provider
        self._max_page_size = max_page_size

    async def search(
        self,
        query: str = "",
        tags: Sequence[str] = (),
        author: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> SearchPage:
        """Return one page of hits and the structured-path total.

        Raises
        ------
        ValueError
            If *page* is negative or *page_size* is outside ``1..max_page_size``.
        bilbo.utils.errors.StorageError
            If the structured search fails.
        """
        if page < 0:
            raise ValueError(f"page must be >= 0, got {page}")
        if not 1 <= page_size <= self._max_page_size:
            raise ValueError(f"page_size must be in 1..{self._max_page_size}, got {page_size}")

        tags = list(dict.fromkeys(t.strip() for t in tags if t.strip()))
        author = author.strip() if author and author.strip() else None
        text = query.strip()

        book_page = await self._book_store.search(
            text, tags=tags, author=author, page=page, page_size=page_size
        )
        hits = [self._structured_hit(result) for result in book_page.results]

        embedder = self._embedding_provider
        if page == 0 and text and embedder is not None:
            seen = {hit.reference for hit in hits}
            boosted = await self._semantic_boost(embedder, text, tags, author, seen)
            hits.extend(boosted)
        else:
            boosted = []

        logger.info(
            "hybrid_search",
            query_length=len(text),
            tags=len(tags),
            author=bool(author),
            page=page,
            structured=len(book_page.results),
            boosted=len(boosted),
            total=book_page.total,
        )
        return SearchPage(hits=hits, total=book_page.total)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _semantic_boost(
        self,
        embedder: IEmbeddingProvider,
        query: str,
        tags: list[str],
        author: str | None,
        seen: set[str],
    ) -> list[SearchHit]:
        """Return semantic hits for books not in *seen*; empty on any failure."""
        try:
            vector = await embedder.embed_single(query)
            vector_hits = await self._vector_store.search(
                vector, tags=tags, author=author, limit=SEMANTIC_BOOST_LIMIT
            )
            boosted: list[SearchHit] = []
            for vector_hit in vector_hits:
                if vector_hit.reference in seen:
                    continue
                seen.add(vector_hit.reference)
                hit = await self._enrich(vector_hit)
                if hit is not None:
                    boosted.append(hit)
            return boosted
        except BilboError as exc:
            logger.warning("semantic_boost_failed", error=str(exc))
            return []

    async def _enrich(self, vector_hit: VectorHit) -> SearchHit | None:
        """Attach book metadata to a vector hit; ``None`` for a stale point."""
        detail = await self._book_store.get_by_reference(vector_hit.reference)
        if detail is None:
            logger.debug("semantic_hit_without_book", reference=vector_hit.reference)
            return None
        return SearchHit(
            reference=detail.reference,
            title=detail.title,
            snippet=vector_hit.chunk_text[:SNIPPET_LENGTH],
            score=vector_hit.score,
            authors=detail.authors,
            tags=detail.tags,
        )

    @staticmethod
    def _structured_hit(result: BookSearchResult) -> SearchHit:
        return SearchHit(
            reference=result.reference,
            title=result.title,
            snippet=result.summary or "",
            authors=result.authors,
            tags=result.tags,
        )
