"""Orchestrator for the book ingestion pipeline.

Pipeline stages per document:
**parse -> compare fingerprint -> summarise -> write metadata ->
chapter summaries -> chunk -> embed -> replace points -> commit fingerprint**.

State machine per document::

    UNSEEN -> NEW | UNCHANGED | CHANGED -> SUCCEEDED | FAILED

``UNCHANGED`` (stored fingerprint equals the fresh one) ends the run with
no writes at all.  ``NEW`` and ``CHANGED`` go through the write path.  The
fingerprint is committed last, so a document whose indexing failed keeps a
cleared fingerprint and is picked up again by the next run.

On ``CHANGED`` every previously indexed point of the book is deleted before
the new points are inserted (replace, never merge), even when no embedding
provider is configured or the new layout has no chunks.  Embeddings are
computed before that delete, so an embedding failure leaves the old points
in place.

Documents are processed strictly one after another, and every step of a
document awaits the previous one.  Cancelling the enclosing task stops the
pipeline at the next external call; a file being processed when that
happens is left where it is.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from bilbo.models.book import BookMetadata, Chunk, ParsedDocument, StoredBook
from bilbo.models.ingestion import (
    IngestionOutcome,
    IngestionReport,
    IngestionState,
    RawDocument,
)
from bilbo.models.search import IndexedPoint, PointPayload
from bilbo.services.ingestion.chapter_segmenter import ChapterSegmenter
from bilbo.services.ingestion.chunker import TextChunker
from bilbo.services.ingestion.document_parser import DocumentParser
from bilbo.services.ingestion.summarizer import SummaryGenerator
from bilbo.utils.errors import BilboError, EmbeddingFailed

if TYPE_CHECKING:
    from bilbo.interfaces.book_store_provider import IBookStoreProvider
    from bilbo.interfaces.embedding_provider import IEmbeddingProvider
    from bilbo.interfaces.llm_provider import ILLMProvider
    from bilbo.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

# Texts per embedding request.
EMBED_BATCH_SIZE = 16
# Points per vector-store write.
UPSERT_BATCH_SIZE = 100
# Vector size used when no embedding provider is configured.
VECTOR_DIMENSION = 1024


class IngestionService:
    """Runs raw book files through parsing, metadata storage and indexing.

    Parameters
    ----------
    book_store:
        Metadata store; source of stored fingerprints.
    vector_store:
        Chunk index that receives replace commands.
    embedding_provider:
        Optional.  Without it no points are written (old ones are still
        removed on re-ingestion).
    llm:
        Optional.  Enables generated book and chapter summaries.
    """

    def __init__(
        self,
        book_store: IBookStoreProvider,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider | None = None,
        llm: ILLMProvider | None = None,
        parser: DocumentParser | None = None,
        segmenter: ChapterSegmenter | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        self._book_store = book_store
        self._vector_store = vector_store
        self._embedding_provider = embedding_provider
        self._summarizer = SummaryGenerator(llm)
        self._parser = parser or DocumentParser()
        self._segmenter = segmenter or ChapterSegmenter()
        self._chunker = chunker or TextChunker()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(self, raw: RawDocument) -> IngestionOutcome:
        """Run one document through the pipeline.

        Never raises for a document-level failure: parse, storage, index
        and embedding errors (and unexpected exceptions) come back as a
        ``FAILED`` outcome carrying the error text.  Cancellation is not
        caught.
        """
        start = time.monotonic()
        reference: str | None = None
        state = IngestionState.UNSEEN
        try:
            parsed = self._parser.parse(raw.content)
            reference = parsed.metadata.reference

            stored = await self._book_store.find_book(reference)
            if stored is not None and stored.fingerprint == parsed.fingerprint:
                logger.info("document_unchanged", source=raw.source, reference=reference)
                return IngestionOutcome(
                    source=raw.source,
                    reference=reference,
                    state=IngestionState.UNCHANGED,
                    document_id=stored.id,
                    elapsed=time.monotonic() - start,
                )

            state = IngestionState.NEW if stored is None else IngestionState.CHANGED
            document_id, indexed, summaries = await self._write(parsed, stored)

        except BilboError as exc:
            logger.error(
                "document_failed",
                source=raw.source,
                reference=reference,
                state=state.value,
                error=str(exc),
            )
            return self._failed(raw, reference, state, exc, start)
        except Exception as exc:
            logger.exception(
                "document_failed_unexpectedly",
                source=raw.source,
                reference=reference,
                state=state.value,
            )
            return self._failed(raw, reference, state, exc, start)

        elapsed = time.monotonic() - start
        logger.info(
            "document_ingested",
            source=raw.source,
            reference=reference,
            previous_state=state.value,
            document_id=document_id,
            chunks=indexed,
            chapter_summaries=summaries,
            time_s=round(elapsed, 2),
        )
        return IngestionOutcome(
            source=raw.source,
            reference=reference,
            state=IngestionState.SUCCEEDED,
            previous_state=state,
            document_id=document_id,
            chunks_indexed=indexed,
            chapter_summaries=summaries,
            elapsed=elapsed,
        )

    async def ingest_directory(
        self,
        data_dir: str | Path,
        processed_dirname: str = "processed",
        failed_dirname: str = "failed",
    ) -> IngestionReport:
        """Ingest every ``*.md`` file directly inside *data_dir*, in name order.

        Each file is moved to ``<data_dir>/<processed_dirname>/`` when its
        outcome is successful (``SUCCEEDED`` or ``UNCHANGED``) and to
        ``<data_dir>/<failed_dirname>/`` otherwise.  That location is the
        only record of completion.  A file that cannot be moved is logged
        and left in place; its outcome is still reported.

        Raises
        ------
        bilbo.utils.errors.VectorIndexError
            If the vector collection cannot be prepared; no file is touched.
        """
        root = Path(data_dir)
        processed_dir = root / processed_dirname
        failed_dir = root / failed_dirname
        processed_dir.mkdir(parents=True, exist_ok=True)
        failed_dir.mkdir(parents=True, exist_ok=True)

        dimension = (
            self._embedding_provider.get_dimension()
            if self._embedding_provider is not None
            else VECTOR_DIMENSION
        )
        await self._vector_store.ensure_collection(dimension=dimension, distance="cosine")

        files = sorted(p for p in root.glob("*.md") if p.is_file())
        logger.info("directory_ingestion_started", data_dir=str(root), files=len(files))

        outcomes: list[IngestionOutcome] = []
        for path in files:
            outcome = await self._ingest_file(path)
            destination = (processed_dir if outcome.ok else failed_dir) / path.name
            try:
                path.replace(destination)
            except OSError as exc:
                logger.error(
                    "document_relocation_failed",
                    source=path.name,
                    destination=str(destination.parent),
                    error=str(exc),
                )
            else:
                logger.info(
                    "document_relocated",
                    source=path.name,
                    state=outcome.state.value,
                    destination=str(destination.parent),
                )
            outcomes.append(outcome)

        report = IngestionReport(outcomes=outcomes)
        logger.info(
            "directory_ingestion_complete",
            data_dir=str(root),
            succeeded=report.succeeded,
            unchanged=report.unchanged,
            failed=report.failed,
        )
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ingest_file(self, path: Path) -> IngestionOutcome:
        start = time.monotonic()
        try:
            content = path.read_bytes()
        except OSError as exc:
            logger.error("document_unreadable", source=path.name, error=str(exc))
            return self._failed(
                RawDocument(source=path.name, content=b""), None, IngestionState.UNSEEN, exc, start
            )
        return await self.ingest_document(RawDocument(source=path.name, content=content))

    async def _write(
        self, parsed: ParsedDocument, stored: StoredBook | None
    ) -> tuple[int, int, int]:
        """Write path for NEW / CHANGED documents.

        Returns ``(document_id, points_indexed, chapter_summaries_stored)``.
        """
        metadata = parsed.metadata
        if metadata.summary is None:
            metadata = metadata.with_summary(
                await self._summarizer.summarize_book(metadata.reference, parsed.body)
            )

        document_id = await self._book_store.upsert_book(metadata, parsed.body)

        chapters = self._segmenter.segment(parsed.body)
        summary_count = 0
        if self._summarizer.enabled:
            summaries = await self._summarizer.summarize_chapters(metadata.reference, chapters)
            await self._book_store.replace_chapter_summaries(document_id, summaries)
            summary_count = len(summaries)

        chunks = self._chunker.chunk(chapters)
        indexed = await self._replace_points(
            document_id, metadata, chunks, replacing=stored is not None
        )

        await self._book_store.commit_fingerprint(document_id, parsed.fingerprint)
        return document_id, indexed, summary_count

    async def _replace_points(
        self,
        document_id: int,
        metadata: BookMetadata,
        chunks: Sequence[Chunk],
        replacing: bool,
    ) -> int:
        vectors = await self._embed_chunks(chunks)

        if replacing:
            await self._vector_store.delete_by_document(document_id)

        if not vectors:
            return 0

        points = [
            IndexedPoint(
                point_id=str(uuid.uuid4()),
                vector=vector,
                payload=PointPayload(
                    document_id=document_id,
                    reference=metadata.reference,
                    title=metadata.title,
                    chapter_ordinal=chunk.chapter_ordinal,
                    chapter_title=chunk.chapter_title,
                    chunk_index=chunk.chunk_index,
                    chunk_text=chunk.text,
                    authors=list(metadata.authors),
                    tags=list(metadata.tags),
                ),
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

        stored = 0
        for start in range(0, len(points), UPSERT_BATCH_SIZE):
            stored += await self._vector_store.upsert_points(points[start : start + UPSERT_BATCH_SIZE])
        return stored

    async def _embed_chunks(self, chunks: Sequence[Chunk]) -> list[list[float]]:
        if self._embedding_provider is None or not chunks:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(chunks), EMBED_BATCH_SIZE):
            batch = [c.text for c in chunks[start : start + EMBED_BATCH_SIZE]]
            vectors.extend(await self._embedding_provider.embed(batch))

        if len(vectors) != len(chunks):
            raise EmbeddingFailed(
                message=f"expected {len(chunks)} embeddings, got {len(vectors)}",
                provider_name=self._embedding_provider.get_provider_name(),
            )
        return vectors

    @staticmethod
    def _failed(
        raw: RawDocument,
        reference: str | None,
        state: IngestionState,
        exc: BaseException,
        start: float,
    ) -> IngestionOutcome:
        return IngestionOutcome(
            source=raw.source,
            reference=reference,
            state=IngestionState.FAILED,
            previous_state=state if state is not IngestionState.UNSEEN else None,
            error=str(exc) or type(exc).__name__,
            elapsed=time.monotonic() - start,
        )
