"""Integration tests for the book ingestion pipeline.

Runs whole directories through IngestionService against the real SQLite
metadata store and a real ChromaDB collection in a temporary directory.
Embeddings and summaries come from the deterministic mocks in conftest,
so no network call is made.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from bilbo.models.ingestion import IngestionState
from bilbo.providers.vector_store.chromadb_provider import ChromaDBProvider
from bilbo.services.ingestion.ingestion_service import IngestionService
from tests.conftest import render_book

_SILMARILLION_BODY = """\
# Ainulindalë

Il y avait Eru, l'Unique, qu'en Arda on appelle Ilúvatar.

# Valaquenta

Au commencement Eru créa les Ainur de sa pensée.

# Quenta Silmarillion

Au commencement des jours les Valar façonnèrent Arda.
"""

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def chroma(tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(persist_directory=str(tmp_path / "chroma"), collection_name="books")


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def service(book_store, chroma, mock_embedding_provider, mock_llm_provider) -> IngestionService:
    return IngestionService(
        book_store=book_store,
        vector_store=chroma,
        embedding_provider=mock_embedding_provider,
        llm=mock_llm_provider,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestDirectoryIngestionE2E:
    """Write markdown files -> ingest the directory -> inspect both stores."""

    @pytest.mark.asyncio
    async def test_books_land_in_both_stores(
        self, service, data_dir, book_store, chroma, hobbit_bytes
    ) -> None:
        (data_dir / "01_hobbit.md").write_bytes(hobbit_bytes)
        (data_dir / "02_silmarillion.md").write_bytes(
            render_book(
                _SILMARILLION_BODY,
                reference="BK-0002",
                title="Le Silmarillion",
                authors=["J. R. R. Tolkien", "Christopher Tolkien"],
                tags=["fantasy", "mythologie"],
            )
        )

        report = await service.ingest_directory(data_dir)

        assert [o.state for o in report.outcomes] == [IngestionState.SUCCEEDED] * 2
        assert sorted(p.name for p in (data_dir / "processed").iterdir()) == [
            "01_hobbit.md",
            "02_silmarillion.md",
        ]

        hobbit = await book_store.get_by_reference("BK-0001")
        assert hobbit.title == "Le Hobbit"
        assert hobbit.isbn == "2-267-01125-3"
        assert [u.kind for u in hobbit.reseller_urls] == ["paper", "digital"]
        assert [c.title for c in hobbit.chapter_summaries] == [
            "Une fête très attendue",
            "L'ombre du passé",
        ]

        silmarillion = await book_store.get_by_reference("BK-0002")
        assert silmarillion.authors == ["J. R. R. Tolkien", "Christopher Tolkien"]
        assert silmarillion.summary == "Un résumé généré."

        points = await chroma.get_document_points(silmarillion.id)
        assert [p.chapter_ordinal for p in points] == [0, 1, 2]
        assert all(p.reference == "BK-0002" for p in points)
        assert points[0].chapter_title == "Ainulindalë"
        assert points[0].tags == ["fantasy", "mythologie"]

    @pytest.mark.asyncio
    async def test_second_run_is_unchanged(self, service, data_dir, chroma, hobbit_bytes) -> None:
        (data_dir / "hobbit.md").write_bytes(hobbit_bytes)
        first = await service.ingest_directory(data_dir)
        document_id = first.outcomes[0].document_id
        before = await chroma.get_document_points(document_id)

        (data_dir / "hobbit.md").write_bytes(hobbit_bytes)
        second = await service.ingest_directory(data_dir)

        assert second.outcomes[0].state is IngestionState.UNCHANGED
        assert second.outcomes[0].document_id == document_id
        assert await chroma.get_document_points(document_id) == before

    @pytest.mark.asyncio
    async def test_changed_book_replaces_points(
        self, service, data_dir, book_store, chroma
    ) -> None:
        (data_dir / "silmarillion.md").write_bytes(
            render_book(_SILMARILLION_BODY, reference="BK-0002", title="Le Silmarillion")
        )
        first = await service.ingest_directory(data_dir)
        document_id = first.outcomes[0].document_id
        assert len(await chroma.get_document_points(document_id)) == 3

        (data_dir / "silmarillion.md").write_bytes(
            render_book(
                "# Akallabêth\n\nLa chute de Númenor.\n",
                reference="BK-0002",
                title="Le Silmarillion (révisé)",
                tags=["mythologie"],
            )
        )
        second = await service.ingest_directory(data_dir)

        outcome = second.outcomes[0]
        assert outcome.state is IngestionState.SUCCEEDED
        assert outcome.previous_state is IngestionState.CHANGED
        assert outcome.document_id == document_id

        points = await chroma.get_document_points(document_id)
        assert len(points) == 1
        assert points[0].chapter_title == "Akallabêth"
        assert points[0].title == "Le Silmarillion (révisé)"
        assert points[0].tags == ["mythologie"]

        detail = await book_store.get_by_reference("BK-0002")
        assert detail.tags == ["mythologie"]
        assert [c.title for c in detail.chapter_summaries] == ["Akallabêth"]

    @pytest.mark.asyncio
    async def test_bad_file_goes_to_failed(self, service, data_dir, book_store) -> None:
        (data_dir / "a.md").write_bytes(render_book(reference=""))
        (data_dir / "b.md").write_bytes(render_book(reference="BK-0009"))
        (data_dir / "notes.txt").write_text("ignoré", encoding="utf-8")

        report = await service.ingest_directory(data_dir)

        assert [o.state for o in report.outcomes] == [
            IngestionState.FAILED,
            IngestionState.SUCCEEDED,
        ]
        assert "reference" in report.outcomes[0].error
        assert (data_dir / "failed" / "a.md").exists()
        assert (data_dir / "processed" / "b.md").exists()
        assert (data_dir / "notes.txt").exists()
        assert await book_store.list_all_references() == [("BK-0009", "Le Hobbit")]

    @pytest.mark.asyncio
    async def test_metadata_only_without_providers(self, book_store, chroma, data_dir) -> None:
        service = IngestionService(book_store=book_store, vector_store=chroma)
        (data_dir / "hobbit.md").write_bytes(render_book())

        report = await service.ingest_directory(data_dir)

        outcome = report.outcomes[0]
        assert outcome.state is IngestionState.SUCCEEDED
        assert outcome.chunks_indexed == 0
        assert outcome.chapter_summaries == 0
        assert await chroma.get_document_points(outcome.document_id) == []

        detail = await book_store.get_by_reference("BK-0001")
        assert detail.summary is None
        assert detail.chapter_summaries == []
