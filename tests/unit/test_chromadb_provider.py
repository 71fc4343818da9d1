"""Unit tests for the ChromaDB vector store provider.

Runs against a real persistent ChromaDB client in a temporary directory,
with small hand-made vectors so nearest-neighbour order is predictable.
Covers ensure_collection, upsert_points, search (with tag/author filters),
delete_by_document, get_document_points and the metadata helpers.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from bilbo.models.search import IndexedPoint, PointPayload
from bilbo.providers.vector_store.chromadb_provider import ChromaDBProvider
from bilbo.utils.errors import VectorIndexError

_DIM = 4


def _point(
    point_id: str,
    vector: list[float],
    document_id: int = 1,
    reference: str = "R1",
    chunk_index: int = 0,
    chapter_ordinal: int = 0,
    tags: list[str] | None = None,
    authors: list[str] | None = None,
    chapter_title: str | None = "Chapitre",
) -> IndexedPoint:
    return IndexedPoint(
        point_id=point_id,
        vector=vector,
        payload=PointPayload(
            document_id=document_id,
            reference=reference,
            title=f"Titre {reference}",
            chapter_ordinal=chapter_ordinal,
            chapter_title=chapter_title,
            chunk_index=chunk_index,
            chunk_text=f"texte {point_id}",
            authors=authors if authors is not None else ["J. R. R. Tolkien"],
            tags=tags if tags is not None else ["fantasy"],
        ),
    )


@pytest_asyncio.fixture
async def provider(tmp_path: Path) -> ChromaDBProvider:
    prov = ChromaDBProvider(persist_directory=str(tmp_path / "chroma"), collection_name="test")
    await prov.ensure_collection(dimension=_DIM, distance="cosine")
    return prov


class TestEnsureCollection:
    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, tmp_path: Path) -> None:
        persist = str(tmp_path / "chroma")
        first = ChromaDBProvider(persist_directory=persist, collection_name="test")
        await first.ensure_collection(dimension=_DIM)
        await first.upsert_points([_point("p1", [1.0, 0.0, 0.0, 0.0])])

        second = ChromaDBProvider(persist_directory=persist, collection_name="test")
        with pytest.raises(VectorIndexError, match="dimension mismatch"):
            await second.ensure_collection(dimension=1024)

    @pytest.mark.asyncio
    async def test_unknown_distance(self, tmp_path: Path) -> None:
        prov = ChromaDBProvider(persist_directory=str(tmp_path / "chroma"), collection_name="test")
        with pytest.raises(ValueError):
            await prov.ensure_collection(distance="manhattan")

    @pytest.mark.asyncio
    async def test_reopen_same_dimension(self, tmp_path: Path) -> None:
        persist = str(tmp_path / "chroma")
        first = ChromaDBProvider(persist_directory=persist, collection_name="test")
        await first.ensure_collection(dimension=_DIM)
        await first.upsert_points([_point("p1", [1.0, 0.0, 0.0, 0.0])])

        second = ChromaDBProvider(persist_directory=persist, collection_name="test")
        await second.ensure_collection(dimension=_DIM)
        assert len(await second.get_document_points(1)) == 1


class TestUpsertAndSearch:
    @pytest.mark.asyncio
    async def test_search_orders_by_similarity(self, provider: ChromaDBProvider) -> None:
        await provider.upsert_points(
            [
                _point("near", [1.0, 0.0, 0.0, 0.0], reference="R1"),
                _point("far", [0.0, 1.0, 0.0, 0.0], reference="R2", document_id=2),
            ]
        )
        hits = await provider.search([0.9, 0.1, 0.0, 0.0], limit=2)

        assert [h.reference for h in hits] == ["R1", "R2"]
        assert hits[0].chunk_text == "texte near"
        assert hits[0].title == "Titre R1"
        assert hits[0].score > hits[1].score
        assert hits[0].score == pytest.approx(0.9939, abs=1e-3)

    @pytest.mark.asyncio
    async def test_tag_filter_requires_every_tag(self, provider: ChromaDBProvider) -> None:
        await provider.upsert_points(
            [
                _point("a", [1.0, 0.0, 0.0, 0.0], reference="R1", tags=["fantasy", "jeunesse"]),
                _point("b", [1.0, 0.1, 0.0, 0.0], reference="R2", document_id=2, tags=["fantasy"]),
            ]
        )
        hits = await provider.search([1.0, 0.0, 0.0, 0.0], tags=["fantasy", "jeunesse"])
        assert [h.reference for h in hits] == ["R1"]

    @pytest.mark.asyncio
    async def test_author_filter_exact(self, provider: ChromaDBProvider) -> None:
        await provider.upsert_points(
            [
                _point("a", [1.0, 0.0, 0.0, 0.0], reference="R1", authors=["Isaac Asimov"]),
                _point("b", [1.0, 0.1, 0.0, 0.0], reference="R2", document_id=2),
            ]
        )
        assert [h.reference for h in await provider.search([1.0, 0, 0, 0], author="Isaac Asimov")] == [
            "R1"
        ]
        assert await provider.search([1.0, 0, 0, 0], author="Asimov") == []

    @pytest.mark.asyncio
    async def test_upsert_wrong_dimension(self, provider: ChromaDBProvider) -> None:
        with pytest.raises(VectorIndexError, match="dimensions"):
            await provider.upsert_points([_point("bad", [1.0, 0.0])])

    @pytest.mark.asyncio
    async def test_upsert_empty(self, provider: ChromaDBProvider) -> None:
        assert await provider.upsert_points([]) == 0

    @pytest.mark.asyncio
    async def test_search_zero_limit(self, provider: ChromaDBProvider) -> None:
        assert await provider.search([1.0, 0.0, 0.0, 0.0], limit=0) == []


class TestDocumentPoints:
    @pytest.mark.asyncio
    async def test_delete_by_document(self, provider: ChromaDBProvider) -> None:
        await provider.upsert_points(
            [
                _point("a0", [1.0, 0.0, 0.0, 0.0], chunk_index=0),
                _point("a1", [0.9, 0.1, 0.0, 0.0], chunk_index=1),
                _point("b0", [0.0, 1.0, 0.0, 0.0], document_id=2, reference="R2"),
            ]
        )
        assert await provider.delete_by_document(1) == 2
        assert await provider.get_document_points(1) == []
        assert len(await provider.get_document_points(2)) == 1
        assert await provider.delete_by_document(1) == 0

    @pytest.mark.asyncio
    async def test_payload_round_trip_ordered(self, provider: ChromaDBProvider) -> None:
        await provider.upsert_points(
            [
                _point("c1-0", [0.0, 0.0, 1.0, 0.0], chapter_ordinal=1, chunk_index=0),
                _point("c0-1", [0.0, 1.0, 0.0, 0.0], chunk_index=1, chapter_title=None),
                _point(
                    "c0-0",
                    [1.0, 0.0, 0.0, 0.0],
                    authors=["Zoé", "Adam"],
                    tags=["b", "a"],
                ),
            ]
        )
        payloads = await provider.get_document_points(1)

        assert [(p.chapter_ordinal, p.chunk_index) for p in payloads] == [(0, 0), (0, 1), (1, 0)]
        assert payloads[0].authors == ["Zoé", "Adam"]
        assert payloads[0].tags == ["b", "a"]
        assert payloads[1].chapter_title is None
        assert payloads[0].chunk_text == "texte c0-0"


class TestHelpers:
    def test_build_where_none(self) -> None:
        assert ChromaDBProvider._build_where([], None) is None

    def test_build_where_single(self) -> None:
        assert ChromaDBProvider._build_where(["fantasy"], None) == {"tag::fantasy": True}

    def test_build_where_combined(self) -> None:
        where = ChromaDBProvider._build_where(["a", "b", "a"], "X")
        assert where == {"$and": [{"tag::a": True}, {"tag::b": True}, {"author::X": True}]}

    def test_is_available(self, tmp_path: Path) -> None:
        prov = ChromaDBProvider(persist_directory=str(tmp_path / "chroma"), collection_name="test")
        assert prov.is_available() is True
        assert prov.get_provider_name() == "chromadb"
