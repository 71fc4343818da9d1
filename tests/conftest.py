"""Shared pytest fixtures for the Bilbo test suite."""

from __future__ import annotations

import hashlib
import math
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import yaml

from bilbo.config.settings import Settings
from bilbo.interfaces.embedding_provider import IEmbeddingProvider
from bilbo.interfaces.llm_provider import ILLMProvider
from bilbo.interfaces.vector_store_provider import IVectorStoreProvider
from bilbo.models.search import IndexedPoint, PointPayload, VectorHit
from bilbo.providers.book_store.sqlite_book_store import SQLiteBookStore

# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

HOBBIT_BODY = """\
# Une fête très attendue

Quand M. Bilbon Sacquet de Cul-de-Sac annonça qu'il donnerait à l'occasion
de son undécante-unième anniversaire une réception d'une magnificence
particulière, une grande excitation régna dans Hobbitebourg.

# L'ombre du passé

La conversation ne roula pas longtemps sur Bilbon. Gandalf resta assis
près du feu, les yeux fixés sur l'anneau.
"""


def render_book(body: str = HOBBIT_BODY, **front_matter: Any) -> bytes:
    """Render a markdown book with a YAML front-matter block to UTF-8 bytes."""
    fields: dict[str, Any] = {"reference": "BK-0001", "title": "Le Hobbit"}
    fields.update(front_matter)
    header = yaml.safe_dump(fields, allow_unicode=True, sort_keys=False)
    return f"---\n{header}---\n{body}".encode("utf-8")


@pytest.fixture
def make_book() -> Callable[..., bytes]:
    """Factory producing raw markdown book bytes; keyword args go to the front matter."""
    return render_book


@pytest.fixture
def hobbit_bytes() -> bytes:
    """A complete two-chapter book with every optional metadata field set."""
    return render_book(
        authors=["J. R. R. Tolkien"],
        editor="Christian Bourgois",
        tags=["fantasy", "classique"],
        edition_date="1969-01-01",
        introduction="Un conte pour enfants devenu un classique.",
        cover_text="Bilbon le hobbit mène une vie paisible.",
        ean="9782267011258",
        isbn="2-267-01125-3",
        reseller_paper_urls=["https://example.org/papier/hobbit"],
        reseller_digital_urls=["https://example.org/ebook/hobbit"],
    )


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 1024


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector derived from the SHA-256 of *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b - 127.5) / 127.5 for b in raw[:dim]]
    magnitude = max(math.sqrt(sum(v * v for v in values)), 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedding provider that records the size of every request."""

    def __init__(self, dimension: int = EMBEDDING_DIM) -> None:
        self._dimension = dimension
        self.batch_sizes: list[int] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_sizes.append(len(texts))
        return [hash_to_vector(t, self._dimension) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return hash_to_vector(text, self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store keyed by point id.

    Search ranks by cosine similarity and applies the same filters as the
    real store: every requested tag must be present, the author must match
    exactly.  Calls are recorded so tests can assert on write patterns.
    """

    def __init__(self) -> None:
        self.points: dict[str, IndexedPoint] = {}
        self.ensured: list[tuple[int, str]] = []
        self.deleted_documents: list[int] = []
        self.upsert_batches: list[int] = []

    async def ensure_collection(self, dimension: int = 1024, distance: str = "cosine") -> None:
        self.ensured.append((dimension, distance))

    async def delete_by_document(self, document_id: int) -> int:
        self.deleted_documents.append(document_id)
        doomed = [pid for pid, p in self.points.items() if p.payload.document_id == document_id]
        for pid in doomed:
            del self.points[pid]
        return len(doomed)

    async def upsert_points(self, points: Sequence[IndexedPoint]) -> int:
        self.upsert_batches.append(len(points))
        for point in points:
            self.points[point.point_id] = point
        return len(points)

    async def search(
        self,
        vector: list[float],
        tags: Sequence[str] = (),
        author: str | None = None,
        limit: int = 10,
    ) -> list[VectorHit]:
        scored: list[tuple[float, PointPayload]] = []
        for point in self.points.values():
            payload = point.payload
            if any(tag not in payload.tags for tag in tags):
                continue
            if author is not None and author not in payload.authors:
                continue
            score = sum(a * b for a, b in zip(vector, point.vector, strict=True))
            scored.append((score, payload))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            VectorHit(
                reference=payload.reference,
                title=payload.title,
                chunk_text=payload.chunk_text,
                score=score,
            )
            for score, payload in scored[:limit]
        ]

    async def get_document_points(self, document_id: int) -> list[PointPayload]:
        payloads = [p.payload for p in self.points.values() if p.payload.document_id == document_id]
        return sorted(payloads, key=lambda p: (p.chapter_ordinal, p.chunk_index))

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Mock IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    """Mock IVectorStoreProvider backed by an in-memory dict."""
    return MockVectorStore()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider whose ``complete`` returns a fixed French sentence.

    Override with ``mock_llm_provider.complete.return_value = "..."`` or
    ``.side_effect = [...]`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="Un résumé généré.")
    return mock


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def book_store(tmp_path: Path) -> SQLiteBookStore:
    """Initialised SQLite metadata store in a temporary directory."""
    store = SQLiteBookStore(db_path=tmp_path / "bilbo_test.db")
    await store.initialize()
    return store


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every path into *tmp_path*, with a dummy API key."""
    return Settings(
        _env_file=None,
        mistral_api_key="test-mistral-key",
        database_path=str(tmp_path / "bilbo.db"),
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        data_dir=str(tmp_path / "data"),
    )
