"""Search data models: vector points, vector hits, search hits and pages."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from bilbo.models.book import BookSearchResult


class PointPayload(BaseModel):
    """Payload stored next to each chunk vector."""

    model_config = ConfigDict(frozen=True)

    document_id: int
    reference: str
    title: str
    chapter_ordinal: int = Field(ge=0)
    chapter_title: str | None = None
    chunk_index: int = Field(ge=0)
    chunk_text: str
    authors: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class IndexedPoint(BaseModel):
    """One embedded chunk as written to the vector store."""

    model_config = ConfigDict(frozen=True)

    point_id: str
    vector: list[float]
    payload: PointPayload


class VectorHit(BaseModel):
    """One nearest-neighbour result from the vector store."""

    model_config = ConfigDict(frozen=True)

    reference: str
    title: str
    chunk_text: str
    # Cosine similarity in [-1, 1]; higher is closer.
    score: float


class BookPage(BaseModel):
    """One page of structured search results plus the filtered total."""

    model_config = ConfigDict(frozen=True)

    results: list[BookSearchResult] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)


class SearchHit(BaseModel):
    """One entry of a hybrid search result.

    ``score`` is only set for hits contributed by the semantic boost.
    """

    model_config = ConfigDict(frozen=True)

    reference: str
    title: str
    snippet: str = ""
    score: float | None = None
    authors: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class SearchPage(BaseModel):
    """Hybrid search result: displayed hits and the structured-path total."""

    model_config = ConfigDict(frozen=True)

    hits: list[SearchHit] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
