"""Pydantic data models shared by the ingestion and retrieval services."""

from bilbo.models.book import (
    BookDetail,
    BookMetadata,
    BookSearchResult,
    Chapter,
    ChapterSummary,
    Chunk,
    ParsedDocument,
    ResellerKind,
    ResellerUrl,
    StoredBook,
)
from bilbo.models.chat import AssistantMessage, ChatMessage, ChatRole, ChatSource
from bilbo.models.ingestion import (
    IngestionOutcome,
    IngestionReport,
    IngestionState,
    RawDocument,
)
from bilbo.models.search import (
    BookPage,
    IndexedPoint,
    PointPayload,
    SearchHit,
    SearchPage,
    VectorHit,
)

__all__ = [
    "AssistantMessage",
    "BookDetail",
    "BookMetadata",
    "BookPage",
    "BookSearchResult",
    "Chapter",
    "ChapterSummary",
    "ChatMessage",
    "ChatRole",
    "ChatSource",
    "Chunk",
    "IndexedPoint",
    "IngestionOutcome",
    "IngestionReport",
    "IngestionState",
    "ParsedDocument",
    "PointPayload",
    "RawDocument",
    "ResellerKind",
    "ResellerUrl",
    "SearchHit",
    "SearchPage",
    "StoredBook",
    "VectorHit",
]
