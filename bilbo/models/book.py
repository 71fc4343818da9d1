"""Book data models: front-matter metadata, parsed documents, chapters, chunks.

Pydantic v2 models, frozen so values built during one ingestion run cannot
be mutated by a later stage.  :class:`BookMetadata` accepts the loose shapes
YAML front matter produces (dates, bare numbers, a single string where a
list is expected) and normalises them to strings and string lists.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_optional_str(value: Any) -> str | None:
    """Coerce a YAML scalar to a stripped string; blank becomes ``None``."""
    if value is None:
        return None
    text = value.isoformat() if hasattr(value, "isoformat") else str(value)
    text = text.strip()
    return text or None


def _as_str_list(value: Any) -> list[str]:
    """Coerce a YAML scalar or sequence to a list of non-blank strings."""
    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"expected a list of strings, got {type(value).__name__}")
    items: list[str] = []
    for item in value:
        text = _as_optional_str(item)
        if text is not None:
            items.append(text)
    return items


class ResellerKind(str, Enum):
    """Whether a reseller link sells the printed or the digital edition."""

    PAPER = "paper"
    DIGITAL = "digital"


class ResellerUrl(BaseModel):
    """One reseller link for a book."""

    model_config = ConfigDict(frozen=True)

    url: str
    kind: ResellerKind


class BookMetadata(BaseModel):
    """Structured metadata read from a document's front matter.

    Only ``reference`` and ``title`` are required.  Author order is kept
    as written; tags are de-duplicated preserving first occurrence.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    reference: str = Field(min_length=1, description="Stable external book identifier.")
    title: str = Field(min_length=1, description="Book title.")
    authors: list[str] = Field(default_factory=list, description="Authors in credit order.")
    editor: str | None = Field(default=None, description="Publisher / editor name.")
    tags: list[str] = Field(default_factory=list, description="Subject tags.")
    edition_date: str | None = Field(default=None, description="Edition date as written.")
    summary: str | None = None
    introduction: str | None = None
    cover_text: str | None = None
    ean: str | None = None
    isbn: str | None = None
    reseller_paper_urls: list[str] = Field(default_factory=list)
    reseller_digital_urls: list[str] = Field(default_factory=list)

    @field_validator("reference", "title", mode="before")
    @classmethod
    def _required_text(cls, value: Any) -> Any:
        text = _as_optional_str(value)
        return text if text is not None else ""

    @field_validator(
        "editor", "edition_date", "summary", "introduction", "cover_text", "ean", "isbn",
        mode="before",
    )
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        return _as_optional_str(value)

    @field_validator(
        "authors", "tags", "reseller_paper_urls", "reseller_digital_urls", mode="before"
    )
    @classmethod
    def _text_list(cls, value: Any) -> list[str]:
        return list(dict.fromkeys(_as_str_list(value)))

    def reseller_urls(self) -> list[ResellerUrl]:
        """Return every reseller link tagged with its kind."""
        return [
            *(ResellerUrl(url=u, kind=ResellerKind.PAPER) for u in self.reseller_paper_urls),
            *(ResellerUrl(url=u, kind=ResellerKind.DIGITAL) for u in self.reseller_digital_urls),
        ]

    def with_summary(self, summary: str | None) -> BookMetadata:
        """Return a copy carrying *summary*."""
        return self.model_copy(update={"summary": summary})


class ParsedDocument(BaseModel):
    """Metadata, trimmed body text and fingerprint of one raw document."""

    model_config = ConfigDict(frozen=True)

    metadata: BookMetadata
    body: str
    # SHA-256 hex digest of the raw bytes, metadata included.
    fingerprint: str


class Chapter(BaseModel):
    """A heading-delimited section of a book body."""

    model_config = ConfigDict(frozen=True)

    ordinal: int = Field(ge=0)
    title: str | None = None
    text: str = ""


class Chunk(BaseModel):
    """A fixed-size overlapping window of one chapter's text."""

    model_config = ConfigDict(frozen=True)

    chapter_ordinal: int = Field(ge=0)
    chapter_title: str | None = None
    # Restarts at 0 for every chapter.
    chunk_index: int = Field(ge=0)
    text: str


class ChapterSummary(BaseModel):
    """Generated summary of one chapter, stored alongside the book."""

    model_config = ConfigDict(frozen=True)

    chapter_ordinal: int = Field(ge=0)
    title: str | None = None
    summary: str


class StoredBook(BaseModel):
    """Identity and change-detection state of a stored book.

    ``fingerprint`` is ``None`` while a re-ingestion is in progress or
    after one failed before indexing finished.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    reference: str
    fingerprint: str | None = None


class BookSearchResult(BaseModel):
    """One row of a structured (metadata) search."""

    model_config = ConfigDict(frozen=True)

    id: int
    reference: str
    title: str
    authors: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    editor: str | None = None
    edition_date: str | None = None
    summary: str | None = None


class BookDetail(BookSearchResult):
    """Full record of a book, including child collections."""

    introduction: str | None = None
    cover_text: str | None = None
    ean: str | None = None
    isbn: str | None = None
    reseller_urls: list[ResellerUrl] = Field(default_factory=list)
    chapter_summaries: list[ChapterSummary] = Field(default_factory=list)
