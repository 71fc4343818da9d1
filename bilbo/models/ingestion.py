"""Ingestion data models: raw input, per-document state, run report."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RawDocument(BaseModel):
    """Bytes of one source file plus the name it was read from."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="External identifier of the source file.")
    content: bytes


class IngestionState(str, Enum):
    """Per-document pipeline state.

    ``UNSEEN`` -> ``NEW`` | ``UNCHANGED`` | ``CHANGED`` -> ``SUCCEEDED`` | ``FAILED``.
    ``UNCHANGED`` needs no further work and counts as a success.
    """

    UNSEEN = "unseen"
    NEW = "new"
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class IngestionOutcome(BaseModel):
    """Result of running one document through the pipeline."""

    model_config = ConfigDict(frozen=True)

    source: str
    reference: str | None = Field(
        default=None, description="Book reference, once the metadata was parsed."
    )
    state: IngestionState
    previous_state: IngestionState | None = Field(
        default=None,
        description="NEW or CHANGED for documents that went through the write path.",
    )
    document_id: int | None = None
    chunks_indexed: int = Field(default=0, ge=0)
    chapter_summaries: int = Field(default=0, ge=0)
    error: str | None = None
    elapsed: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")

    @property
    def ok(self) -> bool:
        return self.state is not IngestionState.FAILED


class IngestionReport(BaseModel):
    """Outcomes of one directory run, in processing order."""

    model_config = ConfigDict(frozen=True)

    outcomes: list[IngestionOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.state is IngestionState.SUCCEEDED)

    @property
    def unchanged(self) -> int:
        return sum(1 for o in self.outcomes if o.state is IngestionState.UNCHANGED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.state is IngestionState.FAILED)
