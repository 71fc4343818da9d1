"""Custom exception hierarchy for Bilbo.

All application exceptions inherit from :class:`BilboError`, which carries
an optional ``provider_name`` so error handlers can tell which collaborator
(e.g. "mistral", "sqlite", "chromadb") caused the failure.

The hierarchy follows the two subsystems it serves:

    BilboError  (base -- catch-all for any bilbo error)
    +-- ParseError            (document front matter missing / malformed)
    +-- StorageError          (metadata store read or write failure)
    +-- VectorIndexError      (vector store failure)
    +-- EmbeddingUnavailable  (no embedding provider configured)
    +-- EmbeddingFailed       (embedding call failed)
    +-- GenerationFailed      (text generation failed or not configured)
    +-- NoUserMessage         (chat history holds no user turn)
    +-- ConfigurationError    (startup / invalid config)

``VectorIndexError`` is named so it never shadows the builtin ``IndexError``.
"""

from __future__ import annotations

from enum import Enum


class BilboError(Exception):
    """Base exception for all Bilbo errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[mistral] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion input errors
# ---------------------------------------------------------------------------

class ParseErrorKind(str, Enum):
    """Why a raw document could not be parsed."""

    MISSING_METADATA = "missing-metadata"
    MALFORMED_METADATA = "malformed-metadata"
    INVALID_ENCODING = "invalid-encoding"


class ParseError(BilboError):
    """Raised when a document's metadata block is absent or invalid.

    Aborts ingestion of that one document only.
    """

    def __init__(
        self,
        message: str = "Document could not be parsed",
        kind: ParseErrorKind = ParseErrorKind.MALFORMED_METADATA,
    ) -> None:
        super().__init__(message=message, provider_name=None)
        self._kind = kind

    @property
    def kind(self) -> ParseErrorKind:
        return self._kind

    def __str__(self) -> str:
        return f"{self._kind.value}: {self.message}"


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class StorageError(BilboError):
    """Raised when the metadata store fails to read or write."""

    def __init__(
        self,
        message: str = "Metadata store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorIndexError(BilboError):
    """Raised when the vector store fails.

    During ingestion the metadata write has already been committed when
    this fires; it is not rolled back.
    """

    def __init__(
        self,
        message: str = "Vector index operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------

class EmbeddingUnavailable(BilboError):
    """Raised when an embedding is required but no provider key is configured."""

    def __init__(
        self,
        message: str = "No embedding provider is configured",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingFailed(BilboError):
    """Raised when an embedding API call fails or returns a malformed response."""

    def __init__(
        self,
        message: str = "Embedding call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationFailed(BilboError):
    """Raised when a text-generation call fails.

    Non-fatal for summaries (they degrade to absence), fatal for chat.
    """

    def __init__(
        self,
        message: str = "Text generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Request / configuration errors
# ---------------------------------------------------------------------------

class NoUserMessage(BilboError):
    """Raised when a chat history contains no message authored by the user."""

    def __init__(
        self,
        message: str = "Conversation has no user message",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(BilboError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
