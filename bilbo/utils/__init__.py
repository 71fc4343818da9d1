"""Utility modules for Bilbo.

- **errors** -- Domain exception hierarchy rooted at BilboError.
- **logging** -- structlog setup with console rendering in development and
  JSON in production.
"""

from bilbo.utils.errors import (
    BilboError,
    ConfigurationError,
    EmbeddingFailed,
    EmbeddingUnavailable,
    GenerationFailed,
    NoUserMessage,
    ParseError,
    ParseErrorKind,
    StorageError,
    VectorIndexError,
)
from bilbo.utils.logging import configure_logging

__all__ = [
    "BilboError",
    "ConfigurationError",
    "EmbeddingFailed",
    "EmbeddingUnavailable",
    "GenerationFailed",
    "NoUserMessage",
    "ParseError",
    "ParseErrorKind",
    "StorageError",
    "VectorIndexError",
    "configure_logging",
]
