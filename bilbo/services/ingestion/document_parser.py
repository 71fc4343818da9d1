"""Parser for Markdown book files with a YAML front-matter block.

A source file looks like::

    ---
    reference: BK-0042
    title: Le Hobbit
    authors: [J.R.R. Tolkien]
    tags: [fantasy]
    ---
    # Chapitre 1
    ...

The front matter becomes :class:`~bilbo.models.book.BookMetadata`, the rest
of the file (trimmed) becomes the body, and the SHA-256 of the untouched
raw bytes becomes the fingerprint.  Any byte-level edit, metadata included,
therefore changes the fingerprint and triggers re-ingestion.
"""

from __future__ import annotations

import hashlib
import re

import structlog
import yaml
from pydantic import ValidationError

from bilbo.models.book import BookMetadata, ParsedDocument
from bilbo.utils.errors import ParseError, ParseErrorKind

logger = structlog.get_logger(logger_name=__name__)

# Opening fence on the first line, closing fence on its own line.
_FRONT_MATTER = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

_REQUIRED_FIELDS = ("reference", "title")


def fingerprint(raw: bytes) -> str:
    """Return the SHA-256 hex digest of *raw*."""
    return hashlib.sha256(raw).hexdigest()


class DocumentParser:
    """Turns raw document bytes into a :class:`ParsedDocument`.

    Stateless and side-effect free; one instance can be shared.
    """

    def parse(self, raw: bytes) -> ParsedDocument:
        """Parse *raw* into metadata, body and fingerprint.

        Raises
        ------
        ParseError
            ``invalid-encoding`` when *raw* is not UTF-8,
            ``missing-metadata`` when there is no front matter or a required
            field is absent, ``malformed-metadata`` when the YAML does not
            load or does not fit the schema.
        """
        text = self._decode(raw)

        match = _FRONT_MATTER.match(text)
        if match is None:
            raise ParseError("no front-matter block found", kind=ParseErrorKind.MISSING_METADATA)

        data = self._load_yaml(match.group("yaml"))
        metadata = self._build_metadata(data)
        body = text[match.end():].strip()

        return ParsedDocument(metadata=metadata, body=body, fingerprint=fingerprint(raw))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(raw: bytes) -> str:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(
                f"document is not valid UTF-8: {exc}", kind=ParseErrorKind.INVALID_ENCODING
            ) from exc
        return text.removeprefix("\ufeff")

    @staticmethod
    def _load_yaml(block: str) -> dict:
        try:
            data = yaml.safe_load(block)
        except yaml.YAMLError as exc:
            raise ParseError(
                f"front matter is not valid YAML: {exc}", kind=ParseErrorKind.MALFORMED_METADATA
            ) from exc

        if data is None:
            raise ParseError("front-matter block is empty", kind=ParseErrorKind.MISSING_METADATA)
        if not isinstance(data, dict):
            raise ParseError(
                f"front matter must be a mapping, got {type(data).__name__}",
                kind=ParseErrorKind.MALFORMED_METADATA,
            )
        return data

    @staticmethod
    def _build_metadata(data: dict) -> BookMetadata:
        missing = [
            name
            for name in _REQUIRED_FIELDS
            if data.get(name) is None or str(data[name]).strip() == ""
        ]
        if missing:
            raise ParseError(
                f"missing required field(s): {', '.join(missing)}",
                kind=ParseErrorKind.MISSING_METADATA,
            )
        try:
            return BookMetadata.model_validate(data)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ParseError(
                f"invalid front matter: {errors}", kind=ParseErrorKind.MALFORMED_METADATA
            ) from exc
