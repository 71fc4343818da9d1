"""Heading-based chapter segmentation of a Markdown body.

Walks the markdown-it token stream of a book body and starts a new chapter
at every level-1 or level-2 heading (ATX ``#``/``##`` or setext).  Deeper
headings are ordinary body text.  Normalisation rules for chapter text:

- inline text runs are joined with a single space,
- soft and hard line breaks become a single ``\\n``,
- code spans, code blocks and image alt text count as text runs,
- leading/trailing whitespace of each chapter is trimmed.

A chapter is kept when it has body text **or** a heading opened it, so a
heading with nothing underneath still yields an (empty) chapter.  When the
walk yields nothing at all, the whole body becomes one untitled chapter.
"""

from __future__ import annotations

from markdown_it import MarkdownIt
from markdown_it.token import Token

from bilbo.models.book import Chapter

_CHAPTER_HEADINGS = frozenset({"h1", "h2"})
_BREAKS = frozenset({"softbreak", "hardbreak"})


class _ChapterBuffer:
    """Accumulates one chapter while tokens are walked."""

    def __init__(self, opened_by_heading: bool = False) -> None:
        self.opened_by_heading = opened_by_heading
        self.title_parts: list[str] = []
        self._text = ""

    def add_run(self, run: str) -> None:
        run = run.strip(" \t")
        if not run:
            return
        if self._text and not self._text[-1].isspace():
            self._text += " "
        self._text += run

    def add_break(self) -> None:
        self._text = self._text.rstrip(" \t") + "\n"

    @property
    def text(self) -> str:
        return self._text.strip()

    @property
    def title(self) -> str | None:
        title = " ".join(part.strip() for part in self.title_parts if part.strip())
        return title or None

    def is_worth_keeping(self) -> bool:
        return self.opened_by_heading or bool(self.text)


class ChapterSegmenter:
    """Splits a Markdown body into ordered :class:`Chapter` objects."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark")

    def segment(self, body: str) -> list[Chapter]:
        """Return the chapters of *body*, ordinals starting at 0."""
        buffers: list[_ChapterBuffer] = []
        current = _ChapterBuffer()
        in_heading = False

        for token in self._md.parse(body):
            if token.type == "heading_open" and token.tag in _CHAPTER_HEADINGS:
                if current.is_worth_keeping():
                    buffers.append(current)
                current = _ChapterBuffer(opened_by_heading=True)
                in_heading = True
            elif token.type == "heading_close" and in_heading:
                in_heading = False
            elif token.type == "inline":
                if in_heading:
                    current.title_parts.extend(self._inline_runs(token))
                else:
                    self._feed_inline(current, token)
            elif token.type in ("fence", "code_block"):
                current.add_run(token.content.rstrip("\n"))

        if current.is_worth_keeping():
            buffers.append(current)

        if not buffers:
            return [Chapter(ordinal=0, title=None, text=body)]

        return [
            Chapter(ordinal=ordinal, title=buffer.title, text=buffer.text)
            for ordinal, buffer in enumerate(buffers)
        ]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _feed_inline(buffer: _ChapterBuffer, token: Token) -> None:
        for child in token.children or []:
            if child.type in _BREAKS:
                buffer.add_break()
            elif child.type in ("text", "code_inline", "image"):
                buffer.add_run(child.content)

    @staticmethod
    def _inline_runs(token: Token) -> list[str]:
        return [
            child.content
            for child in token.children or []
            if child.type in ("text", "code_inline", "image")
        ]
