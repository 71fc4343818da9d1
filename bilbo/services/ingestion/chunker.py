"""Fixed-size overlapping text windows over chapter text.

Windows are measured in characters (Python ``str`` code points, never
bytes).  For a chapter of length ``L`` the windows are::

    [0, W), [W-O, 2W-O), [2(W-O), ...)   clipped to L

with ``W = 2000`` and ``O = 400``; iteration stops at the first window
that reaches the end of the text.  Consecutive windows overlap by exactly
``O`` characters except that the last one may be shorter, and together
they cover every character.  ``chunk_index`` restarts at 0 per chapter and
chapters with empty text produce no chunks.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from bilbo.models.book import Chapter, Chunk

logger = structlog.get_logger(logger_name=__name__)

CHUNK_WINDOW = 2000
CHUNK_OVERLAP = 400


class TextChunker:
    """Splits chapters into overlapping character windows.

    Parameters
    ----------
    window:
        Window length in characters.
    overlap:
        Characters shared by consecutive windows; must be smaller than
        *window*.
    """

    def __init__(self, window: int = CHUNK_WINDOW, overlap: int = CHUNK_OVERLAP) -> None:
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        if not 0 <= overlap < window:
            raise ValueError(f"overlap must be in [0, {window}), got {overlap}")
        self._window = window
        self._overlap = overlap

    @property
    def window(self) -> int:
        return self._window

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk_text(self, text: str) -> list[str]:
        """Return the windows of a single text."""
        windows: list[str] = []
        length = len(text)
        step = self._window - self._overlap
        start = 0
        while start < length:
            end = min(start + self._window, length)
            windows.append(text[start:end])
            if end >= length:
                break
            start += step
        return windows

    def chunk(self, chapters: Iterable[Chapter]) -> list[Chunk]:
        """Return the chunks of every chapter, in chapter order."""
        chunks: list[Chunk] = []
        for chapter in chapters:
            for index, window in enumerate(self.chunk_text(chapter.text)):
                chunks.append(
                    Chunk(
                        chapter_ordinal=chapter.ordinal,
                        chapter_title=chapter.title,
                        chunk_index=index,
                        text=window,
                    )
                )
        logger.debug("chapters_chunked", chunks=len(chunks), window=self._window)
        return chunks
