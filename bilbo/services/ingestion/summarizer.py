"""Book and chapter summary generation.

Summaries are a best-effort enrichment: when no generation provider is
configured, or a call fails, the summary is simply absent and ingestion
carries on.  Chapter summaries are requested one at a time, in chapter
order, with the chapter text capped at :data:`CHAPTER_INPUT_LIMIT`
characters; chapters with blank text are skipped without a request.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from bilbo.interfaces.llm_provider import ILLMProvider, PromptMessage
from bilbo.models.book import Chapter, ChapterSummary
from bilbo.utils.errors import GenerationFailed

logger = structlog.get_logger(logger_name=__name__)

BOOK_INPUT_LIMIT = 6000
CHAPTER_INPUT_LIMIT = 4000

_BOOK_SYSTEM_PROMPT = (
    "Tu es un assistant qui rédige des résumés factuels de livres. "
    "Tes résumés doivent être objectifs et concis. "
    "Ne commence jamais par des phrases comme « Voici un résumé », « Ce texte parle de », etc. "
    "Commence directement par le contenu du résumé. "
    "Maximum 5 phrases."
)

_CHAPTER_SYSTEM_PROMPT = (
    "Tu es un assistant qui rédige des résumés factuels de chapitres de livres. "
    "Tes résumés doivent être objectifs et concis. "
    "Ne commence jamais par des phrases comme « Voici un résumé », « Ce chapitre parle de », etc. "
    "Commence directement par le contenu du résumé. "
    "Maximum 3 phrases."
)


def book_summary_messages(body: str) -> list[PromptMessage]:
    """Prompt asking for a five-sentence summary of a book body."""
    return [
        {"role": "system", "content": _BOOK_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                "Résume le texte suivant en français en 5 phrases maximum :\n\n"
                f"{body[:BOOK_INPUT_LIMIT]}"
            ),
        },
    ]


def chapter_summary_messages(chapter: Chapter) -> list[PromptMessage]:
    """Prompt asking for a three-sentence summary of one chapter."""
    label = f'le chapitre "{chapter.title}"' if chapter.title else "ce chapitre"
    return [
        {"role": "system", "content": _CHAPTER_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Résume {label} en 3 phrases maximum en français :\n\n"
                f"{chapter.text[:CHAPTER_INPUT_LIMIT]}"
            ),
        },
    ]


class SummaryGenerator:
    """Requests book and chapter summaries from an optional LLM provider.

    Parameters
    ----------
    llm:
        Generation provider, or ``None`` when generation is not configured.
    """

    def __init__(self, llm: ILLMProvider | None) -> None:
        self._llm = llm

    @property
    def enabled(self) -> bool:
        return self._llm is not None

    async def summarize_book(self, reference: str, body: str) -> str | None:
        """Return a generated summary of *body*, or ``None``."""
        if self._llm is None or not body.strip():
            return None
        try:
            summary = await self._llm.complete(book_summary_messages(body))
        except GenerationFailed as exc:
            logger.warning("book_summary_failed", reference=reference, error=str(exc))
            return None
        return summary.strip() or None

    async def summarize_chapters(
        self, reference: str, chapters: Sequence[Chapter]
    ) -> list[ChapterSummary]:
        """Return one summary per non-empty chapter, in chapter order.

        A failed chapter is logged and left out; the others are kept.
        """
        if self._llm is None:
            return []

        summaries: list[ChapterSummary] = []
        for chapter in chapters:
            if not chapter.text.strip():
                continue
            try:
                text = await self._llm.complete(chapter_summary_messages(chapter))
            except GenerationFailed as exc:
                logger.warning(
                    "chapter_summary_failed",
                    reference=reference,
                    chapter=chapter.ordinal,
                    error=str(exc),
                )
                continue
            if text.strip():
                summaries.append(
                    ChapterSummary(
                        chapter_ordinal=chapter.ordinal,
                        title=chapter.title,
                        summary=text.strip(),
                    )
                )
        return summaries
