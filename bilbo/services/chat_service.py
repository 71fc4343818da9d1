"""Retrieval-augmented chat over the indexed books.

Data flow for one answer:

  1. FIND QUESTION  -- the most recent user message in the history.
  2. EMBED          -- embed that message (requires a configured provider).
  3. RETRIEVE       -- unfiltered nearest-neighbour search, top
                       :data:`RAG_TOP_K` chunks.
  4. CONTEXT        -- numbered ``[Source i: title - reference]`` sections,
                       one per chunk, in retrieval order.
  5. GENERATE       -- system preamble (librarian instructions + context)
                       followed by the full history, sent as one request.

The answer comes back paired with one citation per retrieved chunk (chunk
text cut to :data:`CITATION_LENGTH` characters).  Every failure is raised
to the caller as a typed error; nothing is retried.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from bilbo.interfaces.llm_provider import PromptMessage
from bilbo.models.chat import AssistantMessage, ChatMessage, ChatRole, ChatSource
from bilbo.models.search import VectorHit
from bilbo.utils.errors import EmbeddingUnavailable, GenerationFailed, NoUserMessage

if TYPE_CHECKING:
    from bilbo.interfaces.embedding_provider import IEmbeddingProvider
    from bilbo.interfaces.llm_provider import ILLMProvider
    from bilbo.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

RAG_TOP_K = 5
CITATION_LENGTH = 200

_SYSTEM_PROMPT = (
    "Tu es un assistant bibliothécaire. Réponds aux questions en te basant sur les "
    "extraits de livres suivants. Cite tes sources quand c'est pertinent. Si tu ne "
    "trouves pas la réponse dans les extraits, dis-le.\n\n"
    "Extraits :\n{context}"
)


def format_context(hits: Sequence[VectorHit]) -> str:
    """Return the numbered context block for *hits*."""
    return "\n".join(
        f"[Source {i}: {hit.title} - {hit.reference}]\n{hit.chunk_text}\n"
        for i, hit in enumerate(hits, start=1)
    )


def build_sources(hits: Sequence[VectorHit]) -> list[ChatSource]:
    """Return one citation per hit, chunk text cut to :data:`CITATION_LENGTH` characters."""
    return [
        ChatSource(reference=hit.reference, title=hit.title, chunk_text=hit.chunk_text[:CITATION_LENGTH])
        for hit in hits
    ]


def last_user_message(history: Sequence[ChatMessage]) -> ChatMessage:
    """Return the most recent user message of *history*.

    Raises
    ------
    NoUserMessage
        If no message in *history* was authored by the user.
    """
    for message in reversed(history):
        if message.role is ChatRole.USER:
            return message
    raise NoUserMessage()


class RagChatService:
    """Answers conversation turns from retrieved book passages.

    Parameters
    ----------
    vector_store:
        Chunk index searched for context.
    embedding_provider:
        Optional; ``None`` makes every call fail with
        :class:`EmbeddingUnavailable`.
    llm:
        Optional; ``None`` makes every call fail with
        :class:`GenerationFailed` after retrieval.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider | None = None,
        llm: ILLMProvider | None = None,
    ) -> None:
        self._vector_store = vector_store
        self._embedding_provider = embedding_provider
        self._llm = llm

    async def build_answer(self, history: Sequence[ChatMessage]) -> AssistantMessage:
        """Generate the assistant's reply to *history*.

        Raises
        ------
        NoUserMessage
            The history holds no user message.
        EmbeddingUnavailable
            No embedding provider is configured.
        EmbeddingFailed
            The question could not be embedded.
        bilbo.utils.errors.VectorIndexError
            The nearest-neighbour search failed.
        GenerationFailed
            No generation provider is configured, or the call failed.
        """
        question = last_user_message(history)

        if self._embedding_provider is None:
            raise EmbeddingUnavailable()
        vector = await self._embedding_provider.embed_single(question.content)
        hits = await self._vector_store.search(vector, limit=RAG_TOP_K)

        if self._llm is None:
            raise GenerationFailed(message="No generation provider is configured")

        messages: list[PromptMessage] = [
            {"role": "system", "content": _SYSTEM_PROMPT.format(context=format_context(hits))}
        ]
        messages.extend(message.as_prompt_message() for message in history)
        answer = await self._llm.complete(messages)

        logger.info(
            "rag_answer",
            history_length=len(history),
            question_length=len(question.content),
            sources=len(hits),
            answer_length=len(answer),
        )
        return AssistantMessage(content=answer, sources=build_sources(hits))
