"""Bilbo application wiring.

Builds every provider and service once, from :class:`Settings`, and hands
them back as an :class:`AppContext`.  Entry points (the CLIs, tests) receive
that context explicitly; nothing in the package reaches for a module-level
singleton.

Embedding and generation providers exist only when a Mistral API key is
configured.  Without one they are ``None`` and the services fall back to
their degraded behaviour (no points written, no summaries, no semantic
boost, chat unavailable).
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from bilbo.config.settings import Settings
from bilbo.interfaces.book_store_provider import IBookStoreProvider
from bilbo.interfaces.embedding_provider import IEmbeddingProvider
from bilbo.interfaces.llm_provider import ILLMProvider
from bilbo.interfaces.vector_store_provider import IVectorStoreProvider
from bilbo.providers.book_store.sqlite_book_store import SQLiteBookStore
from bilbo.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from bilbo.providers.llm.openai_provider import OpenAILLMProvider
from bilbo.providers.vector_store.chromadb_provider import ChromaDBProvider
from bilbo.services.chat_service import RagChatService
from bilbo.services.ingestion.ingestion_service import IngestionService
from bilbo.services.search_service import HybridSearchService
from bilbo.utils.errors import ConfigurationError
from bilbo.utils.logging import configure_logging

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class AppContext:
    """Every collaborator of a running Bilbo process."""

    settings: Settings
    book_store: IBookStoreProvider
    vector_store: IVectorStoreProvider
    embedding_provider: IEmbeddingProvider | None
    llm: ILLMProvider | None
    ingestion: IngestionService
    search: HybridSearchService
    chat: RagChatService

    async def initialize(self) -> None:
        """Create the metadata schema if it does not exist yet."""
        await self.book_store.initialize()


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(settings: Settings) -> IEmbeddingProvider | None:
    if not settings.has_mistral():
        return None
    return OpenAIEmbeddingProvider(settings=settings)


def _build_llm_provider(settings: Settings) -> ILLMProvider | None:
    if not settings.has_mistral():
        return None
    return OpenAILLMProvider(settings=settings)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_context(
    settings: Settings | None = None,
    *,
    book_store: IBookStoreProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    llm: ILLMProvider | None = None,
) -> AppContext:
    """Construct all providers and services with injected dependencies.

    Parameters
    ----------
    settings:
        Application settings.  Loaded from the environment if not provided.
    book_store, vector_store, embedding_provider, llm:
        Pre-built collaborators that replace the ones derived from
        *settings* (used by tests).

    Returns
    -------
    AppContext
        The assembled context.  Call :meth:`AppContext.initialize` before
        the first request.

    Raises
    ------
    ConfigurationError
        If the default page size exceeds the maximum page size.
    """
    s = settings or Settings()
    configure_logging(log_level=s.log_level, app_env=s.app_env)

    if s.search_default_page_size > s.search_max_page_size:
        raise ConfigurationError(
            f"search_default_page_size ({s.search_default_page_size}) exceeds "
            f"search_max_page_size ({s.search_max_page_size})"
        )

    books = book_store or SQLiteBookStore(db_path=s.database_path)
    vectors = vector_store or ChromaDBProvider(
        persist_directory=s.chromadb_persist_dir,
        collection_name=s.chromadb_collection,
    )
    embedder = embedding_provider or _build_embedding_provider(s)
    generator = llm or _build_llm_provider(s)

    logger.info(
        "context_built",
        book_store=books.get_provider_name(),
        vector_store=vectors.get_provider_name(),
        embedding=embedder.get_provider_name() if embedder else None,
        llm=generator.get_provider_name() if generator else None,
    )

    return AppContext(
        settings=s,
        book_store=books,
        vector_store=vectors,
        embedding_provider=embedder,
        llm=generator,
        ingestion=IngestionService(
            book_store=books,
            vector_store=vectors,
            embedding_provider=embedder,
            llm=generator,
        ),
        search=HybridSearchService(
            book_store=books,
            vector_store=vectors,
            embedding_provider=embedder,
            max_page_size=s.search_max_page_size,
        ),
        chat=RagChatService(
            vector_store=vectors,
            embedding_provider=embedder,
            llm=generator,
        ),
    )
