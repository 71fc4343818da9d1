"""Public interface definitions for all external collaborators.

Services reach the metadata store, the vector index, and the embedding and
generation providers only through these abstract base classes.  Concrete
adapters live in ``bilbo/providers/`` and are wired once by
:func:`bilbo.main.build_context`; tests inject in-memory fakes instead.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementation (in bilbo/providers/)
    ──────────────────────────────────────────────────────────────────
    IBookStoreProvider     →  SQLiteBookStore
    IVectorStoreProvider   →  ChromaDBProvider
    IEmbeddingProvider     →  OpenAIEmbeddingProvider (Mistral endpoint)
    ILLMProvider           →  OpenAILLMProvider (Mistral endpoint)
"""

from bilbo.interfaces.book_store_provider import IBookStoreProvider
from bilbo.interfaces.embedding_provider import IEmbeddingProvider
from bilbo.interfaces.llm_provider import ILLMProvider, PromptMessage
from bilbo.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IBookStoreProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
    "PromptMessage",
]
