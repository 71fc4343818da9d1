"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Mistral exposes an OpenAI-compatible ``/v1/embeddings`` endpoint, so the
client only needs Mistral's ``base_url`` and key; the default model is
``mistral-embed`` (1024 dimensions).
"""

from __future__ import annotations

import openai
import structlog

from bilbo.config.settings import Settings
from bilbo.interfaces.embedding_provider import IEmbeddingProvider
from bilbo.utils.errors import EmbeddingFailed

logger = structlog.get_logger(logger_name=__name__)

# Mistral rejects embedding requests with more inputs than this.
EMBED_BATCH_LIMIT = 16

_MODEL_DIMENSIONS: dict[str, int] = {
    "mistral-embed": 1024,
}
_DEFAULT_DIMENSION = 1024


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Splits inputs into requests of at most :data:`EMBED_BATCH_LIMIT` texts,
    sent one after another.  The client is built with ``max_retries=0``:
    a failed request surfaces immediately as :class:`EmbeddingFailed`.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.mistral_api_key
        self._client = client or openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=settings.mistral_base_url,
            timeout=openai.Timeout(settings.llm_timeout_seconds, connect=5.0),
            max_retries=0,
        )
        self._model = settings.embedding_model
        self._dimension = _MODEL_DIMENSIONS.get(self._model, _DEFAULT_DIMENSION)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for *texts*, preserving order."""
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), EMBED_BATCH_LIMIT):
            batch = texts[start : start + EMBED_BATCH_LIMIT]
            try:
                response = await self._client.embeddings.create(input=batch, model=self._model)
            except openai.APITimeoutError as exc:
                raise EmbeddingFailed(
                    message=f"embedding request timed out ({len(batch)} texts)",
                    provider_name=self.get_provider_name(),
                ) from exc
            except openai.APIError as exc:
                raise EmbeddingFailed(
                    message=f"embedding API error: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            if len(response.data) != len(batch):
                raise EmbeddingFailed(
                    message=f"expected {len(batch)} embeddings, got {len(response.data)}",
                    provider_name=self.get_provider_name(),
                )
            # The API tags each vector with its input index.
            ordered = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(list(item.embedding) for item in ordered)
            logger.info(
                "openai_embedding_batch",
                model=self._model,
                batch_size=len(batch),
                tokens=response.usage.total_tokens if response.usage else None,
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mistral_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
