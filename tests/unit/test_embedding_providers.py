"""Unit tests for the OpenAI-compatible (Mistral) embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from bilbo.config.settings import Settings
from bilbo.providers.embedding.openai_embedding_provider import (
    EMBED_BATCH_LIMIT,
    OpenAIEmbeddingProvider,
)
from bilbo.utils.errors import EmbeddingFailed

_REQUEST = httpx.Request("POST", "https://api.mistral.ai/v1/embeddings")


def _settings(**overrides) -> Settings:
    defaults = {"mistral_api_key": "test-key", "_env_file": None}
    defaults.update(overrides)
    return Settings(**defaults)


def _response(vectors: list[list[float]], indices: list[int] | None = None) -> MagicMock:
    indices = indices if indices is not None else list(range(len(vectors)))
    response = MagicMock()
    response.data = [MagicMock(embedding=v, index=i) for v, i in zip(vectors, indices)]
    response.usage = MagicMock(total_tokens=12)
    return response


def _provider(create: AsyncMock, **overrides) -> OpenAIEmbeddingProvider:
    client = MagicMock()
    client.embeddings.create = create
    return OpenAIEmbeddingProvider(_settings(**overrides), client=client)


class TestConstruction:
    def test_client_built_from_settings(self) -> None:
        with patch(
            "bilbo.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"
        ) as client_cls:
            OpenAIEmbeddingProvider(_settings(llm_timeout_seconds=12.5))

        kwargs = client_cls.call_args.kwargs
        assert kwargs["api_key"] == "test-key"
        assert kwargs["base_url"] == "https://api.mistral.ai/v1"
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"].read == 12.5

    def test_metadata(self) -> None:
        provider = _provider(AsyncMock())
        assert provider.get_provider_name() == "mistral_embedding"
        assert provider.get_dimension() == 1024
        assert provider.is_available() is True

    def test_unavailable_without_key(self) -> None:
        assert _provider(AsyncMock(), mistral_api_key="").is_available() is False


class TestEmbed:
    @pytest.mark.asyncio
    async def test_embed_success(self) -> None:
        create = AsyncMock(return_value=_response([[0.1, 0.2], [0.3, 0.4]]))
        result = await _provider(create).embed(["bonjour", "monde"])

        assert result == [[0.1, 0.2], [0.3, 0.4]]
        create.assert_awaited_once_with(input=["bonjour", "monde"], model="mistral-embed")

    @pytest.mark.asyncio
    async def test_results_reordered_by_index(self) -> None:
        create = AsyncMock(return_value=_response([[2.0], [1.0]], indices=[1, 0]))
        assert await _provider(create).embed(["a", "b"]) == [[1.0], [2.0]]

    @pytest.mark.asyncio
    async def test_batches_of_sixteen(self) -> None:
        texts = [f"t{i}" for i in range(EMBED_BATCH_LIMIT + 4)]
        create = AsyncMock(
            side_effect=[
                _response([[float(i)] for i in range(EMBED_BATCH_LIMIT)]),
                _response([[float(i)] for i in range(4)]),
            ]
        )
        result = await _provider(create).embed(texts)

        assert len(result) == EMBED_BATCH_LIMIT + 4
        sizes = [len(call.kwargs["input"]) for call in create.await_args_list]
        assert sizes == [EMBED_BATCH_LIMIT, 4]

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self) -> None:
        create = AsyncMock()
        assert await _provider(create).embed([]) == []
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        create = AsyncMock(return_value=_response([[0.5, 0.5]]))
        assert await _provider(create).embed_single("x") == [0.5, 0.5]


class TestEmbedFailures:
    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        create = AsyncMock(side_effect=openai.APIError("rate limited", request=_REQUEST, body=None))
        with pytest.raises(EmbeddingFailed) as info:
            await _provider(create).embed(["x"])
        assert info.value.provider_name == "mistral_embedding"
        assert isinstance(info.value.__cause__, openai.APIError)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        create = AsyncMock(side_effect=openai.APITimeoutError(request=_REQUEST))
        with pytest.raises(EmbeddingFailed, match="timed out"):
            await _provider(create).embed(["x"])

    @pytest.mark.asyncio
    async def test_count_mismatch(self) -> None:
        create = AsyncMock(return_value=_response([[0.1]]))
        with pytest.raises(EmbeddingFailed, match="expected 2 embeddings"):
            await _provider(create).embed(["a", "b"])
