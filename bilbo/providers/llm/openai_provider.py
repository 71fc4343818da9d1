"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Mistral's chat completions endpoint speaks the OpenAI wire format, so the
official SDK pointed at ``https://api.mistral.ai/v1`` is all that's needed.
Completions are non-streaming.
"""

from __future__ import annotations

import openai
import structlog

from bilbo.config.settings import Settings
from bilbo.interfaces.llm_provider import ILLMProvider, PromptMessage
from bilbo.utils.errors import GenerationFailed

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``mistral-small-latest`` by default.  The client has a per-call
    timeout from settings and never retries; retry policy belongs to the
    caller.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.mistral_api_key
        self._timeout = settings.llm_timeout_seconds
        self._client = client or openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=settings.mistral_base_url,
            timeout=openai.Timeout(self._timeout, connect=5.0),
            max_retries=0,
        )
        self._model = settings.chat_model

    async def complete(
        self,
        messages: list[PromptMessage],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a completion for *messages* via the chat API."""
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            raise GenerationFailed(
                message=f"completion timed out after {self._timeout:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise GenerationFailed(
                message=f"completion API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationFailed(
                message="completion returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._model,
            messages=len(messages),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def get_provider_name(self) -> str:
        return "mistral"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)
