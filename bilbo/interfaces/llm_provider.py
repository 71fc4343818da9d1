"""Abstract base class for text-generation service providers.

One contract serves the three prompt families: book summaries, chapter
summaries and retrieval-augmented chat answers.  Each call site builds its
own message list; the provider only forwards it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

PromptMessage = dict[str, str]


# Concrete implementation: OpenAILLMProvider (bilbo/providers/llm/)
class ILLMProvider(ABC):
    """Contract for chat-completion services (non-streaming)."""

    @abstractmethod
    async def complete(
        self,
        messages: list[PromptMessage],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a completion for an ordered conversation.

        Parameters
        ----------
        messages:
            Ordered ``{"role": ..., "content": ...}`` mappings where role is
            ``"system"``, ``"user"`` or ``"assistant"``.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on the response length, or ``None`` for the model
            default.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        bilbo.utils.errors.GenerationFailed
            If the API call fails or the response has no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (doesn't verify it works)."""
