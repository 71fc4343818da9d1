"""Chat data models for the retrieval-augmented conversation."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatSource(BaseModel):
    """Citation attached to an assistant answer."""

    model_config = ConfigDict(frozen=True)

    reference: str
    title: str
    # First 200 characters of the cited chunk.
    chunk_text: str


class ChatMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    sources: list[ChatSource] = Field(default_factory=list)

    def as_prompt_message(self) -> dict[str, str]:
        """Return the ``{"role", "content"}`` mapping sent to a provider."""
        return {"role": self.role.value, "content": self.content}


class AssistantMessage(ChatMessage):
    """Generated answer paired with the passages it was grounded on."""

    role: ChatRole = ChatRole.ASSISTANT
