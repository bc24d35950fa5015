"""Base LLM provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from pydantic import BaseModel


class Message(BaseModel):
    """A message in the conversation."""

    role: str  # "system", "user", "assistant"
    content: str = ""


class LLMProvider(ABC):
    """Abstract base for streaming chat providers."""

    def __init__(self, model: str, api_key: str | None = None, base_url: str | None = None) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        temperature: float = 0.0,
    ) -> AsyncIterator[str]:
        """Stream a completion response as text chunks."""
        ...
