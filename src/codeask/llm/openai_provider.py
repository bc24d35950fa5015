"""OpenAI-compatible chat completions provider."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from codeask.llm.base import LLMProvider, Message

# Attribution headers recommended by OpenRouter; ignored by other endpoints.
DEFAULT_HEADERS = {
    "HTTP-Referer": "https://github.com/codeask/codeask",
    "X-Title": "codeask CLI",
}


class OpenAIProvider(LLMProvider):
    """Provider for OpenAI and OpenAI-compatible APIs (OpenRouter, Ollama, vLLM, etc.)."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        base_url: str | None = None,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(model, api_key, base_url)
        self.default_headers = DEFAULT_HEADERS if default_headers is None else default_headers
        self._async_client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if self._async_client is None:
            kwargs: dict[str, Any] = {"default_headers": self.default_headers}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url
            # Retries are handled by QueryClient with its own backoff.
            kwargs["max_retries"] = 0
            self._async_client = AsyncOpenAI(**kwargs)
        return self._async_client

    def _format_messages(self, messages: list[Message]) -> list[dict]:
        """Convert our Message format to OpenAI's format."""
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.0,
    ) -> AsyncIterator[str]:
        client = self._get_client()
        stream = await client.chat.completions.create(
            model=self.model,
            messages=self._format_messages(messages),
            temperature=temperature,
            stream=True,
        )
        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content
