"""Factory for creating LLM providers from configuration."""

from __future__ import annotations

from codeask.config import LLMConfig
from codeask.exceptions import LLMError
from codeask.llm.base import LLMProvider


def create_provider(config: LLMConfig) -> LLMProvider:
    """Create an LLM provider from configuration.

    Raises:
        LLMError: If the provider is unknown.
    """
    provider = config.provider.lower()

    if provider in ("openai", "openrouter", "local"):
        from codeask.llm.openai_provider import OpenAIProvider

        return OpenAIProvider(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
        )
    raise LLMError(
        f"Unknown LLM provider: '{provider}'. "
        f"Supported providers: openai, openrouter, local"
    )
