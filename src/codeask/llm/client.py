"""Streaming query client with classified retries and exponential backoff.

Each attempt streams the completion, forwarding every chunk to a sink as it
arrives while also buffering it. Only a stream that completes cleanly is
written to the response file. Failures are classified:

- authentication, payment-required and request-too-large fail at once;
- everything else (rate limits, network, 5xx, unknown) is retried after
  ``base_delay_ms * 2 ** attempt`` until ``max_retries`` retries are spent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from codeask.config import LLMConfig
from codeask.llm.base import LLMProvider, Message
from codeask.llm.errors import ErrorKind, classify_error, diagnose, is_fatal

logger = logging.getLogger("codeask.llm")


@dataclass
class QueryResult:
    """Final result of a query."""

    success: bool
    response: str = ""
    attempts: int = 0
    delays_ms: list[int] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    error: str = ""
    diagnosis: str = ""
    exhausted: bool = False  # Gave up after running out of retries
    response_path: Path | None = None


def build_messages(context: str, prompt: str, system_prompt: str | None = None) -> list[Message]:
    """Build the chat messages for a query.

    The rules document, when present, becomes the system message. The user
    message carries the context followed by the request; an empty context
    is left out entirely.
    """
    messages: list[Message] = []
    if system_prompt:
        messages.append(Message(role="system", content=system_prompt))

    if context:
        content = f"Project Context:\n{context}\n\n---\n\nUser Request:\n{prompt}"
    else:
        content = f"User Request:\n{prompt}"
    messages.append(Message(role="user", content=content))
    return messages


class QueryClient:
    """Sends a prompt with project context and persists the streamed answer."""

    def __init__(
        self,
        provider: LLMProvider,
        config: LLMConfig,
        response_path: str | Path,
        sink: Callable[[str], None] | None = None,
        on_retry: Callable[[int, int, ErrorKind, str], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.config = config
        self.response_path = Path(response_path)
        self.sink = sink
        self.on_retry = on_retry
        self._sleep = sleep

    def backoff_ms(self, attempt: int) -> int:
        """Delay before the attempt following failure number ``attempt``."""
        return self.config.base_delay_ms * 2**attempt

    async def _stream_once(self, messages: list[Message]) -> str:
        chunks: list[str] = []
        async for chunk in self.provider.stream(messages, temperature=self.config.temperature):
            if self.sink:
                self.sink(chunk)
            chunks.append(chunk)
        return "".join(chunks)

    async def query(
        self,
        context: str,
        prompt: str,
        system_prompt: str | None = None,
    ) -> QueryResult:
        """Run the query, retrying retryable failures.

        Args:
            context: Serialized project context (may be empty).
            prompt: The user's request.
            system_prompt: Optional rules document for the system role.

        Returns:
            QueryResult describing success, or the failure and its diagnosis.
        """
        messages = build_messages(context, prompt, system_prompt)
        max_retries = self.config.max_retries
        delays: list[int] = []
        attempt = 0

        while True:
            logger.info(
                f"Sending request to model '{self.provider.model}' via {self.config.base_url} "
                f"(attempt {attempt + 1}/{max_retries + 1})"
            )
            try:
                response = await self._stream_once(messages)
            except Exception as e:
                kind = classify_error(e)
                diagnosis = diagnose(kind, e, self.config)
                logger.error(f"LLM API error ({kind.value}): {e}")

                if is_fatal(kind):
                    return QueryResult(
                        success=False,
                        attempts=attempt + 1,
                        delays_ms=delays,
                        error_kind=kind,
                        error=str(e),
                        diagnosis=diagnosis,
                    )

                attempt += 1
                # max_retries counts retries, not attempts: the default of 5 allows 6 attempts
                if attempt > max_retries:
                    return QueryResult(
                        success=False,
                        attempts=attempt,
                        delays_ms=delays,
                        error_kind=kind,
                        error=str(e),
                        diagnosis=f"{diagnosis}\nFailed after {attempt} attempts.",
                        exhausted=True,
                    )

                delay_ms = self.backoff_ms(attempt)
                delays.append(delay_ms)
                logger.warning(f"Retrying in {delay_ms / 1000:g} seconds...")
                if self.on_retry:
                    self.on_retry(attempt, delay_ms, kind, diagnosis)
                await self._sleep(delay_ms / 1000)
                continue

            self.response_path.write_text(response, encoding="utf-8")
            logger.info(f"Full response saved to {self.response_path}")
            return QueryResult(
                success=True,
                response=response,
                attempts=attempt + 1,
                delays_ms=delays,
                response_path=self.response_path,
            )
