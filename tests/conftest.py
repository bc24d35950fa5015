"""Shared test fixtures for codeask."""

from __future__ import annotations

from pathlib import Path

import httpx
import openai
import pytest

from codeask.llm.base import LLMProvider, Message


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project with sources, noise and ignored folders."""
    (tmp_path / "main.py").write_text('''"""Main application entry point."""

from utils import calculate_total


def main():
    total = calculate_total(["widget", "gadget"])
    print(f"Order total: {total}")
    return total


if __name__ == "__main__":
    main()
''')

    (tmp_path / "utils.py").write_text('''"""Utility functions."""

TAX_RATE = 0.08


def calculate_total(items):
    prices = {"widget": 9.99, "gadget": 24.99}
    subtotal = sum(prices.get(item, 0) for item in items)
    return subtotal * (1 + TAX_RATE)
''')

    api_dir = tmp_path / "api"
    api_dir.mkdir()
    (api_dir / "__init__.py").write_text('"""API package."""\n')
    (api_dir / "routes.py").write_text('''"""API routes."""


def health_check():
    return {"status": "ok"}
''')

    (tmp_path / "Dockerfile").write_text("FROM python:3.12-slim\nCOPY . /app\n")
    (tmp_path / "empty.py").write_text("")

    # Noise that must never reach the context
    (tmp_path / "server.log").write_text("GET / 200\n")
    (tmp_path / ".secret").write_text("token=hunter2\n")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n")
    node_modules = tmp_path / "node_modules" / "left-pad"
    node_modules.mkdir(parents=True)
    (node_modules / "index.js").write_text("module.exports = () => {};\n")
    git_dir = tmp_path / ".git"
    git_dir.mkdir()
    (git_dir / "config").write_text("[core]\n")

    (tmp_path / ".gitignore").write_text("generated/\n*.tmp\n")
    generated = tmp_path / "generated"
    generated.mkdir()
    (generated / "schema.py").write_text("SCHEMA = {}\n")
    (tmp_path / "scratch.tmp").write_text("scratch\n")

    return tmp_path


class FakeProvider(LLMProvider):
    """Provider that replays a script, one entry per stream() call.

    Each entry is an exception (raised before any chunk) or a list of
    chunks, in which an exception element is raised mid-stream.
    """

    def __init__(self, script: list) -> None:
        super().__init__(model="fake-model")
        self.script = list(script)
        self.calls: list[list[Message]] = []

    async def stream(self, messages: list[Message], temperature: float = 0.0):
        self.calls.append(messages)
        step = self.script[len(self.calls) - 1]
        if isinstance(step, BaseException):
            raise step
        for chunk in step:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


_REQUEST = httpx.Request("POST", "https://llm.example.test/v1/chat/completions")


def api_error(cls: type[openai.APIStatusError], status: int, code: str | None = None):
    """Build an OpenAI status error as the SDK would raise it."""
    response = httpx.Response(status, request=_REQUEST)
    body = {"message": "boom", "code": code} if code else None
    return cls("boom", response=response, body=body)


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=_REQUEST)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
