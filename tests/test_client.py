"""Tests for the streaming query client and error classification."""

from __future__ import annotations

from pathlib import Path

import openai
import pytest

from codeask.config import LLMConfig
from codeask.exceptions import LLMError
from codeask.llm.client import QueryClient, build_messages
from codeask.llm.errors import ErrorKind, classify_error, diagnose, is_fatal
from codeask.llm.factory import create_provider
from codeask.llm.openai_provider import OpenAIProvider
from conftest import FakeProvider, SleepRecorder, api_error, connection_error


def _client(
    provider: FakeProvider,
    tmp_path: Path,
    sleep: SleepRecorder,
    sink: list[str] | None = None,
    **config,
) -> QueryClient:
    config.setdefault("max_retries", 3)
    config.setdefault("base_delay_ms", 1000)
    return QueryClient(
        provider,
        LLMConfig(**config),
        tmp_path / "response.md",
        sink=sink.append if sink is not None else None,
        sleep=sleep,
    )


class TestBuildMessages:
    def test_with_system_prompt(self):
        messages = build_messages("CTX", "Why?", "Be brief.")
        assert [m.role for m in messages] == ["system", "user"]
        assert messages[0].content == "Be brief."
        assert messages[1].content == "Project Context:\nCTX\n\n---\n\nUser Request:\nWhy?"

    def test_without_system_prompt(self):
        messages = build_messages("CTX", "Why?")
        assert [m.role for m in messages] == ["user"]

    def test_empty_context_is_omitted(self):
        messages = build_messages("", "Why?", None)
        assert messages[0].content == "User Request:\nWhy?"


class TestClassifyError:
    def test_authentication(self):
        assert classify_error(api_error(openai.AuthenticationError, 401)) is ErrorKind.AUTHENTICATION

    def test_payment_required(self):
        assert classify_error(api_error(openai.APIStatusError, 402)) is ErrorKind.PAYMENT_REQUIRED

    def test_context_length(self):
        err = api_error(openai.BadRequestError, 400, code="context_length_exceeded")
        assert classify_error(err) is ErrorKind.REQUEST_TOO_LARGE

    def test_payload_too_large(self):
        assert classify_error(api_error(openai.APIStatusError, 413)) is ErrorKind.REQUEST_TOO_LARGE

    def test_plain_bad_request_is_unknown(self):
        assert classify_error(api_error(openai.BadRequestError, 400)) is ErrorKind.UNKNOWN

    def test_rate_limited(self):
        assert classify_error(api_error(openai.RateLimitError, 429)) is ErrorKind.RATE_LIMITED

    def test_server_error(self):
        assert classify_error(api_error(openai.InternalServerError, 503)) is ErrorKind.SERVER

    def test_network(self):
        assert classify_error(connection_error()) is ErrorKind.NETWORK
        assert classify_error(ConnectionResetError()) is ErrorKind.NETWORK

    def test_unclassified(self):
        assert classify_error(RuntimeError("weird")) is ErrorKind.UNKNOWN

    def test_fatal_kinds(self):
        assert is_fatal(ErrorKind.AUTHENTICATION)
        assert is_fatal(ErrorKind.PAYMENT_REQUIRED)
        assert is_fatal(ErrorKind.REQUEST_TOO_LARGE)
        assert not is_fatal(ErrorKind.RATE_LIMITED)
        assert not is_fatal(ErrorKind.NETWORK)
        assert not is_fatal(ErrorKind.UNKNOWN)

    def test_diagnosis_mentions_remediation(self):
        config = LLMConfig()
        text = diagnose(ErrorKind.AUTHENTICATION, RuntimeError(), config)
        assert config.api_key_env in text
        assert "excluding more files" in diagnose(ErrorKind.REQUEST_TOO_LARGE, RuntimeError(), config)


class TestQueryClient:
    @pytest.mark.asyncio
    async def test_success_streams_and_persists(self, tmp_path: Path, sleep_recorder):
        provider = FakeProvider([["Hello", ", ", "world"]])
        sink: list[str] = []
        client = _client(provider, tmp_path, sleep_recorder, sink)

        result = await client.query("CTX", "Greet me", "Be nice.")

        assert result.success
        assert result.attempts == 1
        assert result.response == "Hello, world"
        assert sink == ["Hello", ", ", "world"]
        assert (tmp_path / "response.md").read_text() == "Hello, world"
        assert result.response_path == tmp_path / "response.md"
        assert sleep_recorder.calls == []
        assert provider.calls[0][0].role == "system"

    @pytest.mark.asyncio
    async def test_response_file_is_overwritten(self, tmp_path: Path, sleep_recorder):
        (tmp_path / "response.md").write_text("old answer that is much longer")
        client = _client(FakeProvider([["new"]]), tmp_path, sleep_recorder)

        await client.query("", "q")

        assert (tmp_path / "response.md").read_text() == "new"

    @pytest.mark.asyncio
    async def test_rate_limit_backoff_then_success(self, tmp_path: Path, sleep_recorder):
        rate_limited = [api_error(openai.RateLimitError, 429) for _ in range(3)]
        provider = FakeProvider([*rate_limited, ["done"]])
        client = _client(provider, tmp_path, sleep_recorder, max_retries=3, base_delay_ms=1000)

        result = await client.query("CTX", "q")

        assert result.success
        assert result.attempts == 4
        assert result.delays_ms == [2000, 4000, 8000]
        assert sleep_recorder.calls == [2.0, 4.0, 8.0]
        assert len(provider.calls) == 4
        assert result.response == "done"

    @pytest.mark.asyncio
    async def test_authentication_failure_is_fatal(self, tmp_path: Path, sleep_recorder):
        provider = FakeProvider([api_error(openai.AuthenticationError, 401), ["unreachable"]])
        client = _client(provider, tmp_path, sleep_recorder)

        result = await client.query("CTX", "q")

        assert not result.success
        assert result.error_kind is ErrorKind.AUTHENTICATION
        assert result.attempts == 1
        assert len(provider.calls) == 1
        assert sleep_recorder.calls == []
        assert not result.exhausted
        assert "Authentication failed" in result.diagnosis
        assert not (tmp_path / "response.md").exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            api_error(openai.APIStatusError, 402),
            api_error(openai.BadRequestError, 400, code="context_length_exceeded"),
        ],
    )
    async def test_other_fatal_errors(self, tmp_path: Path, sleep_recorder, error):
        provider = FakeProvider([error])
        result = await _client(provider, tmp_path, sleep_recorder).query("CTX", "q")

        assert not result.success
        assert result.attempts == 1
        assert sleep_recorder.calls == []

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, tmp_path: Path, sleep_recorder):
        provider = FakeProvider([connection_error() for _ in range(3)])
        client = _client(provider, tmp_path, sleep_recorder, max_retries=2, base_delay_ms=100)

        result = await client.query("CTX", "q")

        assert not result.success
        assert result.exhausted
        assert result.error_kind is ErrorKind.NETWORK
        assert result.attempts == 3
        assert result.delays_ms == [200, 400]
        assert "Failed after 3 attempts" in result.diagnosis
        assert not (tmp_path / "response.md").exists()

    @pytest.mark.asyncio
    async def test_unclassified_errors_are_retried(self, tmp_path: Path, sleep_recorder):
        provider = FakeProvider([RuntimeError("stream hiccup"), ["ok"]])
        result = await _client(provider, tmp_path, sleep_recorder).query("CTX", "q")

        assert result.success
        assert result.attempts == 2
        assert sleep_recorder.calls == [2.0]

    @pytest.mark.asyncio
    async def test_mid_stream_failure_discards_partial_buffer(self, tmp_path: Path, sleep_recorder):
        provider = FakeProvider([["par", api_error(openai.InternalServerError, 500)], ["full answer"]])
        sink: list[str] = []
        client = _client(provider, tmp_path, sleep_recorder, sink)

        result = await client.query("CTX", "q")

        assert result.success
        assert sink == ["par", "full answer"]
        assert result.response == "full answer"
        assert (tmp_path / "response.md").read_text() == "full answer"

    @pytest.mark.asyncio
    async def test_on_retry_callback(self, tmp_path: Path, sleep_recorder):
        seen = []
        provider = FakeProvider([api_error(openai.RateLimitError, 429), ["ok"]])
        client = QueryClient(
            provider,
            LLMConfig(max_retries=1, base_delay_ms=50),
            tmp_path / "response.md",
            on_retry=lambda attempt, delay, kind, diagnosis: seen.append((attempt, delay, kind)),
            sleep=sleep_recorder,
        )

        await client.query("", "q")

        assert seen == [(1, 100, ErrorKind.RATE_LIMITED)]

    def test_backoff_formula(self, tmp_path: Path, sleep_recorder):
        client = _client(FakeProvider([]), tmp_path, sleep_recorder, base_delay_ms=250)
        assert [client.backoff_ms(n) for n in (1, 2, 3)] == [500, 1000, 2000]


class TestProviderFactory:
    def test_openai_compatible_providers(self):
        for name in ("openai", "openrouter", "local"):
            provider = create_provider(LLMConfig(provider=name, model="m"))
            assert isinstance(provider, OpenAIProvider)
            assert provider.model == "m"

    def test_unknown_provider(self):
        with pytest.raises(LLMError, match="Unknown LLM provider"):
            create_provider(LLMConfig(provider="carrier-pigeon"))

    def test_sdk_retries_disabled(self):
        provider = OpenAIProvider(model="m", api_key="sk-test", base_url="http://localhost:1/v1")
        client = provider._get_client()
        assert client.max_retries == 0
        assert provider._get_client() is client
        assert provider._format_messages(build_messages("", "q", "sys")) == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "User Request:\nq"},
        ]
