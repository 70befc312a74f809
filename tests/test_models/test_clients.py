"""Tests for chat model clients."""

import os
from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from huddle.config import Settings
from huddle.errors import (
    APIError,
    AuthenticationError,
    GenerationError,
    MissingAPIKeyError,
    RateLimitError,
)
from huddle.models import (
    ClaudeClient,
    GPTClient,
    get_client,
    get_client_from_settings,
    with_retry,
)


def _claude_response(text: str = "Hi there", stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def _gpt_response(text: Optional[str] = "Hi there", finish_reason: str = "stop") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(finish_reason=finish_reason, message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


class TestGetClient:
    """Tests for the get_client factory function."""

    def test_get_claude_client(self) -> None:
        client = get_client("anthropic", api_key="test-key")
        assert isinstance(client, ClaudeClient)
        assert client.name == "claude"

    def test_get_gpt_client(self) -> None:
        client = get_client("openai", api_key="test-key")
        assert isinstance(client, GPTClient)
        assert client.name == "gpt"

    def test_get_unknown_client_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider"):
            get_client("gemini")

    def test_custom_model_id_and_retries(self) -> None:
        client = get_client("anthropic", api_key="test", model_id="claude-3-opus", max_retries=1)
        assert client.model_id == "claude-3-opus"
        assert client.max_retries == 1


class TestGetClientFromSettings:
    """Tests for get_client_from_settings."""

    def test_uses_configured_provider(self, clean_env: None) -> None:
        settings = Settings(
            openai_api_key="o-key",
            model={"provider": "openai", "model_id": "gpt-4o-mini", "max_retries": 2},
        )
        client = get_client_from_settings(settings)

        assert isinstance(client, GPTClient)
        assert client.api_key == "o-key"
        assert client.model_id == "gpt-4o-mini"
        assert client.max_retries == 2

    def test_missing_key_raises(self, clean_env: None) -> None:
        with pytest.raises(MissingAPIKeyError):
            get_client_from_settings(Settings())

    def test_missing_key_allowed(self, clean_env: None) -> None:
        client = get_client_from_settings(Settings(), require_key=False)
        assert client.is_available is False


class TestClaudeClient:
    """Tests for ClaudeClient."""

    def test_default_model_id(self) -> None:
        client = ClaudeClient(api_key="test")
        assert "claude" in client.model_id.lower()

    def test_is_available_without_key(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            client = ClaudeClient(api_key=None)
            assert client.is_available is False

    def test_key_from_env(self) -> None:
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "env-key"}, clear=True):
            assert ClaudeClient().api_key == "env-key"

    @pytest.mark.asyncio
    async def test_invoke(self) -> None:
        client = ClaudeClient(api_key="test")
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=_claude_response("Hello!"))
        client._client = sdk

        result = await client.invoke(
            system_prompt="You are Quinn.",
            content="status?",
            temperature=0.7,
            max_output_tokens=4096,
            session="agent_qa_1_abc",
        )

        assert result == "Hello!"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are Quinn."
        assert kwargs["messages"] == [{"role": "user", "content": "status?"}]
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 4096
        assert kwargs["metadata"] == {"user_id": "agent_qa_1_abc"}

    @pytest.mark.asyncio
    async def test_invoke_without_session(self) -> None:
        client = ClaudeClient(api_key="test")
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=_claude_response())
        client._client = sdk

        await client.invoke("sys", "hi", 0.1, 50)

        assert "metadata" not in sdk.messages.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_refusal(self) -> None:
        client = ClaudeClient(api_key="test")
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=_claude_response("", stop_reason="refusal"))
        client._client = sdk

        with pytest.raises(GenerationError):
            await client.invoke("sys", "hi", 0.1, 50)

    @pytest.mark.asyncio
    async def test_no_key_raises(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            client = ClaudeClient(api_key=None)
            with pytest.raises(AuthenticationError):
                await client.invoke("sys", "hi", 0.1, 50)

    @pytest.mark.asyncio
    async def test_sdk_error_mapped_and_retried(self) -> None:
        client = ClaudeClient(api_key="test", max_retries=2)
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(side_effect=RuntimeError("connection reset"))
        client._client = sdk

        with patch("huddle.models.base.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(APIError, match="connection reset"):
                await client.invoke("sys", "hi", 0.1, 50)

        assert sdk.messages.create.await_count == 3


class TestGPTClient:
    """Tests for GPTClient."""

    def test_default_model_id(self) -> None:
        client = GPTClient(api_key="test")
        assert "gpt" in client.model_id.lower()

    def test_display_name(self) -> None:
        assert GPTClient(api_key="test").display_name == "GPT"

    @pytest.mark.asyncio
    async def test_invoke(self) -> None:
        client = GPTClient(api_key="test")
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=_gpt_response("Hello!"))
        client._client = sdk

        result = await client.invoke("You are Quinn.", "status?", 0.7, 4096, session="agent_qa_1_abc")

        assert result == "Hello!"
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "You are Quinn."},
            {"role": "user", "content": "status?"},
        ]
        assert kwargs["max_completion_tokens"] == 4096
        assert kwargs["user"] == "agent_qa_1_abc"

    @pytest.mark.asyncio
    async def test_content_filter(self) -> None:
        client = GPTClient(api_key="test")
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            return_value=_gpt_response(None, finish_reason="content_filter")
        )
        client._client = sdk

        with pytest.raises(GenerationError, match="content filter"):
            await client.invoke("sys", "hi", 0.1, 50)

    @pytest.mark.asyncio
    async def test_no_choices(self) -> None:
        client = GPTClient(api_key="test")
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[], usage=None)
        )
        client._client = sdk

        with pytest.raises(GenerationError, match="no choices"):
            await client.invoke("sys", "hi", 0.1, 50)


class TestWithRetry:
    """Tests for the with_retry decorator."""

    class Flaky:
        def __init__(self, failures: list[Exception], max_retries: int = 3):
            self.failures = list(failures)
            self.max_retries = max_retries
            self.calls = 0

        @with_retry()
        async def run(self) -> str:
            self.calls += 1
            if self.failures:
                raise self.failures.pop(0)
            return "ok"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        flaky = self.Flaky([APIError("503", "fake", 503), RateLimitError("fake")])
        sleep = AsyncMock()

        with patch("huddle.models.base.asyncio.sleep", new=sleep):
            assert await flaky.run() == "ok"

        assert flaky.calls == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_honors_retry_after(self) -> None:
        flaky = self.Flaky([RateLimitError("fake", retry_after=7.5)])
        sleep = AsyncMock()

        with patch("huddle.models.base.asyncio.sleep", new=sleep):
            await flaky.run()

        sleep.assert_awaited_once_with(7.5)

    @pytest.mark.asyncio
    async def test_gives_up(self) -> None:
        flaky = self.Flaky([APIError("boom", "fake")] * 5, max_retries=1)

        with patch("huddle.models.base.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(APIError):
                await flaky.run()

        assert flaky.calls == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self) -> None:
        flaky = self.Flaky([AuthenticationError("fake", "bad key")])

        with patch("huddle.models.base.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(AuthenticationError):
                await flaky.run()

        assert flaky.calls == 1
