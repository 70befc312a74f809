"""Tests for the command line interface."""

import io
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console
from typer.testing import CliRunner

from huddle import __version__
from huddle.cli import (
    agent_color,
    agents_table,
    app,
    build_completer,
    chat_loop,
    handle_command,
    render_event,
)
from huddle.orchestrator import ConversationEvent, ConversationMessage

runner = CliRunner()


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120, color_system=None), buffer


@pytest.fixture
def config_file(temp_dir: Path) -> Path:
    path = temp_dir / "config.yaml"
    path.write_text(
        """
model:
  provider: anthropic
conversation:
  recency_limit: 3
""",
        encoding="utf-8",
    )
    return path


class TestRenderEvent:
    """Tests for render_event."""

    def test_agent_message_panel(self, registry) -> None:
        out, buffer = _console()
        message = ConversationMessage.create("qa", "All tests **pass**")

        render_event(ConversationEvent.message_event(message), registry, out)

        text = buffer.getvalue()
        assert "Quinn (Quality Engineer)" in text
        assert "All tests" in text

    def test_user_message_not_echoed(self, registry) -> None:
        out, buffer = _console()
        render_event(
            ConversationEvent.message_event(ConversationMessage.create("user", "typed text")),
            registry,
            out,
        )
        assert buffer.getvalue() == ""

    def test_system_notice(self, registry) -> None:
        out, buffer = _console()
        render_event(
            ConversationEvent.message_event(ConversationMessage.system("Dana has joined the conversation")),
            registry,
            out,
        )
        assert "Dana has joined the conversation" in buffer.getvalue()

    def test_error(self, registry) -> None:
        out, buffer = _console()
        render_event(ConversationEvent.error_event("qa", "[API_ERROR] boom"), registry, out)
        assert "qa could not reply: [API_ERROR] boom" in buffer.getvalue()

    def test_joined(self, registry) -> None:
        out, buffer = _console()
        render_event(ConversationEvent.agent_joined("dev"), registry, out)
        assert "@dev is now in the conversation" in buffer.getvalue()


class TestHelpers:
    """Tests for table, color and completion helpers."""

    def test_agent_color_stable(self, registry) -> None:
        assert agent_color(registry, "qa") == agent_color(registry, "qa")
        assert agent_color(registry, "cortex") != agent_color(registry, "qa")
        assert agent_color(registry, "nobody") == "white"

    def test_agents_table(self, registry) -> None:
        out, buffer = _console()
        out.print(agents_table(registry, active=["cortex", "qa"]))

        text = buffer.getvalue()
        assert "coordinator" in text
        assert "Quinn" in text
        assert "Active" in text

    def test_completer_words(self, registry) -> None:
        completer = build_completer(registry)
        assert "@qa" in completer.words
        assert "/invite" in completer.words


class TestHandleCommand:
    """Tests for slash commands."""

    @pytest.mark.asyncio
    async def test_quit(self, make_client, make_orchestrator) -> None:
        out, _ = _console()
        orchestrator = make_orchestrator(make_client())

        assert await handle_command(orchestrator, "/quit", out) is False
        assert await handle_command(orchestrator, "/EXIT", out) is False

    @pytest.mark.asyncio
    async def test_invite_and_remove(self, make_client, make_orchestrator) -> None:
        out, buffer = _console()
        orchestrator = make_orchestrator(make_client())
        await orchestrator.start_conversation("Hello")

        assert await handle_command(orchestrator, "/invite @dev qa", out) is True
        assert orchestrator.current_active_agents() == ["cortex", "dev", "qa"]

        await handle_command(orchestrator, "/invite dev", out)
        assert "@dev is already in the conversation." in buffer.getvalue()

        await handle_command(orchestrator, "/remove dev", out)
        assert orchestrator.current_active_agents() == ["cortex", "qa"]

    @pytest.mark.asyncio
    async def test_errors_are_printed(self, make_client, make_orchestrator) -> None:
        out, buffer = _console()
        orchestrator = make_orchestrator(make_client())
        await orchestrator.start_conversation("Hello")

        assert await handle_command(orchestrator, "/remove cortex", out) is True
        assert await handle_command(orchestrator, "/invite nobody", out) is True

        text = buffer.getvalue()
        assert "Cannot remove coordinator 'cortex'" in text
        assert "Agent 'nobody' not found" in text

    @pytest.mark.asyncio
    async def test_reset(self, make_client, make_orchestrator) -> None:
        out, _ = _console()
        orchestrator = make_orchestrator(make_client())
        await orchestrator.start_conversation("Hello")

        await handle_command(orchestrator, "/reset", out)

        assert orchestrator.is_active is False
        assert orchestrator.get_conversation_history() == []

    @pytest.mark.asyncio
    async def test_unknown_and_usage(self, make_client, make_orchestrator) -> None:
        out, buffer = _console()
        orchestrator = make_orchestrator(make_client())

        await handle_command(orchestrator, "/dance", out)
        await handle_command(orchestrator, "/invite", out)

        text = buffer.getvalue()
        assert "Unknown command: /dance" in text
        assert "Usage: /invite" in text


class TestChatLoop:
    """Tests for the interactive loop with a scripted prompt session."""

    @pytest.mark.asyncio
    async def test_first_line_starts_conversation(self, make_client, make_orchestrator) -> None:
        orchestrator = make_orchestrator(make_client())
        session = MagicMock()
        session.prompt_async = AsyncMock(side_effect=["Hello", "", "/agents", "Can you help?", EOFError()])

        await chat_loop(orchestrator, session=session)

        authors = [m.author for m in orchestrator.get_conversation_history()]
        assert authors == ["user", "cortex", "user", "cortex"]
        assert len(orchestrator.bus._handlers) == 0

    @pytest.mark.asyncio
    async def test_quit_command_ends_loop(self, make_client, make_orchestrator) -> None:
        orchestrator = make_orchestrator(make_client())
        session = MagicMock()
        session.prompt_async = AsyncMock(side_effect=["/quit", "Hello"])

        await chat_loop(orchestrator, session=session)

        assert orchestrator.get_conversation_history() == []


class TestCommands:
    """Tests for the typer commands."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_agents(self, clean_env, config_file: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "agents"])

        assert result.exit_code == 0
        assert "cortex" in result.stdout
        assert "quill" in result.stdout

    def test_config(self, clean_env, config_file: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "config"])

        assert result.exit_code == 0
        assert "Not set" in result.stdout
        assert "Recency throttle: 3 of last 3" in result.stdout
