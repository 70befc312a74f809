"""Pytest configuration and fixtures for Huddle tests."""

import asyncio
import os
import random
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from huddle.agents import AgentDescriptor, AgentRegistry, PromptSource
from huddle.config import ConversationConfig, reset_settings
from huddle.errors import APIError
from huddle.models import ChatModel
from huddle.orchestrator import ConversationOrchestrator

DECISION_TOKEN_LIMIT = 50


@dataclass
class FakeCall:
    """One recorded call to FakeChatModel.invoke."""

    agent_id: str
    kind: str  # "decision" or "reply"
    system_prompt: str
    content: str
    temperature: float
    max_output_tokens: int
    session: Optional[str]


class StaticPromptSource(PromptSource):
    """Prompt source whose first line names the agent, so fakes can tell who is speaking."""

    def prompt_for(self, agent_id: str) -> str:
        return f"prompt:{agent_id}"


class FakeChatModel(ChatModel):
    """Scripted chat model for orchestrator tests.

    Decision calls are told apart from reply calls by their small
    output-token limit.
    """

    name = "fake"
    display_name = "Fake"

    def __init__(
        self,
        replies: Optional[dict[str, str]] = None,
        decisions: Optional[dict[str, str]] = None,
        failing: tuple[str, ...] = (),
        decision_error: Optional[Exception] = None,
    ):
        super().__init__(api_key="test-key")
        self.replies = dict(replies or {})
        self.decisions = dict(decisions or {})
        self.failing = set(failing)
        self.decision_error = decision_error
        # Reply calls for these agents block until the event is set
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[FakeCall] = []

    def _default_model_id(self) -> str:
        return "fake-1"

    @property
    def is_available(self) -> bool:
        return True

    async def invoke(
        self,
        system_prompt: str,
        content: str,
        temperature: float,
        max_output_tokens: int,
        session: Optional[str] = None,
    ) -> str:
        agent_id = system_prompt.split("\n", 1)[0].replace("prompt:", "", 1)
        kind = "decision" if max_output_tokens <= DECISION_TOKEN_LIMIT else "reply"
        self.calls.append(
            FakeCall(agent_id, kind, system_prompt, content, temperature, max_output_tokens, session)
        )

        if kind == "decision":
            if self.decision_error is not None:
                raise self.decision_error
            return self.decisions.get(agent_id, "NO")

        if agent_id in self.gates:
            await self.gates[agent_id].wait()
        if agent_id in self.failing:
            raise APIError(f"{agent_id} backend exploded", self.name, 500)
        return self.replies.get(agent_id, f"Reply from {agent_id}")

    def calls_of(self, kind: str, agent_id: Optional[str] = None) -> list[FakeCall]:
        return [
            c for c in self.calls
            if c.kind == kind and (agent_id is None or c.agent_id == agent_id)
        ]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry() -> AgentRegistry:
    """Small roster: a coordinator, three specialists and one unmentionable agent."""
    return AgentRegistry([
        AgentDescriptor("cortex", "Cortex", "Product Owner", is_coordinator=True),
        AgentDescriptor("reviewer", "Rita", "Code Reviewer"),
        AgentDescriptor("qa", "Quinn", "Quality Engineer"),
        AgentDescriptor("dev", "Dana", "Backend Developer"),
        AgentDescriptor("ghost", "Ghost", "Observer", mentionable=False),
    ])


@pytest.fixture
def prompts() -> StaticPromptSource:
    return StaticPromptSource()


@pytest.fixture
def make_client() -> Callable[..., FakeChatModel]:
    """Factory for scripted fake clients; accepts FakeChatModel's arguments."""
    return FakeChatModel


@pytest.fixture
def conversation_config() -> ConversationConfig:
    """Default tunables with the pacing delay switched off."""
    return ConversationConfig(pacing_min_ms=0, pacing_max_ms=0)


@pytest.fixture
def make_orchestrator(
    registry: AgentRegistry,
    prompts: StaticPromptSource,
    conversation_config: ConversationConfig,
) -> Callable[..., ConversationOrchestrator]:
    """Factory building an orchestrator around a given fake client."""

    def _make(
        client: ChatModel,
        config: Optional[ConversationConfig] = None,
        seed: int = 7,
    ) -> ConversationOrchestrator:
        return ConversationOrchestrator(
            client=client,
            registry=registry,
            prompts=prompts,
            config=config or conversation_config,
            rng=random.Random(seed),
        )

    return _make


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables for testing."""
    original = {}
    env_vars = [
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "HUDDLE_ANTHROPIC_API_KEY",
        "HUDDLE_OPENAI_API_KEY",
    ]
    for var in env_vars:
        original[var] = os.environ.pop(var, None)

    reset_settings()

    yield

    for var, value in original.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]

    reset_settings()


@pytest.fixture
def mock_api_keys(clean_env: None) -> Generator[None, None, None]:
    """Set mock API keys for testing."""
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    yield
