"""Agent roster for the conversation.

The roster is static for the life of the process: it is built once from
configuration and every orchestrator reads it, none write to it.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from huddle.config import AgentConfig, Settings
from huddle.errors import InvalidConfigError, UnknownAgentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentDescriptor:
    """An AI persona that can take part in the conversation."""

    id: str
    name: str
    title: str
    mentionable: bool = True
    is_coordinator: bool = False

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``Cortex (Product Owner)``."""
        return f"{self.name} ({self.title})"

    @classmethod
    def from_config(cls, config: AgentConfig) -> "AgentDescriptor":
        return cls(
            id=config.id,
            name=config.name,
            title=config.title,
            mentionable=config.mentionable,
            is_coordinator=config.coordinator,
        )


class AgentRegistry:
    """Lookup table of known agents with exactly one coordinator."""

    def __init__(self, agents: Iterable[AgentDescriptor]):
        self._agents: dict[str, AgentDescriptor] = {}
        for agent in agents:
            if agent.id in self._agents:
                raise InvalidConfigError("agents", agent.id, "duplicate agent id")
            self._agents[agent.id] = agent

        coordinators = [a for a in self._agents.values() if a.is_coordinator]
        if len(coordinators) != 1:
            raise InvalidConfigError(
                "agents",
                [a.id for a in coordinators],
                f"exactly one coordinator required, found {len(coordinators)}",
            )
        self._coordinator = coordinators[0]

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __iter__(self) -> Iterator[AgentDescriptor]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    @property
    def coordinator(self) -> AgentDescriptor:
        return self._coordinator

    @property
    def ids(self) -> list[str]:
        return list(self._agents)

    def get(self, agent_id: str) -> Optional[AgentDescriptor]:
        return self._agents.get(agent_id)

    def require(self, agent_id: str) -> AgentDescriptor:
        """Get an agent or raise UnknownAgentError."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def is_mentionable(self, agent_id: str) -> bool:
        agent = self._agents.get(agent_id)
        return agent is not None and agent.mentionable

    def display_name(self, author: str) -> str:
        """Speaker name used when rendering history lines."""
        if author == "user":
            return "User"
        if author == "system":
            return "System"
        agent = self._agents.get(author)
        return agent.name if agent else author


def create_registry(settings: Settings) -> AgentRegistry:
    """Build the agent registry from settings."""
    registry = AgentRegistry(AgentDescriptor.from_config(a) for a in settings.agents)
    logger.debug(
        f"Loaded {len(registry)} agents, coordinator: {registry.coordinator.id}"
    )
    return registry
