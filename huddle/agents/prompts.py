"""System prompts for each agent.

Resolution order for an agent's prompt:
1. Inline ``prompt`` from the agent's configuration entry
2. ``<prompts_dir>/<agent_id>.prompt`` on disk
3. A persona prompt generated from the agent's name and title
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from huddle.config import Settings

from .registry import AgentRegistry

logger = logging.getLogger(__name__)

PROMPT_SUFFIX = ".prompt"

PERSONA_PROMPT_TEMPLATE = """You are {name}, the {title} of a software team working in a shared group chat with a human user.

TEAM:
{team}

YOUR ROLE:
- Speak from your expertise as {title}
- Add new, concrete value; never restate what a teammate already said
- Disagree clearly when warranted, with reasons
- Keep replies short and actionable

COLLABORATION:
- Mention a teammate with @id to bring them into the conversation
- Only mention someone when their expertise is actually needed"""

COORDINATOR_ADDENDUM = """

AS COORDINATOR:
- Greet the user and keep the team focused on their goal
- Route questions to the right teammate with @id
- Summarize progress when the discussion drifts"""


class PromptSource(ABC):
    """Provides the system prompt for an agent."""

    @abstractmethod
    def prompt_for(self, agent_id: str) -> str:
        """Get the system prompt for an agent."""
        ...


class DefaultPromptSource(PromptSource):
    """Prompt source backed by configuration, prompt files and personas."""

    def __init__(
        self,
        registry: AgentRegistry,
        overrides: Optional[dict[str, str]] = None,
        prompts_dir: Optional[Path] = None,
    ):
        self.registry = registry
        self.overrides = dict(overrides or {})
        self.prompts_dir = prompts_dir
        self._cache: dict[str, str] = {}

    def prompt_for(self, agent_id: str) -> str:
        if agent_id in self._cache:
            return self._cache[agent_id]

        prompt = self.overrides.get(agent_id) or self._load_file(agent_id)
        if not prompt:
            prompt = self._persona_prompt(agent_id)

        self._cache[agent_id] = prompt
        return prompt

    def _load_file(self, agent_id: str) -> Optional[str]:
        if self.prompts_dir is None:
            return None
        path = self.prompts_dir / f"{agent_id}{PROMPT_SUFFIX}"
        if not path.is_file():
            return None
        logger.debug(f"Loading prompt for {agent_id} from {path}")
        return path.read_text(encoding="utf-8").strip() or None

    def _persona_prompt(self, agent_id: str) -> str:
        agent = self.registry.require(agent_id)
        team = "\n".join(
            f"- @{a.id}: {a.label}" for a in self.registry if a.id != agent_id
        )
        prompt = PERSONA_PROMPT_TEMPLATE.format(
            name=agent.name,
            title=agent.title,
            team=team or "- (no teammates)",
        )
        if agent.is_coordinator:
            prompt += COORDINATOR_ADDENDUM
        return prompt


def create_prompt_source(settings: Settings, registry: AgentRegistry) -> DefaultPromptSource:
    """Build the prompt source from settings."""
    overrides = {a.id: a.prompt for a in settings.agents if a.prompt}
    return DefaultPromptSource(
        registry=registry,
        overrides=overrides,
        prompts_dir=settings.resolved_prompts_dir,
    )
