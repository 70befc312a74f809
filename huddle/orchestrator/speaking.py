"""Deciding which agents speak for an incoming message.

Determines who replies by:
1. Admitting every mentioned, mentionable agent and scheduling it to reply
2. Offering the remaining active agents to a natural-responder selector
3. Capping natural responders at one per message

The default selector shuffles the candidates and walks them one by one,
stopping at the first agent that should join in. Agents that dominated the
last few messages are skipped, the coordinator answers greetings and the
start of a conversation without asking the model, and everyone else is
asked a yes/no question through the decision oracle.
"""

import asyncio
import logging
import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

from huddle.agents import AgentRegistry, PromptSource
from huddle.config.settings import DEFAULT_COORDINATOR_TRIGGERS
from huddle.models import ChatModel

from .mentions import unique_mentions
from .prompts import format_decision_prompt
from .state import ConversationMessage, ConversationState

logger = logging.getLogger(__name__)

DECISION_TEMPERATURE = 0.1
DECISION_MAX_TOKENS = 50
DECISION_CONTEXT_MESSAGES = 5
DECISION_TIMEOUT = 15.0  # seconds

RECENCY_WINDOW = 3
RECENCY_LIMIT = 2
EARLY_CONVERSATION_LENGTH = 2

LEADING_TOKEN = re.compile(r"\W*(\w+)")


def contains_phrase(text: str, phrase: str) -> bool:
    """Check whether `phrase` occurs in `text` as whole words.

    Examples:
        >>> contains_phrase("can you check this?", "can you")
        True
        >>> contains_phrase("please check this", "hi")
        False
    """
    if not phrase:
        return False
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


@dataclass
class ActivationDecision:
    """Ordered set of agents that must reply to one message.

    Mentioned agents come first, in mention order, followed by at most one
    natural respondent.
    """

    mentioned: list[str] = field(default_factory=list)
    natural: Optional[str] = None
    # Agents newly added to the active set by this message's mentions
    joined: list[str] = field(default_factory=list)

    @property
    def agent_ids(self) -> list[str]:
        if self.natural is None:
            return list(self.mentioned)
        return [*self.mentioned, self.natural]

    @property
    def is_empty(self) -> bool:
        return not self.mentioned and self.natural is None

    def is_mentioned(self, agent_id: str) -> bool:
        return agent_id in self.mentioned


@dataclass
class SelectionContext:
    """What a natural-responder selector gets to look at."""

    trigger: ConversationMessage
    state: ConversationState
    registry: AgentRegistry


def parse_decision(reply: Optional[str]) -> bool:
    """Check whether a decision reply starts with the word YES.

    Examples:
        >>> parse_decision("Yes, I can help")
        True
        >>> parse_decision("NO")
        False
        >>> parse_decision("Yesterday I said...")
        False
    """
    if not reply:
        return False
    match = LEADING_TOKEN.match(reply)
    return bool(match) and match.group(1).upper() == "YES"


class DecisionOracle:
    """Asks an agent's model whether it wants to join the conversation.

    Any failure, including a timeout or an unusable answer, counts as NO.
    """

    def __init__(
        self,
        client: ChatModel,
        prompts: PromptSource,
        registry: AgentRegistry,
        temperature: float = DECISION_TEMPERATURE,
        max_output_tokens: int = DECISION_MAX_TOKENS,
        context_messages: int = DECISION_CONTEXT_MESSAGES,
        timeout: float = DECISION_TIMEOUT,
    ):
        self.client = client
        self.prompts = prompts
        self.registry = registry
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.context_messages = context_messages
        self.timeout = timeout

    async def should_respond(
        self,
        agent_id: str,
        trigger: ConversationMessage,
        state: ConversationState,
    ) -> bool:
        agent = self.registry.get(agent_id)
        if agent is None:
            return False

        prompt = format_decision_prompt(
            agent=agent,
            trigger=trigger,
            recent=state.recent(self.context_messages),
            registry=self.registry,
        )

        try:
            reply = await asyncio.wait_for(
                self.client.invoke(
                    system_prompt=self.prompts.prompt_for(agent_id),
                    content=prompt,
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Decision for {agent_id} timed out after {self.timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Decision for {agent_id} failed: {e}")
            return False

        decision = parse_decision(reply)
        logger.debug(f"Agent {agent_id} natural response decision: {decision} ({reply!r})")
        return decision


class NaturalResponderSelector(ABC):
    """Strategy picking at most one non-mentioned agent to reply."""

    @abstractmethod
    async def select(
        self,
        candidates: Sequence[str],
        context: SelectionContext,
    ) -> Optional[str]:
        """Pick a natural respondent from the candidates, or None."""
        ...


class RandomizedResponderSelector(NaturalResponderSelector):
    """Shuffle the candidates and take the first one that should speak."""

    def __init__(
        self,
        oracle: DecisionOracle,
        coordinator_triggers: Optional[Sequence[str]] = None,
        recency_window: int = RECENCY_WINDOW,
        recency_limit: int = RECENCY_LIMIT,
        early_conversation_length: int = EARLY_CONVERSATION_LENGTH,
        rng: Optional[random.Random] = None,
    ):
        self.oracle = oracle
        if coordinator_triggers is None:
            coordinator_triggers = DEFAULT_COORDINATOR_TRIGGERS
        self.coordinator_triggers = [t.lower() for t in coordinator_triggers]
        self.recency_window = recency_window
        self.recency_limit = recency_limit
        self.early_conversation_length = early_conversation_length
        self.rng = rng or random.Random()

    async def select(
        self,
        candidates: Sequence[str],
        context: SelectionContext,
    ) -> Optional[str]:
        shuffled = list(candidates)
        self.rng.shuffle(shuffled)

        trigger, state = context.trigger, context.state
        coordinator = context.registry.coordinator

        for agent_id in shuffled:
            if self.is_throttled(agent_id, state):
                logger.debug(f"Agent {agent_id} has responded recently, skipping")
                continue

            if trigger.is_system:
                return None

            if agent_id == coordinator.id and self.coordinator_should_respond(
                trigger, state, context.registry
            ):
                logger.debug(f"Coordinator {agent_id} taking greeting/coordination message")
                return agent_id

            if await self.oracle.should_respond(agent_id, trigger, state):
                return agent_id

        return None

    def is_throttled(self, agent_id: str, state: ConversationState) -> bool:
        """Check whether the agent wrote too many of the latest messages."""
        count = state.recent_message_count(agent_id, self.recency_window)
        return count >= self.recency_limit

    def coordinator_should_respond(
        self,
        trigger: ConversationMessage,
        state: ConversationState,
        registry: AgentRegistry,
    ) -> bool:
        if len(state) <= self.early_conversation_length:
            return True

        coordinator = registry.coordinator
        text = trigger.content.lower()
        phrases = [*self.coordinator_triggers, coordinator.id.lower(), coordinator.name.lower()]
        return any(contains_phrase(text, phrase) for phrase in phrases)


class ActivationPolicy:
    """Builds the ActivationDecision for an incoming message."""

    def __init__(self, registry: AgentRegistry, selector: NaturalResponderSelector):
        self.registry = registry
        self.selector = selector

    async def decide_activations(
        self,
        trigger: ConversationMessage,
        state: ConversationState,
    ) -> ActivationDecision:
        """Decide which agents reply to `trigger`.

        Mentioned agents are admitted to the active set and always reply,
        whatever the throttling rules say.

        Args:
            trigger: The incoming message, already appended to the history
            state: The conversation state (mutated: mentioned agents join)

        Returns:
            The ordered decision
        """
        decision = ActivationDecision()

        for agent_id in unique_mentions(trigger.mentions):
            if not self.registry.is_mentionable(agent_id):
                continue
            if state.activate(agent_id):
                logger.info(f"Agent {agent_id} joined after being mentioned by {trigger.author}")
                decision.joined.append(agent_id)
            decision.mentioned.append(agent_id)

        candidates = [
            agent_id
            for agent_id in state.active_agents
            if agent_id not in decision.mentioned and agent_id != trigger.author
        ]

        if candidates:
            decision.natural = await self.selector.select(
                candidates,
                SelectionContext(trigger=trigger, state=state, registry=self.registry),
            )

        logger.debug(
            f"Activation for {trigger.id}: mentioned={decision.mentioned}, "
            f"natural={decision.natural}"
        )
        return decision
