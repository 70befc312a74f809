"""Main orchestration engine for Huddle.

The ConversationOrchestrator runs one shared conversation between a user
and a team of agents by:
1. Parsing @mentions from each incoming message
2. Deciding which agents reply (mentioned agents plus at most one volunteer)
3. Invoking those agents one after another
4. Publishing events for every change to the conversation
"""

import asyncio
import logging
import random
from enum import Enum
from typing import Callable, Optional

from huddle.agents import (
    AgentDescriptor,
    AgentRegistry,
    PromptSource,
    create_prompt_source,
    create_registry,
)
from huddle.config import ConversationConfig, Settings, get_settings
from huddle.errors import ConversationAlreadyActiveError, ConversationNotActiveError
from huddle.models import ChatModel, get_client_from_settings

from .dispatcher import ResponseDispatcher, Sleep
from .events import ConversationEvent, EventBus, EventHandler, EventType
from .mentions import MentionParser, unique_mentions
from .speaking import (
    ActivationPolicy,
    DecisionOracle,
    NaturalResponderSelector,
    RandomizedResponderSelector,
)
from .state import SYSTEM_AUTHOR, USER_AUTHOR, ConversationMessage, ConversationState

logger = logging.getLogger(__name__)


class ConversationStatus(Enum):
    """Lifecycle of an orchestrator's conversation."""

    IDLE = "idle"
    ACTIVE = "active"


class ConversationOrchestrator:
    """Facade over one mention-driven multi-agent conversation.

    Each instance owns its own state, sessions and event bus, so several
    orchestrators can run side by side. Turns run one at a time: sending a
    message while a turn is still in flight cancels that turn first.
    """

    def __init__(
        self,
        client: ChatModel,
        registry: AgentRegistry,
        prompts: PromptSource,
        config: Optional[ConversationConfig] = None,
        selector: Optional[NaturalResponderSelector] = None,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            client: Chat model backend shared by every agent
            registry: Agent roster
            prompts: Source of per-agent system prompts
            config: Conversation tunables (defaults if not provided)
            selector: Natural-responder strategy (randomized if not provided)
            rng: Random source for shuffling and pacing
            sleep: Coroutine used for the pacing delay
        """
        self.client = client
        self.registry = registry
        self.prompts = prompts
        self.config = config or ConversationConfig()

        rng = rng or random.Random()
        self.bus = EventBus()
        self.parser = MentionParser(registry)

        if selector is None:
            oracle = DecisionOracle(
                client=client,
                prompts=prompts,
                registry=registry,
                temperature=self.config.decision_temperature,
                max_output_tokens=self.config.decision_max_tokens,
                context_messages=self.config.decision_context_messages,
                timeout=self.config.decision_timeout,
            )
            selector = RandomizedResponderSelector(
                oracle=oracle,
                coordinator_triggers=self.config.coordinator_triggers,
                recency_window=self.config.recency_window,
                recency_limit=self.config.recency_limit,
                early_conversation_length=self.config.early_conversation_length,
                rng=rng,
            )
        self.policy = ActivationPolicy(registry, selector)

        self.dispatcher = ResponseDispatcher(
            client=client,
            prompts=prompts,
            registry=registry,
            bus=self.bus,
            parser=self.parser,
            temperature=self.config.response_temperature,
            max_output_tokens=self.config.response_max_tokens,
            context_messages=self.config.max_context_messages,
            timeout=self.config.response_timeout,
            pacing_min_ms=self.config.pacing_min_ms,
            pacing_max_ms=self.config.pacing_max_ms,
            sleep=sleep,
            rng=rng,
        )

        self._state = ConversationState(registry.coordinator.id)
        self._status = ConversationStatus.IDLE
        self._turn_task: Optional[asyncio.Task] = None

    @property
    def status(self) -> ConversationStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status is ConversationStatus.ACTIVE

    @property
    def state(self) -> ConversationState:
        """The live conversation state. Mutate it only through the orchestrator."""
        return self._state

    def subscribe(
        self,
        handler: EventHandler,
        event_type: Optional[EventType] = None,
    ) -> Callable[[], None]:
        """Register an event handler; returns a callable that unsubscribes it."""
        return self.bus.subscribe(handler, event_type)

    async def start_conversation(self, text: str) -> list[ConversationMessage]:
        """Start a fresh conversation with an opening user message.

        Args:
            text: The user's opening message (may contain @mentions)

        Returns:
            Agent replies produced for the opening message

        Raises:
            ConversationAlreadyActiveError: If a conversation is running
        """
        if self.is_active:
            raise ConversationAlreadyActiveError()

        await self.reset()
        self._status = ConversationStatus.ACTIVE
        logger.info("Conversation started")

        return await self.send_message(text, USER_AUTHOR)

    async def send_message(
        self,
        text: str,
        author: str = USER_AUTHOR,
        is_system: bool = False,
    ) -> list[ConversationMessage]:
        """Append a message and run the turn it triggers.

        Any turn still in flight is cancelled first; messages it already
        appended are kept.

        Args:
            text: Message content (may contain @mentions)
            author: "user", "system" or an agent id
            is_system: Mark the message as a system notice, which never
                draws a natural response

        Returns:
            Agent replies appended during this turn, empty if the turn was
            superseded by a newer message

        Raises:
            ConversationNotActiveError: If no conversation has been started
        """
        if not self.is_active:
            raise ConversationNotActiveError()

        await self.cancel_turn()

        message = ConversationMessage.create(
            author=author,
            content=text,
            mentions=unique_mentions(self.parser.extract_mentions(text)),
            is_system=is_system or author == SYSTEM_AUTHOR,
        )
        self._state.append(message)
        await self.bus.publish(ConversationEvent.message_event(message))

        task = asyncio.create_task(self._run_turn(message))
        self._turn_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._turn_task is task:
                self._turn_task = None

        if task.cancelled():
            logger.info(f"Turn for {message.id} was superseded")
            return []
        return task.result()

    async def _run_turn(self, message: ConversationMessage) -> list[ConversationMessage]:
        decision = await self.policy.decide_activations(message, self._state)
        for agent_id in decision.joined:
            await self.bus.publish(ConversationEvent.agent_joined(agent_id))

        if decision.is_empty:
            logger.debug(f"No agent replies to {message.id}")
            replies = []
        else:
            replies = await self.dispatcher.dispatch(decision, message, self._state)

        await self.bus.publish(ConversationEvent.turn_complete(replies))
        return replies

    async def cancel_turn(self) -> bool:
        """Cancel the turn in flight, if any.

        Returns:
            True if a running turn was cancelled
        """
        task = self._turn_task
        if task is None or task.done() or task is asyncio.current_task():
            return False

        task.cancel()
        await asyncio.wait({task})
        logger.debug("Cancelled in-flight turn")
        return True

    async def reset(self) -> None:
        """Drop the conversation: history, active agents and sessions."""
        await self.cancel_turn()
        self._state.clear()
        self._status = ConversationStatus.IDLE
        logger.info("Conversation reset")
        await self.bus.publish(ConversationEvent.reset())

    async def invite_agent(self, agent_id: str) -> bool:
        """Add an agent to the conversation without mentioning it.

        Returns:
            True if the agent joined, False if it was already active

        Raises:
            UnknownAgentError: If agent_id is not in the roster
            ConversationNotActiveError: If no conversation has been started
        """
        agent = self.registry.require(agent_id)
        if not self.is_active:
            raise ConversationNotActiveError()
        if not self._state.activate(agent_id):
            return False

        await self._post_notice(f"{agent.name} has joined the conversation")
        await self.bus.publish(ConversationEvent.agent_joined(agent_id))
        return True

    async def remove_agent(self, agent_id: str) -> bool:
        """Take an agent out of the conversation.

        Returns:
            True if the agent left, False if it was not active

        Raises:
            UnknownAgentError: If agent_id is not in the roster
            CoordinatorRemovalError: If agent_id is the coordinator
            ConversationNotActiveError: If no conversation has been started
        """
        agent = self.registry.require(agent_id)
        if not self.is_active:
            raise ConversationNotActiveError()
        if not self._state.deactivate(agent_id):
            return False

        await self._post_notice(f"{agent.name} has left the conversation")
        await self.bus.publish(ConversationEvent.agent_left(agent_id))
        return True

    async def _post_notice(self, text: str) -> None:
        notice = ConversationMessage.system(text)
        self._state.append(notice)
        await self.bus.publish(ConversationEvent.message_event(notice))

    def available_agents(self) -> list[AgentDescriptor]:
        return list(self.registry)

    def get_conversation_history(self) -> list[ConversationMessage]:
        return list(self._state.history)

    def current_active_agents(self) -> list[str]:
        return self._state.active_agents


def create_orchestrator(
    settings: Optional[Settings] = None,
    client: Optional[ChatModel] = None,
    rng: Optional[random.Random] = None,
) -> ConversationOrchestrator:
    """Factory function to create an orchestrator from settings.

    Args:
        settings: Application settings (uses global settings if not provided)
        client: Chat model backend (built from settings if not provided)
        rng: Optional random source

    Returns:
        Configured ConversationOrchestrator instance

    Raises:
        MissingAPIKeyError: If no client is given and no key is configured
        InvalidConfigError: If the configured roster is invalid
    """
    if settings is None:
        settings = get_settings()

    registry = create_registry(settings)
    prompts = create_prompt_source(settings, registry)
    if client is None:
        client = get_client_from_settings(settings)

    return ConversationOrchestrator(
        client=client,
        registry=registry,
        prompts=prompts,
        config=settings.conversation,
        rng=rng,
    )
