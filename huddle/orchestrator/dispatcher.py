"""Sequential invocation of the agents chosen for a turn.

Each activated agent is called in decision order, one at a time, so that
every reply sees the replies produced before it. A failing agent is skipped
without disturbing the rest of the queue.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from huddle.agents import AgentRegistry, PromptSource
from huddle.errors import GenerationError
from huddle.models import ChatModel

from .events import ConversationEvent, EventBus
from .mentions import MentionParser, unique_mentions
from .prompts import format_agent_context, format_agent_system_prompt
from .speaking import ActivationDecision
from .state import ConversationMessage, ConversationState

logger = logging.getLogger(__name__)

RESPONSE_TEMPERATURE = 0.7
RESPONSE_MAX_TOKENS = 4096
MAX_CONTEXT_MESSAGES = 10
RESPONSE_TIMEOUT = 60.0  # seconds

PACING_MIN_MS = 500
PACING_MAX_MS = 1500

Sleep = Callable[[float], Awaitable[None]]


class ResponseDispatcher:
    """Invokes activated agents and records their replies."""

    def __init__(
        self,
        client: ChatModel,
        prompts: PromptSource,
        registry: AgentRegistry,
        bus: EventBus,
        parser: Optional[MentionParser] = None,
        temperature: float = RESPONSE_TEMPERATURE,
        max_output_tokens: int = RESPONSE_MAX_TOKENS,
        context_messages: int = MAX_CONTEXT_MESSAGES,
        timeout: float = RESPONSE_TIMEOUT,
        pacing_min_ms: int = PACING_MIN_MS,
        pacing_max_ms: int = PACING_MAX_MS,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.prompts = prompts
        self.registry = registry
        self.bus = bus
        self.parser = parser or MentionParser(registry)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.context_messages = context_messages
        self.timeout = timeout
        self.pacing_min_ms = pacing_min_ms
        self.pacing_max_ms = pacing_max_ms
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def dispatch(
        self,
        decision: ActivationDecision,
        trigger: ConversationMessage,
        state: ConversationState,
    ) -> list[ConversationMessage]:
        """Run every agent in the decision, strictly in order.

        Agents admitted by a reply's mentions are added to the active set
        but are not invoked during this dispatch.

        Args:
            decision: Agents to invoke
            trigger: Message that started the turn
            state: Conversation state to append replies to

        Returns:
            Replies appended to the history, in order
        """
        replies: list[ConversationMessage] = []

        for agent_id in decision.agent_ids:
            mentioned = decision.is_mentioned(agent_id)
            if not mentioned:
                await self._pace()

            reply = await self._invoke_agent(agent_id, trigger, mentioned, state)
            if reply is not None:
                replies.append(reply)

        return replies

    async def _pace(self) -> None:
        """Wait a little before a natural reply so it doesn't read as instant."""
        if self.pacing_max_ms <= 0:
            return
        delay_ms = self._rng.uniform(self.pacing_min_ms, self.pacing_max_ms)
        await self._sleep(delay_ms / 1000)

    async def _invoke_agent(
        self,
        agent_id: str,
        trigger: ConversationMessage,
        mentioned: bool,
        state: ConversationState,
    ) -> Optional[ConversationMessage]:
        session = state.sessions.session_for(agent_id)

        try:
            system_prompt = format_agent_system_prompt(
                self.prompts.prompt_for(agent_id), session
            )
            context = format_agent_context(
                active_agents=state.active_agents,
                session=session,
                trigger=trigger,
                mentioned=mentioned,
                recent=state.recent(self.context_messages),
                registry=self.registry,
            )

            logger.debug(f"Calling agent {agent_id} (mentioned={mentioned})")
            text = await asyncio.wait_for(
                self.client.invoke(
                    system_prompt=system_prompt,
                    content=context,
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                    session=session,
                ),
                timeout=self.timeout,
            )
            if not text or not text.strip():
                raise GenerationError(self.client.name, "empty reply")

        except asyncio.TimeoutError:
            error = f"Agent {agent_id} timed out after {self.timeout}s"
            logger.error(error)
            await self.bus.publish(ConversationEvent.error_event(agent_id, error))
            return None

        except Exception as e:
            logger.error(f"Agent {agent_id} failed to respond: {e}")
            await self.bus.publish(ConversationEvent.error_event(agent_id, str(e)))
            return None

        return await self._record_reply(agent_id, text, state)

    async def _record_reply(
        self,
        agent_id: str,
        text: str,
        state: ConversationState,
    ) -> ConversationMessage:
        mentions = unique_mentions(self.parser.extract_mentions(text))
        message = ConversationMessage.create(author=agent_id, content=text, mentions=mentions)

        joined = []
        for mentioned_id in mentions:
            if self.registry.is_mentionable(mentioned_id) and state.activate(mentioned_id):
                logger.info(f"Agent {mentioned_id} joined after being mentioned by {agent_id}")
                joined.append(mentioned_id)

        state.append(message)
        await self.bus.publish(ConversationEvent.message_event(message))
        for joined_id in joined:
            await self.bus.publish(ConversationEvent.agent_joined(joined_id))

        return message
