"""Orchestrator events and the publish/subscribe channel that carries them.

Events are published in the order things happen in the conversation:
a MESSAGE event for a reply is always delivered before the MESSAGE event
for the reply after it. Handlers run one at a time and are awaited before
the orchestrator moves on.
"""

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Awaitable, Callable, Optional, Union

from .state import ConversationMessage

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events emitted by the orchestrator."""

    MESSAGE = auto()  # A message was appended to the history
    CONVERSATION_RESET = auto()  # History, active set and sessions cleared
    AGENT_JOINED = auto()  # An agent was added to the active set
    AGENT_LEFT = auto()  # An agent was removed from the active set
    ERROR = auto()  # An activated agent failed to reply
    TURN_COMPLETE = auto()  # All activated agents have been dispatched


@dataclass
class ConversationEvent:
    """Event published by the orchestrator.

    The type field determines which other fields are populated:
    - MESSAGE: message
    - CONVERSATION_RESET: just the type
    - AGENT_JOINED / AGENT_LEFT: agent_id
    - ERROR: agent_id, error
    - TURN_COMPLETE: messages (replies appended during the turn)
    """

    type: EventType
    message: Optional[ConversationMessage] = None
    agent_id: Optional[str] = None
    error: Optional[str] = None
    messages: list[ConversationMessage] = field(default_factory=list)

    @classmethod
    def message_event(cls, message: ConversationMessage) -> "ConversationEvent":
        return cls(type=EventType.MESSAGE, message=message)

    @classmethod
    def reset(cls) -> "ConversationEvent":
        return cls(type=EventType.CONVERSATION_RESET)

    @classmethod
    def agent_joined(cls, agent_id: str) -> "ConversationEvent":
        return cls(type=EventType.AGENT_JOINED, agent_id=agent_id)

    @classmethod
    def agent_left(cls, agent_id: str) -> "ConversationEvent":
        return cls(type=EventType.AGENT_LEFT, agent_id=agent_id)

    @classmethod
    def error_event(cls, agent_id: str, error: str) -> "ConversationEvent":
        return cls(type=EventType.ERROR, agent_id=agent_id, error=error)

    @classmethod
    def turn_complete(cls, messages: list[ConversationMessage]) -> "ConversationEvent":
        return cls(type=EventType.TURN_COMPLETE, messages=list(messages))


EventHandler = Callable[[ConversationEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Typed publish/subscribe channel with ordered, awaited delivery."""

    def __init__(self) -> None:
        self._handlers: list[tuple[Optional[EventType], EventHandler]] = []

    def subscribe(
        self,
        handler: EventHandler,
        event_type: Optional[EventType] = None,
    ) -> Callable[[], None]:
        """Register a handler for one event type, or all types if None.

        Handlers may be plain functions or coroutine functions.

        Returns:
            A callable that removes the subscription
        """
        entry = (event_type, handler)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    async def publish(self, event: ConversationEvent) -> None:
        """Deliver an event to every matching handler in subscription order.

        A failing handler is logged and does not stop delivery to the rest.
        """
        for event_type, handler in list(self._handlers):
            if event_type is not None and event_type is not event.type:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Event handler failed for {event.type.name}")

    def clear(self) -> None:
        self._handlers.clear()
