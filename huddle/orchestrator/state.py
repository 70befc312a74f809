"""Conversation state: message log, active agents and sessions."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from huddle.errors import CoordinatorRemovalError

from .sessions import SessionRegistry

USER_AUTHOR = "user"
SYSTEM_AUTHOR = "system"


def _new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConversationMessage:
    """A single message in the shared conversation.

    Messages are immutable once created and only ever appended.
    """

    author: str  # "user", "system" or an agent id
    content: str
    mentions: tuple[str, ...] = ()
    is_system: bool = False
    id: str = field(default_factory=_new_message_id)
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(
        cls,
        author: str,
        content: str,
        mentions: Iterable[str] = (),
        is_system: bool = False,
    ) -> "ConversationMessage":
        return cls(
            author=author,
            content=content,
            mentions=tuple(mentions),
            is_system=is_system,
        )

    @classmethod
    def system(cls, content: str) -> "ConversationMessage":
        """Create a system notice."""
        return cls(author=SYSTEM_AUTHOR, content=content, is_system=True)

    @property
    def is_user_message(self) -> bool:
        return self.author == USER_AUTHOR


class ConversationState:
    """Mutable state of one conversation.

    The coordinator is always in the active set; the history is append-only
    and kept in the causal order replies were produced.
    """

    def __init__(self, coordinator_id: str, sessions: Optional[SessionRegistry] = None):
        self.coordinator_id = coordinator_id
        self.sessions = sessions or SessionRegistry()
        self._history: list[ConversationMessage] = []
        # dict keys double as an insertion-ordered set
        self._active: dict[str, None] = {coordinator_id: None}

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._history)

    @property
    def active_agents(self) -> list[str]:
        return list(self._active)

    def append(self, message: ConversationMessage) -> None:
        self._history.append(message)

    def recent(self, count: int) -> list[ConversationMessage]:
        """Get up to the last `count` messages, oldest first."""
        if count <= 0:
            return []
        return self._history[-count:]

    def recent_message_count(self, author: str, window: int) -> int:
        """Count how many of the last `window` messages `author` wrote."""
        return sum(1 for msg in self.recent(window) if msg.author == author)

    def is_active(self, agent_id: str) -> bool:
        return agent_id in self._active

    def activate(self, agent_id: str) -> bool:
        """Add an agent to the active set.

        Returns:
            True if the agent was not active before
        """
        if agent_id in self._active:
            return False
        self._active[agent_id] = None
        return True

    def deactivate(self, agent_id: str) -> bool:
        """Remove an agent from the active set.

        Returns:
            True if the agent was active before

        Raises:
            CoordinatorRemovalError: If agent_id is the coordinator
        """
        if agent_id == self.coordinator_id:
            raise CoordinatorRemovalError(agent_id)
        return self._active.pop(agent_id, False) is None

    def clear(self) -> None:
        """Drop all history and sessions; only the coordinator stays active."""
        self._history.clear()
        self._active = {self.coordinator_id: None}
        self.sessions.clear()
