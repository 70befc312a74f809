"""Per-agent session tokens.

Every agent shares the same model backend, so each one gets its own opaque
token that is forwarded to the provider. This keeps any provider-side
memory or caching partitioned per agent.
"""

import logging
import secrets
import string
import time
from typing import Optional

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SUFFIX_LENGTH = 9


def _new_token(agent_id: str) -> str:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"agent_{agent_id}_{int(time.time() * 1000)}_{suffix}"


class SessionRegistry:
    """Allocates one stable session token per agent per conversation."""

    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def session_for(self, agent_id: str) -> str:
        """Get the agent's token, creating it on first request."""
        token = self._sessions.get(agent_id)
        if token is None:
            token = _new_token(agent_id)
            self._sessions[agent_id] = token
            logger.debug(f"Created session for agent {agent_id}: {token}")
        return token

    def get(self, agent_id: str) -> Optional[str]:
        """Get the agent's token without allocating one."""
        return self._sessions.get(agent_id)

    def as_dict(self) -> dict[str, str]:
        return dict(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()
