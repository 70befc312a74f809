"""Exception hierarchy for Huddle.

Everything raised on purpose derives from HuddleError, so callers such as
the CLI can catch one type and print a readable message. Each error carries
a short code that is rendered as a prefix, e.g. ``[UNKNOWN_AGENT] ...``.
"""

from __future__ import annotations

from typing import Any, Optional


class HuddleError(Exception):
    """Base exception for all Huddle errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Extra context about the failure.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


# =============================================================================
# Configuration
# =============================================================================

class ConfigurationError(HuddleError):
    """Invalid or incomplete configuration."""


class MissingAPIKeyError(ConfigurationError):
    """The selected model provider has no API key."""

    def __init__(self, provider: str):
        super().__init__(
            f"API key for {provider} is not configured",
            "MISSING_API_KEY",
            {"provider": provider},
        )


class InvalidConfigError(ConfigurationError):
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for '{field}': {reason}",
            "INVALID_CONFIG",
            {"field": field, "value": str(value)[:100]},
        )


# =============================================================================
# Model backend
# =============================================================================

class ModelError(HuddleError):
    """A chat model call failed."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if model:
            details["model"] = model
        super().__init__(message, code, details)
        self.model = model


class APIError(ModelError):
    """The provider API returned an error or could not be reached."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        details = {"status_code": status_code} if status_code else None
        super().__init__(message, model, "API_ERROR", details)
        self.status_code = status_code


class RateLimitError(ModelError):
    """The provider throttled us; `retry_after` is in seconds when known."""

    def __init__(self, model: str, retry_after: Optional[float] = None):
        super().__init__(f"Rate limit exceeded for {model}", model, "RATE_LIMIT")
        self.retry_after = retry_after


class AuthenticationError(ModelError):
    def __init__(self, model: str, reason: Optional[str] = None):
        message = f"Authentication failed for {model}"
        if reason:
            message += f": {reason}"
        super().__init__(message, model, "AUTH_ERROR")


class GenerationError(ModelError):
    """The call succeeded but produced no usable reply."""

    def __init__(self, model: str, reason: str):
        super().__init__(f"Generation failed for {model}: {reason}", model, "GENERATION_ERROR")


# =============================================================================
# Agents
# =============================================================================

class AgentError(HuddleError):
    """Roster or membership problem."""


class UnknownAgentError(AgentError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent '{agent_id}' not found", "UNKNOWN_AGENT", {"agent_id": agent_id})
        self.agent_id = agent_id


class CoordinatorRemovalError(AgentError):
    """The coordinator is always part of the conversation."""

    def __init__(self, agent_id: str):
        super().__init__(
            f"Cannot remove coordinator '{agent_id}' from the conversation",
            "COORDINATOR_REMOVAL",
            {"agent_id": agent_id},
        )
        self.agent_id = agent_id


# =============================================================================
# Conversation lifecycle
# =============================================================================

class ConversationError(HuddleError):
    """Operation not allowed in the current conversation state."""


class ConversationAlreadyActiveError(ConversationError):
    def __init__(self):
        super().__init__("Conversation is already active", "CONVERSATION_ACTIVE")


class ConversationNotActiveError(ConversationError):
    def __init__(self):
        super().__init__("No active conversation", "CONVERSATION_NOT_ACTIVE")
