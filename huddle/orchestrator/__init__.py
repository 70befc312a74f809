"""Orchestration engine for Huddle multi-agent conversations.

This package provides the core logic that decides which agents reply to
each message and runs those replies against a shared model backend.

Main components:
- ConversationOrchestrator: Facade that runs one conversation
- ActivationPolicy: Decides which agents reply to a message
- ResponseDispatcher: Invokes the chosen agents one after another
- ConversationState: Message log, active agents and sessions
- MentionParser: Extracts @agent references from text
- EventBus: Publishes conversation events to subscribers
"""

from .dispatcher import ResponseDispatcher
from .engine import ConversationOrchestrator, ConversationStatus, create_orchestrator
from .events import ConversationEvent, EventBus, EventHandler, EventType
from .mentions import MENTION_PATTERN, MentionParser, unique_mentions
from .prompts import (
    AGENT_CONTEXT_TEMPLATE,
    DECISION_PROMPT,
    format_agent_context,
    format_agent_system_prompt,
    format_decision_prompt,
    format_history,
)
from .sessions import SessionRegistry
from .speaking import (
    ActivationDecision,
    ActivationPolicy,
    DecisionOracle,
    NaturalResponderSelector,
    RandomizedResponderSelector,
    SelectionContext,
    parse_decision,
)
from .state import SYSTEM_AUTHOR, USER_AUTHOR, ConversationMessage, ConversationState

__all__ = [
    # Engine
    "ConversationOrchestrator",
    "ConversationStatus",
    "create_orchestrator",
    # Events
    "ConversationEvent",
    "EventBus",
    "EventHandler",
    "EventType",
    # Mentions
    "MENTION_PATTERN",
    "MentionParser",
    "unique_mentions",
    # Prompts
    "AGENT_CONTEXT_TEMPLATE",
    "DECISION_PROMPT",
    "format_agent_context",
    "format_agent_system_prompt",
    "format_decision_prompt",
    "format_history",
    # State
    "ConversationMessage",
    "ConversationState",
    "SessionRegistry",
    "SYSTEM_AUTHOR",
    "USER_AUTHOR",
    # Activation
    "ActivationDecision",
    "ActivationPolicy",
    "DecisionOracle",
    "NaturalResponderSelector",
    "RandomizedResponderSelector",
    "SelectionContext",
    "parse_decision",
    # Dispatch
    "ResponseDispatcher",
]
