"""Prompt templates for the orchestration engine.

These templates are used for:
- The "should I join in?" decision asked of non-mentioned agents
- The per-agent context sent as the single user turn of a reply
- The session note appended to each agent's system prompt
"""

from typing import Iterable

from huddle.agents import AgentDescriptor, AgentRegistry

from .state import ConversationMessage

# Asked of a non-mentioned agent; the reply's first word decides
DECISION_PROMPT = """You are {name} ({title}) in a team conversation. The latest message is:
"{message}"

Recent conversation:
{history}

Should you respond naturally? Consider:
- Can you provide helpful information about your specialty ({title})?
- Is the user asking something you can answer?
- Would a brief, friendly response be appropriate?
- Is it a general question the team should address?

You should respond if:
- They're asking "who can hear me" or similar (introduce yourself)
- They mention something related to your expertise
- It's a general question the team should address
- You can provide useful context or help

Respond with only "YES" if you should join the conversation, or "NO" if you should stay quiet.
When in doubt, lean toward being helpful and responsive."""

AGENT_CONTEXT_TEMPLATE = """Active team members: {active_agents}
Your session ID: {session}

{trigger_line}

Recent conversation (last {count} messages):
{history}

Guidelines:
- You're part of an active team conversation
- Respond naturally when you can add value
- You can mention other agents using @agentId to invite them
- Stay focused on your expertise but collaborate with others
- Keep responses concise and actionable"""

MENTIONED_LINE = 'You were mentioned in this message: "{message}"'
NATURAL_LINE = "You're responding naturally to the conversation flow."

SESSION_NOTE = """

Your session ID: {session}
You can mention other agents using @agentId to invite them to respond."""


def format_history(
    messages: Iterable[ConversationMessage],
    registry: AgentRegistry,
) -> str:
    """Render messages as ``Speaker: content`` lines."""
    lines = [f"{registry.display_name(m.author)}: {m.content}" for m in messages]
    return "\n".join(lines) or "(No previous messages)"


def format_decision_prompt(
    agent: AgentDescriptor,
    trigger: ConversationMessage,
    recent: list[ConversationMessage],
    registry: AgentRegistry,
) -> str:
    """Format the yes/no prompt asking whether an agent should join in."""
    return DECISION_PROMPT.format(
        name=agent.name,
        title=agent.title,
        message=trigger.content,
        history=format_history(recent, registry),
    )


def format_agent_context(
    active_agents: list[str],
    session: str,
    trigger: ConversationMessage,
    mentioned: bool,
    recent: list[ConversationMessage],
    registry: AgentRegistry,
) -> str:
    """Format the context an agent replies to.

    Args:
        active_agents: Ids of the currently active agents
        session: The agent's session token
        trigger: Message that started the turn
        mentioned: Whether the agent was @mentioned in the trigger
        recent: The most recent history messages, oldest first
        registry: Agent roster for display names

    Returns:
        The formatted context string
    """
    members = [registry.get(agent_id) for agent_id in active_agents]
    if mentioned:
        trigger_line = MENTIONED_LINE.format(message=trigger.content)
    else:
        trigger_line = NATURAL_LINE

    return AGENT_CONTEXT_TEMPLATE.format(
        active_agents=", ".join(a.label for a in members if a is not None),
        session=session,
        trigger_line=trigger_line,
        count=len(recent),
        history=format_history(recent, registry),
    )


def format_agent_system_prompt(base_prompt: str, session: str) -> str:
    """Append the session note to an agent's system prompt."""
    return base_prompt + SESSION_NOTE.format(session=session)
