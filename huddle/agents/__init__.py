"""Agent roster and per-agent system prompts."""

from .prompts import DefaultPromptSource, PromptSource, create_prompt_source
from .registry import AgentDescriptor, AgentRegistry, create_registry

__all__ = [
    "AgentDescriptor",
    "AgentRegistry",
    "create_registry",
    "PromptSource",
    "DefaultPromptSource",
    "create_prompt_source",
]
