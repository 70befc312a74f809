"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_COORDINATOR_TRIGGERS = [
    "hello",
    "hi",
    "who",
    "here",
    "can you",
    "team",
    "help",
]


class ModelConfig(BaseModel):
    """Configuration for the chat model backend shared by all agents."""

    provider: Literal["anthropic", "openai"] = "anthropic"
    model_id: str = "claude-sonnet-4-20250514"
    max_retries: int = Field(default=3, ge=0, le=10)

    @field_validator("model_id")
    @classmethod
    def validate_model_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("model_id cannot be empty")
        return v.strip()


class ConversationConfig(BaseModel):
    """Configuration for turn-taking behavior."""

    max_context_messages: int = Field(default=10, ge=1)
    decision_context_messages: int = Field(default=5, ge=1)

    # An agent that wrote `recency_limit` of the last `recency_window`
    # messages is not eligible to respond naturally.
    recency_window: int = Field(default=3, ge=1)
    recency_limit: int = Field(default=2, ge=1)

    early_conversation_length: int = Field(default=2, ge=0)
    coordinator_triggers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COORDINATOR_TRIGGERS)
    )

    response_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    response_max_tokens: int = Field(default=4096, ge=1)
    decision_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    decision_max_tokens: int = Field(default=50, ge=1)

    pacing_min_ms: int = Field(default=500, ge=0)
    pacing_max_ms: int = Field(default=1500, ge=0)

    response_timeout: float = Field(default=60.0, gt=0)
    decision_timeout: float = Field(default=15.0, gt=0)

    @field_validator("coordinator_triggers")
    @classmethod
    def normalize_triggers(cls, v: list[str]) -> list[str]:
        return [t.strip().lower() for t in v if t and t.strip()]

    @model_validator(mode="after")
    def check_pacing_range(self) -> "ConversationConfig":
        if self.pacing_max_ms < self.pacing_min_ms:
            raise ValueError("pacing_max_ms must be >= pacing_min_ms")
        return self


class AgentConfig(BaseModel):
    """Configuration for one agent in the roster."""

    id: str
    name: str
    title: str
    mentionable: bool = True
    coordinator: bool = False
    prompt: Optional[str] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("agent id cannot be empty")
        if not all(c.isalnum() or c in "_-" for c in v):
            raise ValueError(f"agent id '{v}' may only contain letters, digits, '_' and '-'")
        return v


DEFAULT_AGENTS: list[AgentConfig] = [
    AgentConfig(id="cortex", name="Cortex", title="Product Owner", coordinator=True),
    AgentConfig(id="ziggy", name="Ziggy", title="Chaos Monkey"),
    AgentConfig(id="patchy", name="Patchy", title="Backend Developer"),
    AgentConfig(id="shiny", name="Shiny", title="Frontend Developer"),
    AgentConfig(id="sniffy", name="Sniffy", title="Quality Engineer"),
    AgentConfig(id="trappy", name="Trappy", title="Security Auditor"),
    AgentConfig(id="scratchy", name="Scratchy", title="Contrarian Analyst"),
    AgentConfig(id="wheelie", name="Wheelie", title="Platform/DevOps"),
    AgentConfig(id="clawsy", name="Clawsy", title="Code Reviewer"),
    AgentConfig(id="nestor", name="Nestor", title="Architect"),
    AgentConfig(id="quill", name="Quill", title="Document Writer"),
]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="HUDDLE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # API Keys - AliasChoices allows reading from either the field name or PROVIDER_API_KEY
    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("anthropic_api_key", "ANTHROPIC_API_KEY"),
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openai_api_key", "OPENAI_API_KEY"),
    )

    # Nested configurations
    model: ModelConfig = Field(default_factory=ModelConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    agents: list[AgentConfig] = Field(default_factory=lambda: list(DEFAULT_AGENTS))
    prompts_dir: Optional[str] = None

    @field_validator("anthropic_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate API keys are not empty strings."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def resolved_prompts_dir(self) -> Optional[Path]:
        """Get the prompts directory with ~ expanded."""
        if not self.prompts_dir:
            return None
        return Path(self.prompts_dir).expanduser()

    def api_key_for(self, provider: str) -> Optional[str]:
        """Get the API key configured for a provider."""
        key_map = {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
        }
        return key_map.get(provider)

    def has_api_key(self, provider: Optional[str] = None) -> bool:
        """Check if an API key exists for the given (or configured) provider."""
        return self.api_key_for(provider or self.model.provider) is not None
