"""Configuration management for Huddle.

Settings are layered, later layers winning:

1. ``defaults.yaml`` shipped with the package (model, tunables, roster)
2. the user file, ``~/.huddle/config.yaml`` or ``--config``
3. environment variables (``HUDDLE_*``, ``ANTHROPIC_API_KEY``, ``OPENAI_API_KEY``)

YAML values may reference the environment as ``${VAR}``.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .settings import (
    DEFAULT_AGENTS,
    DEFAULT_COORDINATOR_TRIGGERS,
    AgentConfig,
    ConversationConfig,
    ModelConfig,
    Settings,
)

CONFIG_DIR = Path.home() / ".huddle"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

# YAML `api_keys.<provider>` -> Settings field
API_KEY_FIELDS = {
    "anthropic": "anthropic_api_key",
    "openai": "openai_api_key",
}
SECTIONS = ("model", "conversation", "agents", "prompts_dir")

_settings: Optional[Settings] = None


def _expand_env_vars(value: Any) -> Any:
    """Replace ``${VAR}`` references recursively; strings left empty become None."""
    if isinstance(value, str):
        expanded = ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return expanded or None
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge `override` into a copy of `base`, recursing into nested dicts."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _transform_config_to_settings(config: dict) -> dict:
    """Map the YAML file layout onto Settings keyword arguments.

    Empty sections are skipped, so an empty ``agents:`` list keeps the
    default roster.
    """
    fields = {}

    api_keys = config.get("api_keys") or {}
    for provider, field_name in API_KEY_FIELDS.items():
        if api_keys.get(provider):
            fields[field_name] = api_keys[provider]

    for section in SECTIONS:
        if config.get(section):
            fields[section] = config[section]

    return fields


def create_default_config(path: Path = CONFIG_FILE) -> bool:
    """Write the packaged defaults to `path` unless a file is already there.

    Returns:
        True if the file was created
    """
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULTS_FILE.read_text(encoding="utf-8"), encoding="utf-8")
    return True


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """Load and cache the settings.

    Args:
        config_path: User config file to use instead of ``~/.huddle/config.yaml``
        force_reload: Ignore the cached instance

    Returns:
        Settings instance
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    merged = _deep_merge(_read_yaml(DEFAULTS_FILE), _read_yaml(config_path or CONFIG_FILE))
    _settings = Settings(**_transform_config_to_settings(_expand_env_vars(merged)))
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading them on first use."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access reloads them."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "ModelConfig",
    "ConversationConfig",
    "AgentConfig",
    "DEFAULT_AGENTS",
    "DEFAULT_COORDINATOR_TRIGGERS",
    "get_settings",
    "load_settings",
    "reset_settings",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
]
