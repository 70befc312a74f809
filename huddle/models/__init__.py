"""Chat model clients and factory for Huddle."""

import logging
from typing import Optional, Type

from huddle.config import Settings, get_settings
from huddle.errors import MissingAPIKeyError

from .base import ChatModel, with_retry
from .claude import ClaudeClient
from .gpt import GPTClient

logger = logging.getLogger(__name__)

# Registry mapping provider names to client classes
MODEL_CLIENTS: dict[str, Type[ChatModel]] = {
    "anthropic": ClaudeClient,
    "openai": GPTClient,
}


def get_client(
    provider: str,
    api_key: Optional[str] = None,
    model_id: Optional[str] = None,
    max_retries: Optional[int] = None,
) -> ChatModel:
    """Create a chat model client by provider name.

    Args:
        provider: Provider name ('anthropic' or 'openai')
        api_key: Optional API key (falls back to environment variable)
        model_id: Optional model ID (uses default if not provided)
        max_retries: Optional retry count

    Returns:
        Initialized ChatModel instance

    Raises:
        ValueError: If the provider is not recognized
    """
    if provider not in MODEL_CLIENTS:
        raise ValueError(
            f"Unknown provider: {provider}. Available providers: {list(MODEL_CLIENTS.keys())}"
        )

    client_class = MODEL_CLIENTS[provider]

    kwargs = {}
    if api_key is not None:
        kwargs["api_key"] = api_key
    if model_id is not None:
        kwargs["model_id"] = model_id
    if max_retries is not None:
        kwargs["max_retries"] = max_retries

    return client_class(**kwargs)


def get_client_from_settings(
    settings: Optional[Settings] = None,
    require_key: bool = True,
) -> ChatModel:
    """Create the configured chat model client.

    Args:
        settings: Optional settings (uses global settings if not provided)
        require_key: Raise if the resulting client has no API key

    Returns:
        Initialized ChatModel instance

    Raises:
        MissingAPIKeyError: If require_key is set and no key is configured
    """
    if settings is None:
        settings = get_settings()

    provider = settings.model.provider
    client = get_client(
        provider=provider,
        api_key=settings.api_key_for(provider),
        model_id=settings.model.model_id,
        max_retries=settings.model.max_retries,
    )

    if require_key and not client.is_available:
        raise MissingAPIKeyError(provider)

    logger.debug(f"Using {provider} model {client.model_id}")
    return client


__all__ = [
    "ChatModel",
    "ClaudeClient",
    "GPTClient",
    "MODEL_CLIENTS",
    "get_client",
    "get_client_from_settings",
    "with_retry",
]
