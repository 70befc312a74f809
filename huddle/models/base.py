"""Abstract base class for chat model clients."""

import asyncio
import logging
from abc import ABC, abstractmethod
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from huddle.errors import APIError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: tuple = (RateLimitError, APIError),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for retrying async methods with exponential backoff.

    When the decorated method's instance has a ``max_retries`` attribute it
    takes precedence over the decorator argument.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        retryable_exceptions: Tuple of exception types that trigger retries
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
            retries = getattr(self, "max_retries", max_retries)
            last_exception: Optional[Exception] = None
            delay = base_delay

            for attempt in range(retries + 1):
                try:
                    return await func(self, *args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e

                    if attempt == retries:
                        break

                    if isinstance(e, RateLimitError) and e.retry_after:
                        wait_time = e.retry_after
                    else:
                        wait_time = min(delay, max_delay)
                        delay *= exponential_base

                    logger.warning(
                        f"Attempt {attempt + 1}/{retries + 1} failed: {e}. "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    await asyncio.sleep(wait_time)

            raise last_exception  # type: ignore

        return wrapper  # type: ignore

    return decorator


class ChatModel(ABC):
    """Abstract base class for chat model backends.

    Every agent talks through the same backend; per-agent isolation comes
    from the ``session`` token passed on each call.
    """

    # Class attributes - must be set by subclasses
    name: str  # 'claude', 'gpt'
    display_name: str

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_retries: int = 3,
    ):
        """Initialize the model client.

        Args:
            api_key: API key for the provider (falls back to env var)
            model_id: Model identifier to use
            max_retries: Retries on rate-limit and transient API errors
        """
        self.api_key = api_key
        self.model_id = model_id or self._default_model_id()
        self.max_retries = max_retries

    @abstractmethod
    def _default_model_id(self) -> str:
        """Return the default model ID for this provider."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the model is available (API key configured, etc.)."""
        ...

    @abstractmethod
    async def invoke(
        self,
        system_prompt: str,
        content: str,
        temperature: float,
        max_output_tokens: int,
        session: Optional[str] = None,
    ) -> str:
        """Send one system prompt and one user turn, return the reply text.

        Args:
            system_prompt: System prompt for the call
            content: The single user turn
            temperature: Sampling temperature
            max_output_tokens: Upper bound on generated tokens
            session: Opaque token partitioning provider-side state per agent

        Returns:
            The generated text

        Raises:
            ModelError: On any provider failure
        """
        ...
