"""Claude (Anthropic) model client implementation."""

import logging
import os
from typing import Any, Optional

from huddle.errors import APIError, AuthenticationError, GenerationError, RateLimitError

from .base import ChatModel, with_retry

logger = logging.getLogger(__name__)


class ClaudeClient(ChatModel):
    """Client for Anthropic's Claude models."""

    name = "claude"
    display_name = "Claude"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_retries: int = 3,
    ):
        super().__init__(api_key, model_id, max_retries)

        # Get API key from parameter or environment
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")

        self._client = None

    def _get_client(self) -> Any:
        """Get or create the Anthropic client."""
        if self._client is None:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    def _default_model_id(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    def _parse_response(self, response: Any) -> str:
        """Join the text blocks of an Anthropic response."""
        parts = [block.text for block in response.content if block.type == "text"]
        if response.usage:
            logger.debug(
                f"Claude usage: {response.usage.input_tokens} in / "
                f"{response.usage.output_tokens} out"
            )
        return "\n".join(parts)

    def _handle_api_error(self, e: Exception) -> None:
        """Convert Anthropic exceptions to our error types."""
        import anthropic

        if isinstance(e, anthropic.RateLimitError):
            retry_after = None
            headers = getattr(getattr(e, "response", None), "headers", None)
            if headers and headers.get("retry-after"):
                try:
                    retry_after = float(headers["retry-after"])
                except ValueError:
                    retry_after = None
            raise RateLimitError(self.name, retry_after) from e
        elif isinstance(e, anthropic.AuthenticationError):
            raise AuthenticationError(self.name, str(e)) from e
        elif isinstance(e, anthropic.APIStatusError):
            raise APIError(str(e), self.name, e.status_code) from e
        raise APIError(str(e), self.name) from e

    @with_retry()
    async def invoke(
        self,
        system_prompt: str,
        content: str,
        temperature: float,
        max_output_tokens: int,
        session: Optional[str] = None,
    ) -> str:
        """Generate a reply from Claude."""
        if not self.is_available:
            raise AuthenticationError(self.name, "Anthropic API key not configured")

        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": max_output_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": content}],
        }
        if session:
            kwargs["metadata"] = {"user_id": session}

        try:
            response = await client.messages.create(**kwargs)
        except Exception as e:
            self._handle_api_error(e)
            raise  # unreachable, _handle_api_error always raises

        if response.stop_reason == "refusal":
            raise GenerationError(self.name, "request refused")

        return self._parse_response(response)
