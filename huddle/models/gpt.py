"""GPT (OpenAI) model client implementation."""

import logging
import os
from typing import Any, Optional

from huddle.errors import APIError, AuthenticationError, GenerationError, RateLimitError

from .base import ChatModel, with_retry

logger = logging.getLogger(__name__)


class GPTClient(ChatModel):
    """Client for OpenAI's GPT models."""

    name = "gpt"
    display_name = "GPT"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_retries: int = 3,
    ):
        super().__init__(api_key, model_id, max_retries)

        # Get API key from parameter or environment
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")

        self._client = None

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _default_model_id(self) -> str:
        return "gpt-4o"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    def _parse_response(self, response: Any) -> str:
        """Extract the reply text from a chat completion."""
        if not response.choices:
            raise GenerationError(self.name, "no choices returned")

        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise GenerationError(self.name, "response blocked by content filter")

        if response.usage:
            logger.debug(
                f"GPT usage: {response.usage.prompt_tokens} in / "
                f"{response.usage.completion_tokens} out"
            )
        return choice.message.content or ""

    def _handle_api_error(self, e: Exception) -> None:
        """Convert OpenAI exceptions to our error types."""
        import openai

        if isinstance(e, openai.RateLimitError):
            raise RateLimitError(self.name) from e
        elif isinstance(e, openai.AuthenticationError):
            raise AuthenticationError(self.name, str(e)) from e
        elif isinstance(e, openai.APIStatusError):
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
        """Generate a reply from GPT."""
        if not self.is_available:
            raise AuthenticationError(self.name, "OpenAI API key not configured")

        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            "max_completion_tokens": max_output_tokens,
            "temperature": temperature,
        }
        if session:
            kwargs["user"] = session

        try:
            response = await client.chat.completions.create(**kwargs)
        except Exception as e:
            self._handle_api_error(e)
            raise  # unreachable, _handle_api_error always raises

        return self._parse_response(response)
