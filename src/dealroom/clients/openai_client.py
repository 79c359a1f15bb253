"""
OpenAI client wrapper for the Dealroom pipeline.

Handles:
- Non-streaming chat completions (fact extraction, summarization)
- Streaming chat completions yielding text deltas (chat, summary, analysis)
- Error classification into the dealroom error hierarchy

Model calls are never retried automatically: a failed generation is surfaced
to the caller, which decides whether to degrade or report it.
"""

import os
from typing import AsyncIterator

import structlog
from openai import AsyncOpenAI

from ..errors import wrap_openai_error

logger = structlog.get_logger(__name__)


class OpenAIClient:
    """
    Async OpenAI client with plain and streaming chat completions.

    Configuration via environment variables:
    - OPENAI_API_KEY: Required API key
    - OPENAI_BASE_URL: Optional gateway/proxy base URL
    - OPENAI_CHAT_MODEL: Chat model (default: gpt-4.1-mini)
    """

    def __init__(
        self,
        api_key: str | None = None,
        chat_model: str | None = None,
        base_url: str | None = None,
    ):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            chat_model: Model for chat completions (defaults to OPENAI_CHAT_MODEL or gpt-4.1-mini)
            base_url: Override the API base URL (defaults to OPENAI_BASE_URL if set)
        """
        self.api_key = api_key or os.getenv('OPENAI_API_KEY')
        if not self.api_key:
            raise ValueError('OPENAI_API_KEY environment variable is required')

        self.chat_model = chat_model or os.getenv('OPENAI_CHAT_MODEL', 'gpt-4.1-mini')
        self.base_url = base_url or os.getenv('OPENAI_BASE_URL') or None

        self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> str:
        """
        Get a chat completion response.

        Args:
            messages: List of message dicts with 'role' and 'content'
            max_tokens: Maximum completion tokens in the response
            model: Override the default chat model

        Returns:
            The assistant's response text ('' when the model returned nothing)

        Raises:
            OpenAIError: On any API failure
        """
        try:
            response = await self._client.chat.completions.create(
                model=model or self.chat_model,
                messages=messages,  # type: ignore
                max_completion_tokens=max_tokens,
            )
        except Exception as e:
            raise wrap_openai_error(e, {'model': model or self.chat_model}) from e

        if not response.choices:
            return ''
        return response.choices[0].message.content or ''

    async def chat_completion_stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream a chat completion as text deltas.

        Empty deltas (role headers, finish chunks) are skipped. The underlying
        HTTP response is released when the iterator finishes or is closed early.

        Args:
            messages: List of message dicts with 'role' and 'content'
            max_tokens: Maximum completion tokens in the response
            model: Override the default chat model

        Yields:
            Non-empty text fragments in arrival order

        Raises:
            OpenAIError: When the call fails before or during streaming
        """
        try:
            stream = await self._client.chat.completions.create(
                model=model or self.chat_model,
                messages=messages,  # type: ignore
                max_completion_tokens=max_tokens,
                stream=True,
            )
        except Exception as e:
            raise wrap_openai_error(e, {'model': model or self.chat_model}) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    yield text
        except Exception as e:
            raise wrap_openai_error(e, {'model': model or self.chat_model, 'stage': 'streaming'}) from e
        finally:
            await stream.close()

    async def health_check(self) -> dict[str, bool | str]:
        """
        Verify API connectivity with a minimal request.

        Returns:
            Dict with 'healthy' bool and optional 'error' message
        """
        try:
            await self._client.models.retrieve(self.chat_model)
            return {
                'healthy': True,
                'chat_model': self.chat_model,
            }
        except Exception as e:
            logger.warning('openai_client.health_check_failed', error=str(e))
            return {'healthy': False, 'error': str(e)}

    async def close(self):
        """Close the client connection."""
        await self._client.close()
