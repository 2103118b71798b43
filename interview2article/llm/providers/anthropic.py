"""Anthropic provider implementation.

Implements the LLMProvider interface for Anthropic's Messages API, including
text streaming through `messages.stream`.
"""

import os
import time
from collections.abc import AsyncIterator
from typing import Any, NoReturn

from anthropic import (
    AsyncAnthropic,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
)

from ..errors import AuthenticationError, LLMError, ProviderError, TimeoutError, error_from_status
from ..models import LLMRequest, LLMResponse, Usage
from .base import LLMProvider

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4096

# Anthropic stop reasons mapped onto the OpenAI vocabulary
FINISH_REASON_MAP = {
    "end_turn": "stop",
    "max_tokens": "length",
    "stop_sequence": "stop",
}


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API provider.

    The system message is lifted into the top-level `system` parameter and
    temperatures above 1.0 are clamped to Anthropic's 0-1 range.
    """

    SUPPORTED_FEATURES = {
        "streaming",
        "system_message",
    }

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 60.0,
        default_model: str = DEFAULT_ANTHROPIC_MODEL,
    ):
        """Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
            timeout: Request timeout in seconds.
            default_model: Default model to use if not specified in request.
        """
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self._timeout = timeout
        self._default_model = default_model
        self._client: AsyncAnthropic | None = None

    @property
    def name(self) -> str:
        """Provider identifier."""
        return "anthropic"

    @property
    def default_model(self) -> str:
        return self._default_model

    @property
    def client(self) -> AsyncAnthropic:
        """Lazy-initialized Anthropic client."""
        if self._client is None:
            if not self._api_key:
                raise AuthenticationError(
                    "Anthropic API key not configured. Set ANTHROPIC_API_KEY environment variable.",
                    provider=self.name,
                )
            self._client = AsyncAnthropic(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def supports(self, feature: str) -> bool:
        return feature in self.SUPPORTED_FEATURES

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Send a non-streaming Messages request."""
        start_time = time.perf_counter()
        try:
            response = await self.client.messages.create(**self._build_request(request))
        except (APIConnectionError, APIStatusError) as e:
            raise self._translate_error(e) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        return self._parse_response(response, latency_ms)

    async def stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """Yield text deltas from `messages.stream`."""
        try:
            async with self.client.messages.stream(**self._build_request(request)) as events:
                async for text in events.text_stream:
                    if text:
                        yield text
        except (APIConnectionError, APIStatusError) as e:
            raise self._translate_error(e) from e

    def _build_request(self, request: LLMRequest) -> dict[str, Any]:
        system_parts = [m.content for m in request.messages if m.role == "system"]
        payload: dict[str, Any] = {
            "model": request.model or self._default_model,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in request.messages
                if m.role != "system"
            ],
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": min(request.temperature, 1.0),
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if request.stop:
            payload["stop_sequences"] = request.stop
        return payload

    def _parse_response(self, response: Any, latency_ms: int) -> LLMResponse:
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        return LLMResponse(
            text="".join(block.text for block in response.content if block.type == "text"),
            finish_reason=FINISH_REASON_MAP.get(response.stop_reason, response.stop_reason or "stop"),
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            model=response.model,
            provider=self.name,
            latency_ms=latency_ms,
            request_id=response.id,
        )

    def _translate_error(self, error: Exception) -> LLMError:
        if isinstance(error, APITimeoutError):
            return TimeoutError(f"Anthropic request timed out after {self._timeout}s", provider=self.name)
        if isinstance(error, APIConnectionError):
            return ProviderError(f"Failed to connect to Anthropic: {error}", provider=self.name)
        return error_from_status(
            error.status_code,
            str(getattr(error, "message", error)),
            provider=self.name,
            request_id=getattr(error, "request_id", None),
            response=getattr(error, "response", None),
        )

    def _handle_api_error(self, error: Any) -> NoReturn:
        """Raise the LLMError matching a status error."""
        raise self._translate_error(error) from error
