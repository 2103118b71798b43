"""OpenAI-compatible provider implementation.

Talks to any Chat Completions endpoint that follows the OpenAI wire format
(OpenAI itself, SiliconFlow, vLLM, etc.) through the official SDK.
"""

import os
import time
from collections.abc import AsyncIterator
from typing import Any, NoReturn

from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError

from ..errors import AuthenticationError, LLMError, ProviderError, TimeoutError, error_from_status
from ..models import LLMRequest, LLMResponse, Usage
from .base import LLMProvider

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible Chat Completions provider.

    Supports:
    - Custom base URL (LLM_BASE_URL) for compatible gateways
    - Streaming via `stream=True`
    """

    SUPPORTED_FEATURES = {
        "streaming",
        "system_message",
    }

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        default_model: str | None = None,
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: API key. Defaults to OPENAI_API_KEY env var.
            base_url: Endpoint base URL. Defaults to LLM_BASE_URL env var, then the SDK default.
            timeout: Request timeout in seconds.
            default_model: Model used when the request leaves it empty.
                Defaults to LLM_MODEL env var, then gpt-4o-mini.
        """
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self._base_url = base_url or os.environ.get("LLM_BASE_URL") or None
        self._timeout = timeout
        self._default_model = default_model or os.environ.get("LLM_MODEL", DEFAULT_OPENAI_MODEL)
        self._client: AsyncOpenAI | None = None

    @property
    def name(self) -> str:
        """Provider identifier."""
        return "openai"

    @property
    def default_model(self) -> str:
        return self._default_model

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy-initialized OpenAI client."""
        if self._client is None:
            if not self._api_key:
                raise AuthenticationError(
                    "OpenAI API key not configured. Set OPENAI_API_KEY environment variable.",
                    provider=self.name,
                )
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    def supports(self, feature: str) -> bool:
        return feature in self.SUPPORTED_FEATURES

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Send a non-streaming completion request."""
        start_time = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(**self._build_request(request))
        except (APIConnectionError, APIStatusError) as e:
            raise self._translate_error(e) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        return self._parse_response(response, latency_ms)

    async def stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """Yield text deltas from a `stream=True` completion; keep-alive chunks are dropped."""
        try:
            chunks = await self.client.chat.completions.create(
                **self._build_request(request), stream=True
            )
            async for chunk in chunks:
                delta = chunk.choices[0].delta.content if chunk.choices else None
                if delta:
                    yield delta
        except (APIConnectionError, APIStatusError) as e:
            raise self._translate_error(e) from e

    def _build_request(self, request: LLMRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model or self._default_model,
            "messages": [msg.model_dump(include={"role", "content"}) for msg in request.messages],
            "temperature": request.temperature,
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        if request.stop:
            payload["stop"] = request.stop
        return payload

    def _parse_response(self, response: Any, latency_ms: int) -> LLMResponse:
        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            text=choice.message.content or "",
            finish_reason=choice.finish_reason or "stop",
            usage=Usage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            ) if usage is not None else Usage(),
            model=response.model,
            provider=self.name,
            latency_ms=latency_ms,
            request_id=response.id,
        )

    def _translate_error(self, error: Exception) -> LLMError:
        # APITimeoutError subclasses APIConnectionError, so it is checked first
        if isinstance(error, APITimeoutError):
            return TimeoutError(f"OpenAI request timed out after {self._timeout}s", provider=self.name)
        if isinstance(error, APIConnectionError):
            endpoint = self._base_url or "OpenAI"
            return ProviderError(f"Failed to connect to {endpoint}: {error}", provider=self.name)
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
