"""High-level completion client.

Wraps a provider behind two call shapes:

- complete(): one non-streaming request, whole text back
- complete_streaming(): deltas delivered to a chunk callback in arrival order,
  resolving with the final accumulated text

Errors from the service surface as LLMError subclasses. Nothing is retried
unless the caller opts in through `max_retries` (non-streaming calls only);
retry policy belongs to the caller.
"""

import asyncio
import inspect
import logging
import os
import random
import time
import uuid
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from typing import Optional, Union

from .errors import (
    GenerationCancelled,
    LLMError,
    RateLimitError,
    RETRYABLE_ERRORS,
)
from .models import ChatMessage, CompletionOptions, LLMRequest, LLMResponse
from .providers.anthropic import AnthropicProvider
from .providers.base import LLMProvider
from .providers.openai import OpenAIProvider

logger = logging.getLogger(__name__)

# on_chunk(delta_text, accumulated_text); may be sync or async
ChunkCallback = Callable[[str, str], Union[None, Awaitable[None]]]


class LLMClient:
    """Completion client with a streaming variant.

    Configuration (env vars):
    - LLM_DEFAULT_PROVIDER: Provider name (default: "openai")
    - LLM_TIMEOUT_SECONDS: Request timeout (default: 60)
    - LLM_MAX_RETRIES: Opt-in retries for non-streaming calls (default: 0)
    - LLM_BASE_URL / LLM_MODEL: OpenAI-compatible endpoint and model
    """

    DEFAULT_PROVIDER = "openai"
    DEFAULT_TIMEOUT = 60.0
    DEFAULT_MAX_RETRIES = 0
    DEFAULT_BASE_DELAY = 1.0
    DEFAULT_MAX_DELAY = 30.0

    def __init__(
        self,
        default_provider: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        openai_api_key: str | None = None,
        anthropic_api_key: str | None = None,
        base_url: str | None = None,
        providers: dict[str, LLMProvider] | None = None,
    ):
        """Initialize the client.

        Args:
            default_provider: Provider name. Defaults to LLM_DEFAULT_PROVIDER env var.
            timeout: Request timeout in seconds. Defaults to LLM_TIMEOUT_SECONDS env var.
            max_retries: Retries for non-streaming calls. Defaults to LLM_MAX_RETRIES env var.
            openai_api_key: OpenAI-compatible API key. Defaults to OPENAI_API_KEY env var.
            anthropic_api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
            base_url: OpenAI-compatible endpoint. Defaults to LLM_BASE_URL env var.
            providers: Explicit provider table, replacing the built-in ones.
        """
        self._default_provider = (
            default_provider
            or os.environ.get("LLM_DEFAULT_PROVIDER", self.DEFAULT_PROVIDER)
        )
        self._timeout = (
            timeout
            if timeout is not None
            else float(os.environ.get("LLM_TIMEOUT_SECONDS", self.DEFAULT_TIMEOUT))
        )
        self._max_retries = (
            max_retries
            if max_retries is not None
            else int(os.environ.get("LLM_MAX_RETRIES", self.DEFAULT_MAX_RETRIES))
        )

        if providers is not None:
            self._providers = dict(providers)
        else:
            self._providers = {
                "openai": OpenAIProvider(
                    api_key=openai_api_key,
                    base_url=base_url,
                    timeout=self._timeout,
                ),
                "anthropic": AnthropicProvider(api_key=anthropic_api_key, timeout=self._timeout),
            }

    def get_provider(self, name: str) -> LLMProvider:
        """Get a specific provider by name.

        Raises:
            ValueError: If provider name is not recognized.
        """
        if name not in self._providers:
            raise ValueError(f"Unknown provider: {name}. Available: {list(self._providers.keys())}")
        return self._providers[name]

    def get_default_provider(self) -> LLMProvider:
        """Get the default provider."""
        return self.get_provider(self._default_provider)

    def _build_request(
        self,
        prompt: str,
        system_prompt: str | None,
        options: CompletionOptions,
        provider: LLMProvider,
    ) -> LLMRequest:
        messages = []
        if system_prompt:
            messages.append(ChatMessage(role="system", content=system_prompt))
        messages.append(ChatMessage(role="user", content=prompt))

        return LLMRequest(
            messages=messages,
            model=options.model or provider.default_model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
        )

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        options: CompletionOptions | None = None,
        provider: str | None = None,
        correlation_id: str | None = None,
    ) -> LLMResponse:
        """Run one non-streaming completion.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            options: Model, max tokens and temperature.
            provider: Provider name. Defaults to the configured default.
            correlation_id: Optional ID for log correlation.

        Returns:
            The provider response.

        Raises:
            LLMError: On any service failure (after opt-in retries, if any).
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        options = options or CompletionOptions()
        llm_provider = self.get_provider(provider or self._default_provider)
        request = self._build_request(prompt, system_prompt, options, llm_provider)

        attempt = 0
        while True:
            try:
                response = await llm_provider.generate(request)
            except RETRYABLE_ERRORS as e:
                e.correlation_id = correlation_id
                logger.warning(
                    "Completion failed on attempt %d/%d: %s",
                    attempt + 1,
                    self._max_retries + 1,
                    str(e),
                    extra={
                        "correlation_id": correlation_id,
                        "provider": llm_provider.name,
                        "error_type": type(e).__name__,
                    },
                )
                if attempt >= self._max_retries:
                    raise
                await asyncio.sleep(self._calculate_backoff(attempt, e))
                attempt += 1
                continue
            except LLMError as e:
                e.correlation_id = correlation_id
                logger.error(
                    "Completion failed with non-retryable error: %s",
                    str(e),
                    extra={
                        "correlation_id": correlation_id,
                        "provider": llm_provider.name,
                        "error_type": type(e).__name__,
                    },
                )
                raise

            logger.info(
                "Completion succeeded",
                extra={
                    "correlation_id": correlation_id,
                    "provider": response.provider,
                    "model": response.model,
                    "latency_ms": response.latency_ms,
                    "completion_tokens": response.usage.completion_tokens,
                },
            )
            return response

    async def complete_streaming(
        self,
        prompt: str,
        system_prompt: str | None = None,
        options: CompletionOptions | None = None,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: asyncio.Event | None = None,
        provider: str | None = None,
        correlation_id: str | None = None,
    ) -> LLMResponse:
        """Run one streaming completion.

        `on_chunk(delta, accumulated)` is called once per non-empty delta,
        strictly in arrival order; `accumulated` only ever grows by appending.
        If `cancel_event` is set, consumption stops at the next chunk boundary.

        Raises:
            LLMError: On any service failure, possibly mid-stream.
            GenerationCancelled: When `cancel_event` was set.
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        options = options or CompletionOptions()
        llm_provider = self.get_provider(provider or self._default_provider)
        request = self._build_request(prompt, system_prompt, options, llm_provider)

        start_time = time.perf_counter()
        accumulated = ""
        chunk_count = 0

        try:
            async with aclosing(llm_provider.stream(request)) as deltas:
                async for delta in deltas:
                    if cancel_event is not None and cancel_event.is_set():
                        raise GenerationCancelled(accumulated)
                    if not delta:
                        continue
                    accumulated += delta
                    chunk_count += 1
                    if on_chunk is not None:
                        result = on_chunk(delta, accumulated)
                        if inspect.isawaitable(result):
                            await result
        except LLMError as e:
            e.correlation_id = correlation_id
            logger.error(
                "Streaming completion failed after %d chunks: %s",
                chunk_count,
                str(e),
                extra={
                    "correlation_id": correlation_id,
                    "provider": llm_provider.name,
                    "error_type": type(e).__name__,
                },
            )
            raise

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Streaming completion succeeded",
            extra={
                "correlation_id": correlation_id,
                "provider": llm_provider.name,
                "latency_ms": latency_ms,
                "chunk_count": chunk_count,
            },
        )

        return LLMResponse(
            text=accumulated,
            model=request.model,
            provider=llm_provider.name,
            latency_ms=latency_ms,
            streamed=True,
            chunk_count=chunk_count,
        )

    async def test_connection(self, provider: str | None = None) -> dict:
        """Send a minimal request to check credentials and endpoint.

        Returns:
            {"success": True} or {"success": False, "error": message}.
        """
        try:
            await self.complete(
                "Hello",
                options=CompletionOptions(max_tokens=5, temperature=0.0),
                provider=provider,
            )
        except LLMError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "error": None}

    def _calculate_backoff(self, attempt: int, error: Exception) -> float:
        """Exponential backoff with ±25% jitter, honoring retry-after."""
        if isinstance(error, RateLimitError) and error.retry_after:
            return min(error.retry_after, self.DEFAULT_MAX_DELAY)

        base_delay = self.DEFAULT_BASE_DELAY * (2 ** attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay + jitter, self.DEFAULT_MAX_DELAY)


# Convenience functions for module-level access
_default_client: LLMClient | None = None


def get_client() -> LLMClient:
    """Get the default LLM client singleton."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
    return _default_client


def set_client(client: LLMClient | None) -> None:
    """Replace the default client (for testing)."""
    global _default_client
    _default_client = client
