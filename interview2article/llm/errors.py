"""LLM error hierarchy.

Every failure of the completion service surfaces as an LLMError subclass.
Pipeline stages record these in their stage error slot and re-raise them.
"""

from typing import Any


class LLMError(Exception):
    """Base exception for completion service failures."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        request_id: str | None = None,
        correlation_id: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.request_id = request_id
        self.correlation_id = correlation_id

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.provider:
            parts.append(f"provider={self.provider}")
        if self.request_id:
            parts.append(f"request_id={self.request_id}")
        return " ".join(parts)


class AuthenticationError(LLMError):
    """401/403 - Invalid or missing API key."""

    pass


class RateLimitError(LLMError):
    """429 - Rate limit exceeded.

    Carries retry_after when the provider sent one.
    """

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        provider: str | None = None,
        request_id: str | None = None,
        correlation_id: str | None = None,
    ):
        super().__init__(message, provider, request_id, correlation_id)
        self.retry_after = retry_after


class TimeoutError(LLMError):
    """Request exceeded timeout threshold."""

    pass


class InvalidRequestError(LLMError):
    """400 - Malformed request (bad parameters, too many tokens, invalid model)."""

    pass


class ContentFilterError(LLMError):
    """Response blocked by the provider's safety filters."""

    pass


class ProviderError(LLMError):
    """500/502/503 or connection failure on the provider side."""

    pass


class ModelNotFoundError(LLMError):
    """Model identifier not recognized."""

    pass


class GenerationCancelled(Exception):
    """A streaming completion was abandoned through its cancel signal.

    The upstream request may still run to completion; only consumption stops.
    """

    def __init__(self, accumulated_text: str = ""):
        super().__init__("Generation cancelled by caller")
        self.accumulated_text = accumulated_text



# Used by the opt-in retry loop for non-streaming calls
RETRYABLE_ERRORS = (RateLimitError, TimeoutError, ProviderError)
NON_RETRYABLE_ERRORS = (AuthenticationError, InvalidRequestError, ContentFilterError, ModelNotFoundError)

# Lower-cased markers found in 400 bodies when a safety filter fired
CONTENT_FILTER_MARKERS = ("content_filter", "safety", "harmful")


def parse_retry_after(response: Any) -> float | None:
    """Seconds from a `retry-after` header, if the response carries one."""
    headers = getattr(response, "headers", None)
    value = headers.get("retry-after") if headers else None
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def error_from_status(
    status_code: int,
    message: str,
    provider: str,
    request_id: str | None = None,
    response: Any = None,
) -> LLMError:
    """Build the LLMError subclass for an HTTP status returned by a provider SDK."""
    context = {"provider": provider, "request_id": request_id}

    if status_code in (401, 403):
        return AuthenticationError(f"{provider} authentication failed: {message}", **context)
    if status_code == 404:
        return ModelNotFoundError(f"Model not found: {message}", **context)
    if status_code == 429:
        return RateLimitError(
            f"{provider} rate limit exceeded: {message}",
            retry_after=parse_retry_after(response),
            **context,
        )
    if status_code in (400, 422):
        if any(marker in message.lower() for marker in CONTENT_FILTER_MARKERS):
            return ContentFilterError(f"Content blocked by {provider} safety filters: {message}", **context)
        return InvalidRequestError(f"Invalid request to {provider}: {message}", **context)
    if status_code >= 500:
        return ProviderError(f"{provider} server error ({status_code}): {message}", **context)
    return LLMError(f"{provider} error ({status_code}): {message}", **context)
