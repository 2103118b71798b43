"""LLM data models.

Vendor-neutral request, option and response models for completion calls.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """A single message in the conversation."""

    role: Literal["system", "user", "assistant"]
    content: str


class CompletionOptions(BaseModel):
    """Per-call generation options.

    Use low temperature (~0.3) for structured or fact-preserving output such as
    outlines and JSON, and high temperature (0.8-0.9) for open-ended writing.
    """

    model: str | None = None
    max_tokens: int | None = Field(default=2000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class LLMRequest(BaseModel):
    """Vendor-neutral LLM request."""

    messages: list[ChatMessage]
    model: str
    temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    max_tokens: int | None = None
    stop: list[str] | None = None
    metadata: dict[str, Any] | None = None


class Usage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResponse(BaseModel):
    """Vendor-neutral LLM response.

    For streamed calls `text` is the final accumulated text and `chunk_count`
    is the number of deltas delivered to the caller.
    """

    text: str
    finish_reason: str = "stop"
    usage: Usage = Field(default_factory=Usage)
    model: str
    provider: str
    latency_ms: int
    request_id: str | None = None
    streamed: bool = False
    chunk_count: int = 0
