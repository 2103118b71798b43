"""LLM provider abstraction layer.

Vendor-neutral completion client with a streaming variant, tolerant JSON
extraction for free-form model output, and a speech-to-text adapter.
"""

from .client import ChunkCallback, LLMClient, get_client, set_client
from .errors import (
    AuthenticationError,
    ContentFilterError,
    GenerationCancelled,
    InvalidRequestError,
    LLMError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TimeoutError,
)
from .json_extract import JsonExtraction, extract_json
from .models import ChatMessage, CompletionOptions, LLMRequest, LLMResponse, Usage
from .speech import SpeechToTextClient, TranscriptionResult, normalize_transcription

__all__ = [
    "LLMClient",
    "ChunkCallback",
    "get_client",
    "set_client",
    "LLMRequest",
    "LLMResponse",
    "ChatMessage",
    "CompletionOptions",
    "Usage",
    "LLMError",
    "AuthenticationError",
    "RateLimitError",
    "TimeoutError",
    "InvalidRequestError",
    "ContentFilterError",
    "ModelNotFoundError",
    "ProviderError",
    "GenerationCancelled",
    "JsonExtraction",
    "extract_json",
    "SpeechToTextClient",
    "TranscriptionResult",
    "normalize_transcription",
]
