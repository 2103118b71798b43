"""Speech-to-text adapter.

Transcription endpoints answer in several shapes: an object with `text`, an
object with `transcript`, or a bare string. normalize_transcription() folds
them into one TranscriptionResult so callers only ever see plain text, which
the interview UI appends to the current answer.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Literal

from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError

from .errors import (
    AuthenticationError,
    InvalidRequestError,
    ProviderError,
    TimeoutError,
    error_from_status,
)

logger = logging.getLogger(__name__)

DEFAULT_SPEECH_MODEL = "whisper-1"

ResponseShape = Literal["text", "transcript", "string", "empty"]


@dataclass(frozen=True)
class TranscriptionResult:
    """Normalized transcription with the shape it was read from."""

    text: str
    shape: ResponseShape


def normalize_transcription(response: Any) -> TranscriptionResult:
    """Normalize a transcription response of any known shape."""
    if response is None:
        return TranscriptionResult(text="", shape="empty")

    if isinstance(response, str):
        return TranscriptionResult(text=response.strip(), shape="string")

    if isinstance(response, dict):
        payload = response
    elif hasattr(response, "model_dump"):
        payload = response.model_dump()
    else:
        payload = {
            "text": getattr(response, "text", None),
            "transcript": getattr(response, "transcript", None),
        }

    if payload.get("text"):
        return TranscriptionResult(text=str(payload["text"]).strip(), shape="text")
    if payload.get("transcript"):
        return TranscriptionResult(text=str(payload["transcript"]).strip(), shape="transcript")

    return TranscriptionResult(text="", shape="empty")


class SpeechToTextClient:
    """OpenAI-compatible audio transcription client.

    Configuration (env vars):
    - SPEECH_API_KEY (falls back to OPENAI_API_KEY)
    - SPEECH_BASE_URL (falls back to LLM_BASE_URL)
    - SPEECH_MODEL (default: whisper-1)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 60.0,
    ):
        self._api_key = api_key or os.environ.get("SPEECH_API_KEY") or os.environ.get("OPENAI_API_KEY")
        self._base_url = base_url or os.environ.get("SPEECH_BASE_URL") or os.environ.get("LLM_BASE_URL") or None
        self._model = model or os.environ.get("SPEECH_MODEL", DEFAULT_SPEECH_MODEL)
        self._timeout = timeout
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise AuthenticationError(
                    "Speech API key not configured. Set SPEECH_API_KEY or OPENAI_API_KEY.",
                    provider="speech",
                )
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.webm",
        content_type: str = "audio/webm",
        language: str = "zh",
    ) -> str:
        """Transcribe an audio blob to plain text.

        Raises:
            InvalidRequestError: If the audio payload is empty.
            LLMError: On service failure.
        """
        if not audio:
            raise InvalidRequestError("Audio payload is empty", provider="speech")

        try:
            response = await self.client.audio.transcriptions.create(
                file=(filename, audio, content_type),
                model=self._model,
                language=language,
                response_format="json",
                temperature=0.2,
            )
        except APITimeoutError as e:
            raise TimeoutError("Transcription request timed out", provider="speech") from e
        except APIConnectionError as e:
            raise ProviderError(f"Failed to connect to speech service: {e}", provider="speech") from e
        except APIStatusError as e:
            raise error_from_status(
                e.status_code,
                e.message,
                provider="speech",
                request_id=getattr(e, "request_id", None),
                response=getattr(e, "response", None),
            ) from e

        result = normalize_transcription(response)
        logger.debug("Transcription normalized from %s shape (%d chars)", result.shape, len(result.text))
        return result.text
