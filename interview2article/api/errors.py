"""Mapping from pipeline exceptions to HTTP status codes and error codes."""

from interview2article.llm import GenerationCancelled, LLMError
from interview2article.services import InvalidInputError, NotFoundError, StageBusyError

LLM_UNAVAILABLE_MESSAGE = "AI service is temporarily unavailable. Please try again."
CANCELLED_MESSAGE = "Generation was cancelled."


def not_found_code(exc: NotFoundError) -> str:
    """e.g. "Preview question" -> "PREVIEW_QUESTION_NOT_FOUND"."""
    return f"{exc.kind.upper().replace(' ', '_')}_NOT_FOUND"


def describe_error(exc: Exception) -> tuple[int, str, str] | None:
    """Return (status, code, message) for a known exception, else None."""
    if isinstance(exc, InvalidInputError):
        return 400, "INVALID_INPUT", exc.message
    if isinstance(exc, NotFoundError):
        return 404, not_found_code(exc), exc.message
    if isinstance(exc, StageBusyError):
        return 409, "STAGE_BUSY", exc.message
    if isinstance(exc, GenerationCancelled):
        return 409, "STAGE_CANCELLED", CANCELLED_MESSAGE
    if isinstance(exc, LLMError):
        return 503, "AI_SERVICE_ERROR", LLM_UNAVAILABLE_MESSAGE
    return None
