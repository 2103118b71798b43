"""Content and interview endpoints.

Provides endpoints for:
- Sources: add/remove background material
- Analysis and preview questions (with user feedback)
- Live interview: next question, answer, skip, complete
- Speech transcription for spoken answers

Model-backed endpoints accept `?stream=true` and then answer with NDJSON
chunk lines (see interview2article.api.streaming).
"""

from typing import Annotated, Any, Optional

from fastapi import APIRouter, File, Form, UploadFile
from pydantic import BaseModel, Field

from interview2article.api.response import success_response
from interview2article.api.streaming import chunk_event, ndjson_response
from interview2article.llm import SpeechToTextClient
from interview2article.models import ContentSourceType, QuestionFeedback, StageName
from interview2article.services import InvalidInputError, get_pipeline

router = APIRouter(prefix="/api", tags=["Interview"])

MAX_AUDIO_BYTES = 25 * 1024 * 1024


class AddSourceRequest(BaseModel):
    """Request body for adding a content source."""

    type: ContentSourceType
    content: Annotated[str, Field(min_length=1, max_length=200000)]
    title: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class PreviewQuestionsRequest(BaseModel):
    count: Annotated[int, Field(ge=1, le=30)] = 10


class FeedbackRequest(BaseModel):
    feedback: QuestionFeedback


class AnswerRequest(BaseModel):
    text: Annotated[str, Field(min_length=1, max_length=20000)]


@router.get("/state")
async def get_state() -> dict:
    """Full state tree, including stage statuses and streaming buffers."""
    return success_response(get_pipeline().state)


@router.post("/sources")
async def add_source(request: AddSourceRequest) -> dict:
    source = get_pipeline().add_source(
        request.type,
        request.content,
        title=request.title,
        metadata=request.metadata,
    )
    return success_response(source)


@router.delete("/sources/{source_id}")
async def remove_source(source_id: str) -> dict:
    get_pipeline().remove_source(source_id)
    return success_response({"deleted": True})


@router.post("/analysis")
async def analyze_content() -> dict:
    """Analyze all sources."""
    return success_response(await get_pipeline().analyze_content())


@router.post("/preview-questions")
async def generate_preview_questions(request: PreviewQuestionsRequest) -> dict:
    """Bulk-generate the preview question list for curation."""
    previews = await get_pipeline().generate_preview_questions(count=request.count)
    return success_response(previews)


@router.put("/preview-questions/{index}/feedback")
async def set_question_feedback(index: int, request: FeedbackRequest) -> dict:
    pipeline = get_pipeline()
    pipeline.set_question_feedback(index, request.feedback)
    return success_response(pipeline.state.content.question_feedback)


@router.post("/questions/next")
async def next_question(stream: bool = False):
    """Produce the next question, from the curated previews or the model."""
    pipeline = get_pipeline()
    if stream:
        return ndjson_response(
            lambda emit: pipeline.next_question(
                on_chunk=lambda delta, acc: emit(chunk_event(delta, acc))
            )
        )
    return success_response(await pipeline.next_question())


@router.post("/questions/{question_id}/answer")
async def submit_answer(question_id: str, request: AnswerRequest) -> dict:
    """Record an answer. `data.next_question` is set when one was generated."""
    pipeline = get_pipeline()
    generated = await pipeline.submit_answer(question_id, request.text)
    return success_response({
        "answer": pipeline.state.session.answers[question_id],
        "next_question": generated,
        "progress": pipeline.interview_progress(),
    })


@router.post("/questions/{question_id}/skip")
async def skip_question(question_id: str) -> dict:
    pipeline = get_pipeline()
    generated = await pipeline.skip_question(question_id)
    return success_response({
        "answer": pipeline.state.session.answers[question_id],
        "next_question": generated,
        "progress": pipeline.interview_progress(),
    })


@router.get("/interview/progress")
async def interview_progress() -> dict:
    return success_response(get_pipeline().interview_progress())


@router.post("/interview/complete")
async def complete_interview() -> dict:
    return success_response(get_pipeline().complete_interview())


@router.post("/stages/{stage}/cancel")
async def cancel_stage(stage: StageName) -> dict:
    """Ask a running stage to stop at the next chunk boundary."""
    return success_response({"cancelled": get_pipeline().cancel(stage)})


@router.post("/transcribe")
async def transcribe_audio(
    file: UploadFile = File(...),
    language: Optional[str] = Form("zh"),
) -> dict:
    """Transcribe a recorded answer to text."""
    audio = await file.read()
    if not audio:
        raise InvalidInputError("Audio file is empty")
    if len(audio) > MAX_AUDIO_BYTES:
        raise InvalidInputError(
            f"Audio exceeds maximum size of {MAX_AUDIO_BYTES // (1024 * 1024)}MB"
        )

    text = await SpeechToTextClient().transcribe(
        audio,
        filename=file.filename or "audio.webm",
        content_type=file.content_type or "audio/webm",
        language=language or "zh",
    )
    return success_response({"text": text})
