"""Interview session controller.

Pure transitions over SessionState: every method takes a session value and
returns a new one. The pipeline facade commits the result and decides when to
ask the question engine for the next question.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from interview2article.models import (
    SKIPPED_ANSWER,
    Answer,
    InterviewStep,
    Question,
    SessionState,
)

from .errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

# Answers needed before completion is suggested (advisory only)
MIN_QUESTIONS = 5


class InterviewSessionController:
    """Owns the question/answer sequence and completion gating."""

    def __init__(self, min_questions: int = MIN_QUESTIONS):
        self.min_questions = min_questions

    def add_question(self, session: SessionState, question: Question) -> SessionState:
        """Append a question; the first one moves the flow into the interview step."""
        if session.find_question(question.id) is not None:
            raise InvalidInputError(f"Question '{question.id}' already exists")

        step = session.step
        if step == InterviewStep.content_input:
            step = InterviewStep.interview

        return session.model_copy(
            update={"questions": [*session.questions, question], "step": step}
        )

    def _record(self, session: SessionState, question_id: str, answer: Answer) -> SessionState:
        position = next(
            (i for i, q in enumerate(session.questions) if q.id == question_id),
            None,
        )
        if position is None:
            raise NotFoundError("Question", question_id)

        answers = {**session.answers, question_id: answer}
        return session.model_copy(
            update={
                "answers": answers,
                "current_index": max(session.current_index, position + 1),
            }
        )

    def submit_answer(self, session: SessionState, question_id: str, text: str) -> SessionState:
        """Record (or overwrite) the answer to a question.

        Raises:
            NotFoundError: If the question id is unknown.
            InvalidInputError: If the answer is blank.
        """
        if not text or not text.strip():
            raise InvalidInputError("Answer must not be empty")

        updated = self._record(session, question_id, Answer(content=text.strip()))
        logger.debug(f"Recorded answer for {question_id}")
        return updated

    def skip(self, session: SessionState, question_id: str) -> SessionState:
        """Record the skip sentinel as the answer.

        Raises:
            NotFoundError: If the question id is unknown.
        """
        return self._record(
            session, question_id, Answer(content=SKIPPED_ANSWER, skipped=True)
        )

    def needs_next_question(self, session: SessionState) -> bool:
        """True when the session is live and every question has an answer."""
        return not session.is_complete and not session.unanswered()

    def ready_to_complete(self, session: SessionState) -> bool:
        return len(session.answers) >= self.min_questions

    def complete(self, session: SessionState) -> SessionState:
        """Mark the session complete. Completion below the threshold is allowed."""
        if not self.ready_to_complete(session):
            logger.info(
                "Completing interview below suggested threshold",
                extra={"answered": len(session.answers), "min_questions": self.min_questions},
            )
        return session.model_copy(
            update={"is_complete": True, "step": InterviewStep.completed}
        )

    def progress(self, session: SessionState) -> dict:
        """Answered/total counts plus the completion hint."""
        answered = sum(1 for q in session.questions if q.id in session.answers)
        return {
            "answered": answered,
            "total": len(session.questions),
            "min_questions": self.min_questions,
            "ready_to_complete": self.ready_to_complete(session),
            "is_complete": session.is_complete,
            "elapsed_seconds": int(
                (datetime.now(timezone.utc) - session.created_at).total_seconds()
            ),
        }
