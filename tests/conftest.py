"""Pytest fixtures for testing."""

import asyncio
import json
import random
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from typing import Any, Optional, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from interview2article.api.main import app
from interview2article.db import mongo
from interview2article.llm import LLMClient, LLMRequest, LLMResponse
from interview2article.llm.providers.base import LLMProvider
from interview2article.services import (
    InMemorySnapshotStore,
    InterviewPipeline,
    PipelineStateContainer,
    set_pipeline,
    set_snapshot_store,
)
from interview2article.services.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    OUTLINE_SYSTEM_PROMPT,
    PREVIEW_SYSTEM_PROMPT,
    QUESTION_SYSTEM_PROMPT,
    SECTION_SYSTEM_PROMPT,
)
from interview2article.services.question_service import QuestionGenerationEngine

# A scripted reply: text, an exception, or text chunks followed by an exception
Reply = Union[str, Exception, tuple[list[str], Exception]]


class FakeProvider(LLMProvider):
    """In-process provider that replays scripted replies.

    Replies are taken from `replies` in order; when the list is exhausted,
    `responder(request)` is used.

    With a `gate`, every stream yields its first chunk, sets `started`, and
    waits for the gate before yielding the rest.
    """

    def __init__(
        self,
        replies: Optional[list[Reply]] = None,
        responder: Optional[Callable[[LLMRequest], Reply]] = None,
        chunk_size: int = 7,
        gate: Optional[asyncio.Event] = None,
    ):
        self.replies = list(replies or [])
        self.responder = responder
        self.chunk_size = chunk_size
        self.gate = gate
        self.started = asyncio.Event()
        self.requests: list[LLMRequest] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def default_model(self) -> str:
        return "fake-model"

    def supports(self, feature: str) -> bool:
        return feature == "streaming"

    def _next_reply(self, request: LLMRequest) -> Reply:
        self.requests.append(request)
        if self.replies:
            return self.replies.pop(0)
        if self.responder is not None:
            return self.responder(request)
        return "ok"

    async def generate(self, request: LLMRequest) -> LLMResponse:
        reply = self._next_reply(request)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, tuple):
            raise reply[1]
        return LLMResponse(text=reply, model=request.model, provider=self.name, latency_ms=1)

    async def stream(self, request: LLMRequest) -> AsyncIterator[str]:
        reply = self._next_reply(request)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, tuple):
            chunks, error = reply
            for chunk in chunks:
                yield chunk
            raise error
        for start in range(0, len(reply), self.chunk_size):
            yield reply[start:start + self.chunk_size]
            if self.gate is not None and start == 0:
                self.started.set()
                await self.gate.wait()

    def system_prompts(self) -> list[str]:
        return [
            m.content for r in self.requests for m in r.messages if m.role == "system"
        ]


def _system_prompt(request: LLMRequest) -> str:
    for message in request.messages:
        if message.role == "system":
            return message.content
    return ""


def make_scenario_responder(section_count: int = 4) -> Callable[[LLMRequest], str]:
    """Answer each stage's prompt with well-formed output."""
    counter = {"question": 0, "section": 0}

    def respond(request: LLMRequest) -> str:
        system = _system_prompt(request)
        if system == ANALYSIS_SYSTEM_PROMPT:
            return "Here is the analysis:\n```json\n" + json.dumps({
                "summary": "A founder talks about building a bakery into a regional brand.",
                "keyTopics": ["origins", "growth", "team"],
                "suggestedQuestions": ["How did it start?", "What went wrong?"],
                "difficulty": "intermediate",
            }) + "\n```"
        if system == PREVIEW_SYSTEM_PROMPT:
            return json.dumps([
                {"question": f"Preview question {i}?", "category": "story", "purpose": f"purpose {i}"}
                for i in range(6)
            ])
        if system == QUESTION_SYSTEM_PROMPT:
            counter["question"] += 1
            return json.dumps({
                "question": f"Generated question {counter['question']}?",
                "category": "depth",
                "isFollowUp": counter["question"] > 1,
                "explanation": "dig deeper",
            })
        if system == OUTLINE_SYSTEM_PROMPT:
            return json.dumps({
                "title": "From Oven to Brand",
                "estimatedWords": 1600,
                "sections": [
                    {
                        "sectionNumber": i + 1,
                        "title": f"Part {i + 1}",
                        "theme": f"theme {i + 1}",
                        "keyPoints": ["a", "b"],
                        "tone": "warm",
                        "estimatedWords": 400,
                    }
                    for i in range(section_count)
                ],
            })
        if system == SECTION_SYSTEM_PROMPT:
            counter["section"] += 1
            return f"## Part {counter['section']}\n\nSection body number {counter['section']}."
        return "# Final article\n\nPolished words from the interview."

    return respond


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Provider answering every stage with well-formed output."""
    return FakeProvider(responder=make_scenario_responder())


@pytest.fixture
def llm_client(fake_provider: FakeProvider) -> LLMClient:
    return LLMClient(default_provider="fake", max_retries=0, providers={"fake": fake_provider})


@pytest.fixture
def make_client() -> Callable[..., tuple[LLMClient, FakeProvider]]:
    """Factory for a client over a FakeProvider with scripted replies."""

    def factory(
        replies: Optional[list[Reply]] = None,
        responder: Optional[Callable[[LLMRequest], Reply]] = None,
        chunk_size: int = 7,
        max_retries: int = 0,
        gate: Optional[asyncio.Event] = None,
    ) -> tuple[LLMClient, FakeProvider]:
        provider = FakeProvider(
            replies=replies, responder=responder, chunk_size=chunk_size, gate=gate
        )
        client = LLMClient(
            default_provider="fake",
            max_retries=max_retries,
            providers={"fake": provider},
        )
        return client, provider

    return factory


class RecordingSnapshotStore(InMemorySnapshotStore):
    """In-memory store that counts writes."""

    def __init__(self):
        super().__init__()
        self.save_count = 0

    async def save(self, key: str, payload: dict[str, Any]) -> None:
        await super().save(key, payload)
        self.save_count += 1


@pytest.fixture
def memory_store() -> RecordingSnapshotStore:
    return RecordingSnapshotStore()


@pytest.fixture
def container(memory_store: InMemorySnapshotStore) -> PipelineStateContainer:
    return PipelineStateContainer(store=memory_store, snapshot_key="test_session")


@pytest.fixture
def pipeline(container: PipelineStateContainer, llm_client: LLMClient) -> InterviewPipeline:
    return InterviewPipeline(
        container=container,
        client=llm_client,
        question_engine=QuestionGenerationEngine(llm_client, rng=random.Random(7)),
    )


@pytest_asyncio.fixture
async def mock_db() -> AsyncGenerator[Any, None]:
    """Provide a mock MongoDB database for testing."""
    mock_client = AsyncMongoMockClient()
    mock_database = mock_client[mongo.DATABASE_NAME]

    # Replace the real client with mock
    mongo.set_client(mock_client)

    yield mock_database

    mongo.set_client(None)


@pytest_asyncio.fixture
async def client(
    pipeline: InterviewPipeline,
    memory_store: InMemorySnapshotStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client bound to the test pipeline."""
    set_pipeline(pipeline)
    set_snapshot_store(memory_store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    set_pipeline(None)
    set_snapshot_store(None)


@pytest.fixture
def scenario_responder() -> Callable[[LLMRequest], str]:
    """Fresh well-formed responder, for wrapping with failure injection."""
    return make_scenario_responder()
