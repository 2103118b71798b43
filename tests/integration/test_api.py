"""Integration tests for the HTTP API.

Tests cover:
- { data, error } envelope on success and failure
- Exception to status mapping (400, 404, 409, 503)
- NDJSON streaming of model-backed actions
- Script export downloads
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from interview2article.api.errors import describe_error
from interview2article.llm import GenerationCancelled, ProviderError
from interview2article.models import ContentSourceType, StageName, StageState, StageStatus
from interview2article.services import InterviewPipeline, PipelineStateContainer, set_pipeline


def ndjson_lines(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


async def prepare_interview(pipeline: InterviewPipeline, count: int = 5) -> None:
    pipeline.add_source(ContentSourceType.text, "A founder explains how a bakery became a brand.")
    await pipeline.analyze_content()
    questions = [await pipeline.next_question() for _ in range(count)]
    for question in questions:
        await pipeline.submit_answer(question.id, "A thoughtful answer.")


class TestErrorMapping:
    def test_cancelled_generation(self):
        assert describe_error(GenerationCancelled("partial")) == (
            409,
            "STAGE_CANCELLED",
            "Generation was cancelled.",
        )

    def test_unknown_exception(self):
        assert describe_error(RuntimeError("boom")) is None


class TestSystemEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "data": {"status": "ok", "snapshot_backend": "memory"},
            "error": None,
        }

    @pytest.mark.asyncio
    async def test_connection(self, client):
        response = await client.post("/api/connection/test")

        assert response.status_code == 200
        assert response.json()["data"]["success"] is True

    @pytest.mark.asyncio
    async def test_styles(self, client):
        response = await client.get("/api/scripts/styles")

        names = [s["name"] for s in response.json()["data"]]
        assert names[0] == "default"
        assert set(names) == {"default", "qa", "emotional", "tech", "literary", "business"}


class TestContentEndpoints:
    """Tests for sources, analysis and previews."""

    @pytest.mark.asyncio
    async def test_add_and_remove_source(self, client, pipeline):
        response = await client.post(
            "/api/sources",
            json={"type": "url", "content": "Page text", "metadata": {"url": "https://example.com"}},
        )
        assert response.status_code == 200
        source = response.json()["data"]
        assert source["id"].startswith("source_")
        assert source["metadata"] == {"url": "https://example.com"}

        response = await client.delete(f"/api/sources/{source['id']}")
        assert response.json() == {"data": {"deleted": True}, "error": None}
        assert pipeline.state.content.sources == []

    @pytest.mark.asyncio
    async def test_blank_source_rejected(self, client):
        response = await client.post("/api/sources", json={"type": "text", "content": "   "})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_remove_unknown_source(self, client):
        response = await client.delete("/api/sources/source_missing")

        assert response.status_code == 404
        body = response.json()
        assert body["data"] is None
        assert body["error"] == {
            "code": "SOURCE_NOT_FOUND",
            "message": "Source with ID 'source_missing' not found",
        }

    @pytest.mark.asyncio
    async def test_analysis_requires_sources(self, client):
        response = await client.post("/api/analysis")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_previews_require_analysis(self, client):
        response = await client.post("/api/preview-questions", json={"count": 5})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_preview_feedback(self, client, pipeline):
        pipeline.add_source(ContentSourceType.text, "Material")
        await pipeline.analyze_content()

        response = await client.post("/api/preview-questions", json={"count": 6})
        assert len(response.json()["data"]) == 6

        response = await client.put("/api/preview-questions/2/feedback", json={"feedback": "good"})
        assert response.json()["data"] == {"2": "good"}

        response = await client.put("/api/preview-questions/9/feedback", json={"feedback": "bad"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PREVIEW_QUESTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_provider_failure_maps_to_503(self, client, make_client, memory_store):
        failing, _ = make_client(replies=[ProviderError("boom", provider="fake")])
        set_pipeline(InterviewPipeline(
            container=PipelineStateContainer(store=memory_store, snapshot_key="test_session"),
            client=failing,
        ))
        await client.post("/api/sources", json={"type": "text", "content": "Material"})

        response = await client.post("/api/analysis")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "AI_SERVICE_ERROR"

        state = (await client.get("/api/state")).json()["data"]
        assert state["stages"]["analysis"]["status"] == "failed"


class TestInterviewEndpoints:
    @pytest.mark.asyncio
    async def test_question_answer_cycle(self, client, pipeline):
        pipeline.add_source(ContentSourceType.text, "Material")
        await pipeline.analyze_content()

        response = await client.post("/api/questions/next")
        question = response.json()["data"]
        assert question["content"] == "Generated question 1?"

        response = await client.post(
            f"/api/questions/{question['id']}/answer", json={"text": "  It started small.  "}
        )
        data = response.json()["data"]
        assert data["answer"]["content"] == "It started small."
        assert data["next_question"]["content"] == "Generated question 2?"
        assert data["progress"]["answered"] == 1

        response = await client.post(f"/api/questions/{data['next_question']['id']}/skip")
        assert response.json()["data"]["answer"]["skipped"] is True

    @pytest.mark.asyncio
    async def test_answer_unknown_question(self, client):
        response = await client.post("/api/questions/q_missing/answer", json={"text": "hi"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "QUESTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_streamed_question(self, client, pipeline):
        pipeline.add_source(ContentSourceType.text, "Material")
        await pipeline.analyze_content()

        response = await client.post("/api/questions/next?stream=true")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = ndjson_lines(response)
        chunks = [e for e in events if e["type"] == "chunk"]
        assert len(chunks) > 1
        assert [c["length"] for c in chunks] == sorted(c["length"] for c in chunks)
        assert events[-1]["type"] == "result"
        assert events[-1]["data"]["content"] == "Generated question 1?"

    @pytest.mark.asyncio
    async def test_cancel_idle_stage(self, client):
        response = await client.post("/api/stages/question/cancel")

        assert response.json()["data"] == {"cancelled": False}

    @pytest.mark.asyncio
    async def test_transcribe(self, client):
        transcribe = AsyncMock(return_value="We started in 2009.")
        with patch("interview2article.api.routes.interview.SpeechToTextClient") as stt:
            stt.return_value.transcribe = transcribe
            response = await client.post(
                "/api/transcribe",
                files={"file": ("answer.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
            )

        assert response.json()["data"] == {"text": "We started in 2009."}
        assert transcribe.call_args.kwargs["language"] == "zh"
        assert transcribe.call_args.kwargs["filename"] == "answer.webm"

    @pytest.mark.asyncio
    async def test_transcribe_empty_audio(self, client):
        response = await client.post(
            "/api/transcribe",
            files={"file": ("answer.webm", b"", "audio/webm")},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_complete(self, client, pipeline):
        await prepare_interview(pipeline)

        response = await client.post("/api/interview/complete")

        assert response.json()["data"]["is_complete"] is True


class TestScriptEndpoints:
    """Tests for script synthesis, editing and export."""

    @pytest.mark.asyncio
    async def test_outline_flow_and_export(self, client, pipeline):
        await prepare_interview(pipeline)

        response = await client.post("/api/scripts/draft/merge")
        assert response.json() == {"data": None, "error": None}

        response = await client.post("/api/scripts/outline", json={"style": "default"})
        assert response.json()["data"]["total_sections"] == 4

        response = await client.post("/api/scripts/sections")
        data = response.json()["data"]
        assert set(data["sections"]) == {"0", "1", "2", "3"}
        assert data["draft"]["sections_count"] == 4

        response = await client.post("/api/scripts/polish", json={"style": "business"})
        assert response.json()["data"]["style"] == "business"

        response = await client.get("/api/scripts/final/business/export?format=html")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'filename="interview-business.html"' in response.headers["content-disposition"]
        assert "<title>From Oven to Brand</title>" in response.text

    @pytest.mark.asyncio
    async def test_streamed_sections_report_progress(self, client, pipeline):
        await prepare_interview(pipeline)
        await pipeline.generate_outline()

        response = await client.post("/api/scripts/sections?stream=true")

        events = ndjson_lines(response)
        progress = [(e["current"], e["total"]) for e in events if e["type"] == "progress"]
        assert progress == [(1, 4), (2, 4), (3, 4), (4, 4)]
        assert events[-1]["type"] == "result"
        assert events[-1]["data"]["sections_count"] == 4

    @pytest.mark.asyncio
    async def test_streamed_error_event(self, client):
        response = await client.post("/api/scripts/polish?stream=true", json={"style": "tech"})

        assert response.status_code == 200
        events = ndjson_lines(response)
        assert events[-1]["type"] == "error"
        assert events[-1]["error"]["code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_busy_stage_returns_409(self, client, pipeline):
        await prepare_interview(pipeline)
        state = pipeline.state
        pipeline.container.commit(
            state.model_copy(update={
                "stages": {**state.stages, StageName.outline: StageState(status=StageStatus.running)},
            }),
            persist=False,
        )

        response = await client.post("/api/scripts/outline", json={})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STAGE_BUSY"

    @pytest.mark.asyncio
    async def test_cancelled_outline_returns_409(self, client, make_client, memory_store, scenario_responder):
        """A plain (non-streamed) request stopped by the cancel endpoint gets an envelope."""
        gate = asyncio.Event()
        gate.set()
        gated, provider = make_client(responder=scenario_responder, gate=gate)
        pipeline = InterviewPipeline(
            container=PipelineStateContainer(store=memory_store, snapshot_key="test_session"),
            client=gated,
        )
        set_pipeline(pipeline)
        await prepare_interview(pipeline)

        gate.clear()
        provider.started.clear()
        request = asyncio.create_task(client.post("/api/scripts/outline", json={}))
        await provider.started.wait()

        response = await client.post("/api/stages/outline/cancel")
        assert response.json()["data"] == {"cancelled": True}

        gate.set()
        response = await request

        assert response.status_code == 409
        assert response.json() == {
            "data": None,
            "error": {"code": "STAGE_CANCELLED", "message": "Generation was cancelled."},
        }
        assert pipeline.state.stage(StageName.outline).status == StageStatus.idle
        assert pipeline.state.result.outline is None

    @pytest.mark.asyncio
    async def test_quick_edit_and_mode(self, client, pipeline):
        await prepare_interview(pipeline)
        await client.post("/api/scripts/quick", json={"style": "qa"})

        response = await client.put("/api/scripts/quick/qa", json={"content": "Edited text"})
        assert response.json()["data"]["content"] == "Edited text"
        assert response.json()["data"]["last_edited_at"] is not None

        response = await client.put("/api/scripts/mode", json={"mode": "outline"})
        assert response.json()["data"] == {"mode": "outline"}

        response = await client.get("/api/scripts/quick/qa/export?format=txt")
        assert response.text == "Edited text\n"

    @pytest.mark.asyncio
    async def test_export_missing_script(self, client):
        response = await client.get("/api/scripts/final/tech/export")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "FINAL_SCRIPT_NOT_FOUND"


class TestSnapshotEndpoints:
    @pytest.mark.asyncio
    async def test_save_reset_restore(self, client, pipeline, memory_store):
        await client.post("/api/sources", json={"type": "text", "content": "Material"})

        response = await client.get("/api/snapshot")
        payload = response.json()["data"]
        assert "stages" not in payload
        assert len(payload["content"]["sources"]) == 1

        await client.post("/api/snapshot/save")
        assert memory_store.save_count >= 1

        response = await client.post("/api/snapshot/restore")
        assert response.json()["data"]["restored"] is True

        response = await client.post("/api/snapshot/reset")
        assert response.json()["data"]["content"]["sources"] == []

        response = await client.post("/api/snapshot/restore")
        assert response.json()["data"]["restored"] is False
