"""Unit tests for the pipeline state container.

Tests cover:
- Stage guard: busy rejection, done/failed/idle transitions
- Streaming buffers
- Deferred, coalesced snapshot writes
"""

import logging

import pytest

from interview2article.llm import GenerationCancelled, ProviderError
from interview2article.models import (
    ContentSource,
    ContentSourceType,
    PipelineState,
    StageName,
    StageStatus,
)
from interview2article.services import (
    InMemorySnapshotStore,
    InvalidInputError,
    PipelineStateContainer,
    StageBusyError,
)


def with_source(state: PipelineState, text: str = "material") -> PipelineState:
    source = ContentSource(type=ContentSourceType.text, content=text)
    content = state.content.model_copy(update={"sources": [*state.content.sources, source]})
    return state.model_copy(update={"content": content})


class FailingStore(InMemorySnapshotStore):
    async def save(self, key, payload):
        raise ConnectionError("store offline")


class TestStageGuard:
    """Tests for run_stage."""

    @pytest.mark.asyncio
    async def test_rejects_reentry(self, container):
        async with container.run_stage(StageName.outline):
            assert container.state.stage(StageName.outline).status == StageStatus.running
            with pytest.raises(StageBusyError):
                async with container.run_stage(StageName.outline):
                    pass
            # other stages are independent
            async with container.run_stage(StageName.analysis):
                pass

        assert container.state.stage(StageName.outline).status == StageStatus.done

    @pytest.mark.asyncio
    async def test_blocked_by_running_stage(self, container):
        """A stage listed in blocked_by keeps the guarded stage from starting."""
        async with container.run_stage(StageName.section):
            with pytest.raises(StageBusyError) as exc_info:
                async with container.run_stage(StageName.outline, blocked_by=(StageName.section,)):
                    pass
            assert "section" in str(exc_info.value)
            assert container.state.stage(StageName.outline).status == StageStatus.idle

        async with container.run_stage(StageName.outline, blocked_by=(StageName.section,)):
            pass
        assert container.state.stage(StageName.outline).status == StageStatus.done

    @pytest.mark.asyncio
    async def test_failure_recorded_and_reraised(self, container):
        container.commit(with_source(container.state, "kept"))

        with pytest.raises(ProviderError):
            async with container.run_stage(StageName.section):
                raise ProviderError("upstream down", provider="fake")

        stage = container.state.stage(StageName.section)
        assert stage.status == StageStatus.failed
        assert "upstream down" in stage.error
        assert container.state.content.sources[0].content == "kept"

    @pytest.mark.asyncio
    async def test_invalid_input_recorded(self, container):
        with pytest.raises(InvalidInputError):
            async with container.run_stage(StageName.final):
                raise InvalidInputError("no draft")
        assert container.state.stage(StageName.final).error == "no draft"

    @pytest.mark.asyncio
    async def test_rerun_after_failure_clears_error(self, container):
        with pytest.raises(InvalidInputError):
            async with container.run_stage(StageName.final):
                raise InvalidInputError("no draft")

        async with container.run_stage(StageName.final):
            assert container.state.stage(StageName.final).error is None
        assert container.state.stage(StageName.final).status == StageStatus.done

    @pytest.mark.asyncio
    async def test_cancellation_returns_to_idle(self, container):
        with pytest.raises(GenerationCancelled):
            async with container.run_stage(StageName.quick_script):
                container.set_streaming(StageName.quick_script, "partial")
                raise GenerationCancelled("partial")

        assert container.state.stage(StageName.quick_script).status == StageStatus.idle
        assert container.streaming_text(StageName.quick_script) == ""


class TestStreaming:
    @pytest.mark.asyncio
    async def test_streaming_not_persisted(self, container, memory_store):
        container.set_streaming(StageName.question, "Wha")
        container.set_streaming(StageName.question, "What")
        await container.flush()

        assert container.streaming_text(StageName.question) == "What"
        assert memory_store.save_count == 0


class TestDeferredWrites:
    """Tests for coalesced snapshot writes."""

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_write(self, container, memory_store):
        for i in range(10):
            container.commit(with_source(container.state, f"s{i}"))

        await container.flush()

        assert memory_store.save_count == 1
        payload = await memory_store.load("test_session")
        assert len(payload["content"]["sources"]) == 10

    @pytest.mark.asyncio
    async def test_separate_bursts_write_separately(self, container, memory_store):
        container.commit(with_source(container.state))
        await container.flush()
        container.commit(with_source(container.state))
        await container.flush()

        assert memory_store.save_count == 2
        payload = await memory_store.load("test_session")
        assert len(payload["content"]["sources"]) == 2

    @pytest.mark.asyncio
    async def test_flush_without_pending_write(self, container, memory_store):
        await container.flush()
        assert memory_store.save_count == 0

    @pytest.mark.asyncio
    async def test_store_failure_is_logged(self, caplog):
        container = PipelineStateContainer(store=FailingStore(), snapshot_key="k")
        container.commit(with_source(container.state))

        with caplog.at_level(logging.ERROR):
            await container.flush()

        assert "Snapshot write failed" in caplog.text
        assert await container.store.load("k") is None

    @pytest.mark.asyncio
    async def test_non_persisted_commit(self, container, memory_store):
        container.commit(with_source(container.state), persist=False)
        await container.flush()
        assert memory_store.save_count == 0
