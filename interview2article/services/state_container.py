"""Pipeline state container.

Holds the single PipelineState value. Actions read `state`, build a new value
and `commit()` it; nothing mutates state in place.

Two responsibilities sit here:

- stage guard: `run_stage()` marks a stage running, rejects re-entry (and
  overlap with stages it is blocked by) with StageBusyError, and records
  done/failed (or idle on cancellation)
- snapshot writes: every persisted commit marks the container dirty and
  wakes one writer task; bursts of commits coalesce into one write
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from interview2article.llm import GenerationCancelled
from interview2article.models import PipelineState, StageName, StageState, StageStatus

from .errors import StageBusyError
from .snapshot_store import (
    SNAPSHOT_KEY,
    BaseSnapshotStore,
    build_snapshot,
    get_snapshot_store,
)

logger = logging.getLogger(__name__)


class PipelineStateContainer:
    """Owner of the pipeline state tree.

    Usage:
        container = PipelineStateContainer()
        async with container.run_stage(StageName.analysis):
            result = await stage.analyze(...)
            container.commit(container.state.model_copy(update=...))
        await container.flush()
    """

    def __init__(
        self,
        store: Optional[BaseSnapshotStore] = None,
        snapshot_key: str = SNAPSHOT_KEY,
        state: Optional[PipelineState] = None,
        write_delay: float = 0.0,
    ):
        """Initialize the container.

        Args:
            store: Snapshot store. Defaults to the configured singleton.
            snapshot_key: Slot name for snapshot writes.
            state: Initial state. Defaults to an empty pipeline.
            write_delay: Seconds the writer waits before writing, letting
                more commits coalesce.
        """
        self._store = store
        self.snapshot_key = snapshot_key
        self._state = state or PipelineState()
        self._write_delay = write_delay
        self._dirty = False
        self._writer_task: Optional[asyncio.Task] = None

    @property
    def store(self) -> BaseSnapshotStore:
        return self._store or get_snapshot_store()

    @property
    def state(self) -> PipelineState:
        return self._state

    def commit(self, state: PipelineState, persist: bool = True) -> PipelineState:
        """Replace the state value; schedule a snapshot write if `persist`."""
        self._state = state
        if persist:
            self._schedule_write()
        return state

    # ------------------------------------------------------------------
    # Stage guard
    # ------------------------------------------------------------------

    def _set_stage(self, stage: StageName, status: StageStatus, error: Optional[str] = None) -> None:
        stages = {**self._state.stages, stage: StageState(status=status, error=error)}
        streaming = self._state.streaming
        if status != StageStatus.running and stage in streaming:
            streaming = {k: v for k, v in streaming.items() if k != stage}
        self.commit(
            self._state.model_copy(update={"stages": stages, "streaming": streaming}),
            persist=False,
        )

    @asynccontextmanager
    async def run_stage(
        self,
        stage: StageName,
        blocked_by: tuple[StageName, ...] = (),
    ) -> AsyncIterator[None]:
        """Guard one run of a stage.

        Args:
            stage: Stage to mark running.
            blocked_by: Stages that must not be running at the same time.

        Raises:
            StageBusyError: If the stage, or one it is blocked by, is running.
        """
        for name in (stage, *blocked_by):
            if self._state.stage(name).is_running:
                raise StageBusyError(name.value)

        self._set_stage(stage, StageStatus.running)
        try:
            yield
        except (GenerationCancelled, asyncio.CancelledError):
            logger.info(f"Stage {stage.value} cancelled", extra={"stage": stage.value})
            self._set_stage(stage, StageStatus.idle)
            raise
        except Exception as e:
            logger.error(
                f"Stage {stage.value} failed: {e}",
                extra={"stage": stage.value, "error_type": type(e).__name__},
            )
            self._set_stage(stage, StageStatus.failed, error=str(e))
            raise
        else:
            self._set_stage(stage, StageStatus.done)

    def set_streaming(self, stage: StageName, text: str) -> None:
        """Publish the accumulated text of an in-flight stage (not persisted)."""
        streaming = {**self._state.streaming, stage: text}
        self.commit(self._state.model_copy(update={"streaming": streaming}), persist=False)

    def streaming_text(self, stage: StageName) -> str:
        return self._state.streaming.get(stage, "")

    # ------------------------------------------------------------------
    # Deferred snapshot writes
    # ------------------------------------------------------------------

    def _schedule_write(self) -> None:
        self._dirty = True
        if self._writer_task is not None and not self._writer_task.done():
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; flush() writes the pending snapshot
            return
        self._writer_task = asyncio.create_task(self._writer())

    async def _writer(self) -> None:
        while self._dirty:
            await asyncio.sleep(self._write_delay)
            self._dirty = False
            await self._write_snapshot()

    async def _write_snapshot(self) -> None:
        payload = build_snapshot(self._state)
        try:
            await self.store.save(self.snapshot_key, payload)
        except Exception as e:
            logger.error(
                f"Snapshot write failed: {e}",
                extra={"snapshot_key": self.snapshot_key, "error_type": type(e).__name__},
            )
            return
        logger.debug(f"Snapshot written to {self.snapshot_key}")

    async def flush(self) -> None:
        """Wait for the pending snapshot write, writing now if none is scheduled."""
        if self._writer_task is not None and not self._writer_task.done():
            await self._writer_task
        if self._dirty:
            self._dirty = False
            await self._write_snapshot()

    async def replace(self, state: PipelineState, persist: bool = True) -> None:
        """Swap in a whole state tree (restore/reset), dropping pending writes."""
        if self._writer_task is not None and not self._writer_task.done():
            await self._writer_task
        self._dirty = False
        self.commit(state, persist=persist)
