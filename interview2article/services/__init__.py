"""Services package for the interview pipeline."""

from .errors import InvalidInputError, NotFoundError, PipelineError, StageBusyError
from .pipeline import InterviewPipeline, get_pipeline, set_pipeline
from .snapshot_store import (
    BaseSnapshotStore,
    InMemorySnapshotStore,
    MongoSnapshotStore,
    build_snapshot,
    get_snapshot_store,
    restore_state,
    set_snapshot_store,
)
from .state_container import PipelineStateContainer
from .styles import STYLE_REGISTRY, StyleSpec, get_style
from .word_count import count_words, estimate_read_time

__all__ = [
    # Errors
    "PipelineError",
    "InvalidInputError",
    "NotFoundError",
    "StageBusyError",
    # Pipeline
    "InterviewPipeline",
    "get_pipeline",
    "set_pipeline",
    "PipelineStateContainer",
    # Snapshots
    "BaseSnapshotStore",
    "InMemorySnapshotStore",
    "MongoSnapshotStore",
    "build_snapshot",
    "restore_state",
    "get_snapshot_store",
    "set_snapshot_store",
    # Styles and counting
    "STYLE_REGISTRY",
    "StyleSpec",
    "get_style",
    "count_words",
    "estimate_read_time",
]
