"""Pipeline snapshot persistence.

A snapshot is the state tree minus its transient fields (stage statuses,
stage errors, streaming buffers), plus `version` and `saved_at`. It lives
in one key-value slot.

Backends:
- memory: process-local dict (default)
- mongo: one document per key in the `pipeline_snapshots` collection

Configuration (env vars):
- SNAPSHOT_BACKEND: "memory" or "mongo" (default: "memory")
- SNAPSHOT_KEY: slot name (default: "interview_session_data")
"""

from __future__ import annotations

import copy
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import ValidationError

from interview2article.db.mongo import get_collection
from interview2article.models import (
    SNAPSHOT_VERSION,
    TRANSIENT_FIELDS,
    PipelineSnapshot,
    PipelineState,
)

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

SNAPSHOT_BACKEND = os.getenv("SNAPSHOT_BACKEND", "memory")
SNAPSHOT_KEY = os.getenv("SNAPSHOT_KEY", "interview_session_data")

COLLECTION_NAME = "pipeline_snapshots"


def build_snapshot(state: PipelineState) -> dict[str, Any]:
    """Serialize the durable part of the state to a JSON-safe dict."""
    durable = {
        name: getattr(state, name)
        for name in PipelineState.model_fields
        if name not in TRANSIENT_FIELDS
    }
    return PipelineSnapshot(**durable).model_dump(mode="json")


def restore_state(payload: dict[str, Any]) -> PipelineState:
    """Rebuild a PipelineState from a snapshot payload.

    Transient fields come back at their defaults: every stage idle, no
    streaming buffers.

    Raises:
        InvalidInputError: If the payload does not match the snapshot schema.
    """
    try:
        snapshot = PipelineSnapshot.model_validate(payload)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid snapshot payload: {e.error_count()} errors") from e

    if snapshot.version != SNAPSHOT_VERSION:
        logger.warning(
            f"Restoring snapshot version {snapshot.version} (current {SNAPSHOT_VERSION})"
        )

    return PipelineState(
        content=snapshot.content,
        session=snapshot.session,
        result=snapshot.result,
    )


class BaseSnapshotStore(ABC):
    """Key-value slot for snapshot payloads."""

    name: str = "base"

    @abstractmethod
    async def save(self, key: str, payload: dict[str, Any]) -> None:
        """Write a payload, replacing any previous one."""
        ...

    @abstractmethod
    async def load(self, key: str) -> Optional[dict[str, Any]]:
        """Read a payload, or None if the slot is empty."""
        ...

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Empty the slot. Clearing an empty slot is not an error."""
        ...


class InMemorySnapshotStore(BaseSnapshotStore):
    """Process-local store; lost on restart."""

    name = "memory"

    def __init__(self):
        self._slots: dict[str, dict[str, Any]] = {}

    async def save(self, key: str, payload: dict[str, Any]) -> None:
        self._slots[key] = copy.deepcopy(payload)

    async def load(self, key: str) -> Optional[dict[str, Any]]:
        payload = self._slots.get(key)
        return copy.deepcopy(payload) if payload is not None else None

    async def clear(self, key: str) -> None:
        self._slots.pop(key, None)


class MongoSnapshotStore(BaseSnapshotStore):
    """MongoDB-backed store using the shared Motor client."""

    name = "mongo"

    def __init__(self, collection_name: str = COLLECTION_NAME):
        self._collection_name = collection_name

    async def _collection(self):
        return await get_collection(self._collection_name)

    async def save(self, key: str, payload: dict[str, Any]) -> None:
        collection = await self._collection()
        await collection.replace_one(
            {"_id": key},
            {"_id": key, "payload": payload, "saved_at": payload.get("saved_at")},
            upsert=True,
        )

    async def load(self, key: str) -> Optional[dict[str, Any]]:
        collection = await self._collection()
        doc = await collection.find_one({"_id": key})
        if doc is None:
            return None
        return doc.get("payload")

    async def clear(self, key: str) -> None:
        collection = await self._collection()
        await collection.delete_one({"_id": key})


# Module-level singleton instance
_default_store: Optional[BaseSnapshotStore] = None


def create_snapshot_store(backend: str | None = None) -> BaseSnapshotStore:
    """Build a store for the configured backend.

    Raises:
        ValueError: If the backend name is not recognized.
    """
    backend = backend or SNAPSHOT_BACKEND
    if backend == "memory":
        return InMemorySnapshotStore()
    if backend == "mongo":
        return MongoSnapshotStore()
    raise ValueError(f"Unknown snapshot backend: {backend}. Available: ['memory', 'mongo']")


def get_snapshot_store() -> BaseSnapshotStore:
    """Get the default snapshot store singleton."""
    global _default_store
    if _default_store is None:
        _default_store = create_snapshot_store()
    return _default_store


def set_snapshot_store(store: BaseSnapshotStore | None) -> None:
    """Replace the default store (for testing)."""
    global _default_store
    _default_store = store
