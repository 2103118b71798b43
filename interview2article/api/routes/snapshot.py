"""Snapshot endpoints: save, restore and reset the pipeline state."""

from fastapi import APIRouter

from interview2article.api.response import success_response
from interview2article.services import build_snapshot, get_pipeline

router = APIRouter(prefix="/api/snapshot", tags=["Snapshot"])


@router.get("")
async def get_snapshot() -> dict:
    """The payload that would be persisted right now."""
    return success_response(build_snapshot(get_pipeline().state))


@router.post("/save")
async def save_snapshot() -> dict:
    """Force the pending snapshot write."""
    await get_pipeline().save_snapshot()
    return success_response({"saved": True})


@router.post("/restore")
async def restore_snapshot() -> dict:
    pipeline = get_pipeline()
    restored = await pipeline.load_snapshot()
    return success_response({"restored": restored, "state": pipeline.state})


@router.post("/reset")
async def reset() -> dict:
    """Discard all state and clear the persisted snapshot."""
    return success_response(await get_pipeline().reset())
