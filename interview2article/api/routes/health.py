"""Health check endpoints."""

from fastapi import APIRouter

from interview2article.api.response import success_response
from interview2article.db import mongo
from interview2article.services import get_pipeline, get_snapshot_store

router = APIRouter(tags=["System"])


@router.get("/health")
async def health_check() -> dict:
    """Return system health status and the snapshot backend in use."""
    store = get_snapshot_store()
    payload = {"status": "ok", "snapshot_backend": store.name}
    if store.name == "mongo":
        payload["database"] = "ok" if await mongo.ping() else "unavailable"
    return success_response(payload)


@router.post("/api/connection/test")
async def test_connection() -> dict:
    """Send a minimal completion to check the AI service configuration."""
    return success_response(await get_pipeline().test_connection())
