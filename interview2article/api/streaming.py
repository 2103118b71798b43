"""NDJSON streaming for model-backed actions.

Each line is one JSON object:

    {"type": "chunk", "delta": "...", "length": 42}
    {"type": "progress", "current": 2, "total": 4}
    {"type": "result", "data": {...}}
    {"type": "error", "error": {"code": "...", "message": "..."}}

The action runs in its own task; if the client disconnects, the task is
cancelled and the stage returns to idle.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from fastapi.responses import StreamingResponse

from interview2article.llm import GenerationCancelled

from .errors import describe_error
from .response import to_jsonable

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

# action(emit) -> result; emit(event) queues one NDJSON line
StreamingAction = Callable[[Callable[[dict[str, Any]], None]], Awaitable[Any]]

_DONE = object()


def chunk_event(delta: str, accumulated: str) -> dict[str, Any]:
    return {"type": "chunk", "delta": delta, "length": len(accumulated)}


async def _events(action: StreamingAction) -> AsyncIterator[str]:
    queue: asyncio.Queue = asyncio.Queue()

    async def run() -> None:
        try:
            result = await action(queue.put_nowait)
            queue.put_nowait({"type": "result", "data": to_jsonable(result)})
        except GenerationCancelled:
            queue.put_nowait({"type": "cancelled"})
        except Exception as e:
            described = describe_error(e)
            if described is None:
                logger.exception("Streaming action failed")
                code, message = "INTERNAL_ERROR", "Unexpected error"
            else:
                _, code, message = described
            queue.put_nowait({"type": "error", "error": {"code": code, "message": message}})
        finally:
            queue.put_nowait(_DONE)

    task = asyncio.create_task(run())
    try:
        while True:
            event = await queue.get()
            if event is _DONE:
                break
            yield json.dumps(event, ensure_ascii=False) + "\n"
    finally:
        if not task.done():
            task.cancel()


def ndjson_response(action: StreamingAction) -> StreamingResponse:
    """Stream an action's chunks and final result as NDJSON."""
    return StreamingResponse(_events(action), media_type=NDJSON_MEDIA_TYPE)
