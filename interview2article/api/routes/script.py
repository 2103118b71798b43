"""Script synthesis endpoints.

Quick mode:
- POST /api/scripts/quick: transcript straight to a styled article

Outline mode:
- POST /api/scripts/outline: plan the article (clears sections and draft)
- POST /api/scripts/sections/{index}: write one section
- POST /api/scripts/sections: write all sections in order, then merge
- POST /api/scripts/draft/merge: derive the draft from the sections
- POST /api/scripts/polish: draft to a styled final article

Shared:
- PUT /api/scripts/{kind}/{style}: manual edit
- POST /api/scripts/style, PUT /api/scripts/mode: switch style / mode
- GET /api/scripts/{kind}/{style}/export: download as markdown, txt or html

All responses use the { data, error } envelope pattern, except `?stream=true`
variants and exports.
"""

from typing import Annotated, Optional

from fastapi import APIRouter
from fastapi.responses import Response
from pydantic import BaseModel, Field

from interview2article.api.response import success_response
from interview2article.api.streaming import chunk_event, ndjson_response
from interview2article.models import GenerationMode, ScriptKind
from interview2article.services import get_pipeline
from interview2article.services.script_export import ExportFormat
from interview2article.services.styles import list_styles

router = APIRouter(prefix="/api/scripts", tags=["Scripts"])


class StyleRequest(BaseModel):
    style: Optional[str] = None


class ModeRequest(BaseModel):
    mode: GenerationMode


class EditScriptRequest(BaseModel):
    content: Annotated[str, Field(min_length=1)]


@router.get("/styles")
async def get_styles() -> dict:
    return success_response([
        {
            "name": s.name,
            "label": s.label,
            "description": s.description,
            "temperature": s.temperature,
            "template_id": s.template_id,
        }
        for s in list_styles()
    ])


@router.post("/quick")
async def generate_quick_script(request: StyleRequest, stream: bool = False):
    pipeline = get_pipeline()
    if stream:
        return ndjson_response(
            lambda emit: pipeline.generate_quick_script(
                request.style,
                on_chunk=lambda delta, acc: emit(chunk_event(delta, acc)),
            )
        )
    return success_response(await pipeline.generate_quick_script(request.style))


@router.post("/outline")
async def generate_outline(request: StyleRequest, stream: bool = False):
    pipeline = get_pipeline()
    if stream:
        return ndjson_response(
            lambda emit: pipeline.generate_outline(
                request.style,
                on_chunk=lambda delta, acc: emit(chunk_event(delta, acc)),
            )
        )
    return success_response(await pipeline.generate_outline(request.style))


@router.post("/sections/{index}")
async def generate_section(index: int, stream: bool = False):
    pipeline = get_pipeline()
    if stream:
        return ndjson_response(
            lambda emit: pipeline.generate_section(
                index,
                on_chunk=lambda delta, acc: emit(chunk_event(delta, acc)),
            )
        )
    text = await pipeline.generate_section(index)
    return success_response({"index": index, "content": text})


@router.post("/sections")
async def generate_all_sections(stream: bool = False):
    """Write every section in order, then merge the draft."""
    pipeline = get_pipeline()
    if stream:
        return ndjson_response(
            lambda emit: pipeline.generate_all_sections(
                on_progress=lambda current, total: emit(
                    {"type": "progress", "current": current, "total": total}
                ),
                on_chunk=lambda delta, acc: emit(chunk_event(delta, acc)),
            )
        )
    draft = await pipeline.generate_all_sections()
    return success_response({"sections": pipeline.state.result.sections, "draft": draft})


@router.post("/draft/merge")
async def merge_draft() -> dict:
    """Merge sections into the draft; `data` is null while sections are missing."""
    return success_response(get_pipeline().merge_draft())


@router.post("/polish")
async def polish(request: StyleRequest, stream: bool = False):
    pipeline = get_pipeline()
    if stream:
        return ndjson_response(
            lambda emit: pipeline.polish(
                request.style,
                on_chunk=lambda delta, acc: emit(chunk_event(delta, acc)),
            )
        )
    return success_response(await pipeline.polish(request.style))


@router.post("/style")
async def switch_style(request: StyleRequest) -> dict:
    """Show a style in the active mode, generating it if needed."""
    pipeline = get_pipeline()
    return success_response(await pipeline.switch_style(request.style or "default"))


@router.put("/mode")
async def switch_mode(request: ModeRequest) -> dict:
    return success_response({"mode": get_pipeline().switch_mode(request.mode)})


@router.put("/{kind}/{style}")
async def edit_script(kind: ScriptKind, style: str, request: EditScriptRequest) -> dict:
    return success_response(get_pipeline().edit_script(kind, style, request.content))


@router.get("/{kind}/{style}/export")
async def export_script(
    kind: ScriptKind,
    style: str,
    format: ExportFormat = ExportFormat.markdown,
) -> Response:
    text, filename, media_type = get_pipeline().export_script(kind, style, format)
    return Response(
        content=text,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
