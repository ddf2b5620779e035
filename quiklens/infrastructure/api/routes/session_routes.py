from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from quiklens.application.dtos.session_dto import (
    AspectRatioRequest,
    DimensionsPayload,
    EffectRequest,
    ExportResponse,
    PanRequest,
    PointPayload,
    SessionStateResponse,
    SliderRequest,
    SuccessResponse,
    ZoomRequest,
)
from quiklens.application.editor import Editor
from quiklens.application.use_cases.export_image import ExportImageUseCase
from quiklens.config import get_settings
from quiklens.domain.entities.geometry import Dimensions, Point
from quiklens.infrastructure.api.dependencies import (
    get_current_user,
    get_processing_gateway,
    get_session_entry,
    get_session_registry,
    get_storage,
)
from quiklens.infrastructure.sessions.session_registry import SessionEntry, SessionRegistry
from quiklens.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/sessions",
    tags=["Editing Sessions"],
    responses={
        400: {"description": "Bad Request - The edit was rejected (e.g. crop too small)"},
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        404: {"description": "Not Found - Session does not exist or belongs to another user"},
    },
)


def _state(entry: SessionEntry) -> SessionStateResponse:
    return SessionStateResponse.from_editor(entry.id, entry.editor)


@router.post(
    "",
    response_model=SessionStateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open Editing Session",
    description="""
    Load an image into a new editing session.

    Camera RAW files (CR2, CR3, NEF, ARW, ORF, RAF, RW2, PEF, SRW, DNG) are previewed
    through the RAW preview service; other formats are read directly.
    Pass the canvas size to have the viewport fitted to it.
    """,
    responses={422: {"description": "The file could not be decoded"}},
)
async def create_session(
    file: UploadFile = File(..., description="Image file to edit"),
    container_width: Optional[int] = Form(None, gt=0, description="Canvas width in pixels"),
    container_height: Optional[int] = Form(None, gt=0, description="Canvas height in pixels"),
    user=Depends(get_current_user),
    gateway=Depends(get_processing_gateway),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Create a session and load the uploaded file into it."""
    container = None
    if container_width and container_height:
        container = Dimensions(width=container_width, height=container_height)
    editor = Editor(gateway, settings=get_settings(), container=container)
    data = await file.read()
    await editor.load_file(data, file.filename or "image")
    entry = registry.add(user.id, editor)
    return _state(entry)


@router.get("/{session_id}", response_model=SessionStateResponse, summary="Get Session State")
async def get_session(
    wait: bool = Query(False, description="Wait for pending previews and in-flight requests"),
    entry: SessionEntry = Depends(get_session_entry),
):
    if wait:
        await entry.editor.wait_idle()
    return _state(entry)


@router.get(
    "/{session_id}/image",
    response_class=Response,
    summary="Get Displayed Image",
    responses={200: {"content": {"image/png": {}, "image/jpeg": {}}}},
)
async def get_session_image(entry: SessionEntry = Depends(get_session_entry)):
    image = entry.editor.displayed_image
    if image is None:
        raise HTTPException(status_code=404, detail="No image is displayed")
    return Response(
        content=image.data,
        media_type=image.media_type,
        headers={
            "X-Image-Width": str(image.dimensions.width),
            "X-Image-Height": str(image.dimensions.height),
        },
    )


@router.delete("/{session_id}", response_model=SuccessResponse, summary="Close Session")
async def close_session(
    session_id: str,
    user=Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
):
    entry = registry.remove(session_id, user.id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    entry.editor.close()
    return SuccessResponse(message=f"Session {session_id} closed")


@router.delete("/{session_id}/error", response_model=SessionStateResponse, summary="Dismiss Error")
async def clear_error(entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.clear_error()
    return _state(entry)


@router.put("/{session_id}/sliders/{name}", response_model=SessionStateResponse, summary="Set Slider")
async def set_slider(name: str, body: SliderRequest, entry: SessionEntry = Depends(get_session_entry)):
    """Change one slider. The preview is re-rendered once the slider settles."""
    entry.editor.set_slider(name, body.value)
    return _state(entry)


@router.post("/{session_id}/crop/toggle", response_model=SessionStateResponse, summary="Toggle Crop Mode")
async def toggle_crop(entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.toggle_crop_mode()
    return _state(entry)


@router.put("/{session_id}/crop/aspect-ratio", response_model=SessionStateResponse, summary="Set Aspect Ratio")
async def set_aspect_ratio(body: AspectRatioRequest, entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.set_aspect_ratio(body.aspect_ratio)
    return _state(entry)


@router.post("/{session_id}/crop/commit", response_model=SessionStateResponse, summary="Apply Crop")
async def commit_crop(entry: SessionEntry = Depends(get_session_entry)):
    """Apply the in-progress crop. Service failures are reported in ``error``."""
    await entry.editor.commit_crop()
    return _state(entry)


@router.post("/{session_id}/pointer/down", response_model=SessionStateResponse, summary="Pointer Down")
async def pointer_down(body: PointPayload, entry: SessionEntry = Depends(get_session_entry)):
    """Start dragging a crop handle, or start panning when no handle is hit."""
    entry.editor.pointer_down(body.to_point())
    return _state(entry)


@router.post("/{session_id}/pointer/move", response_model=SessionStateResponse, summary="Pointer Move")
async def pointer_move(body: PointPayload, entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.pointer_move(body.to_point())
    return _state(entry)


@router.post("/{session_id}/pointer/up", response_model=SessionStateResponse, summary="Pointer Up")
async def pointer_up(entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.pointer_up()
    return _state(entry)


@router.post("/{session_id}/effects", response_model=SessionStateResponse, summary="Apply Named Effect")
async def apply_effect(body: EffectRequest, entry: SessionEntry = Depends(get_session_entry)):
    await entry.editor.apply_named_effect(body.effect, body.params)
    return _state(entry)


@router.post("/{session_id}/undo", response_model=SessionStateResponse, summary="Undo")
async def undo(entry: SessionEntry = Depends(get_session_entry)):
    await entry.editor.undo()
    return _state(entry)


@router.post("/{session_id}/redo", response_model=SessionStateResponse, summary="Redo")
async def redo(entry: SessionEntry = Depends(get_session_entry)):
    await entry.editor.redo()
    return _state(entry)


@router.post("/{session_id}/viewport/fit", response_model=SessionStateResponse, summary="Fit To Container")
async def fit_viewport(body: DimensionsPayload, entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.fit_to_container(body.to_dimensions())
    return _state(entry)


@router.post("/{session_id}/viewport/zoom", response_model=SessionStateResponse, summary="Wheel Zoom")
async def zoom_viewport(body: ZoomRequest, entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.wheel(Point(body.x, body.y), body.delta)
    return _state(entry)


@router.post("/{session_id}/viewport/pan", response_model=SessionStateResponse, summary="Pan")
async def pan_viewport(body: PanRequest, entry: SessionEntry = Depends(get_session_entry)):
    entry.editor.pan(Point(body.dx, body.dy))
    return _state(entry)


@router.post("/{session_id}/export", response_model=ExportResponse, summary="Export Image")
async def export_image(
    entry: SessionEntry = Depends(get_session_entry),
    storage: SupabaseStorage = Depends(get_storage),
):
    """Store the displayed image as ``QuikLens_{edited|original}_{name}.{jpg|png}``."""
    result = ExportImageUseCase(storage).execute(entry.user_id, entry.editor)
    return ExportResponse(
        filename=result.filename,
        path=result.stored.path,
        url=result.url,
        width=result.dimensions.width,
        height=result.dimensions.height,
        content_type=result.stored.content_type,
        size=result.stored.size,
    )
