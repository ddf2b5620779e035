"""DTOs of the editing session API."""
from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field

from quiklens.application.editor import Editor
from quiklens.domain.entities.edit_params import AspectRatioOption
from quiklens.domain.entities.geometry import Dimensions, Point, Rect


class PointPayload(BaseModel):
    x: float = Field(..., description="Horizontal coordinate", example=120.0)
    y: float = Field(..., description="Vertical coordinate", example=80.0)

    @classmethod
    def from_point(cls, point: Point) -> "PointPayload":
        return cls(x=point.x, y=point.y)

    def to_point(self) -> Point:
        return Point(self.x, self.y)


class RectPayload(BaseModel):
    left: int = Field(..., description="Left edge in pixels")
    top: int = Field(..., description="Top edge in pixels")
    width: int = Field(..., description="Width in pixels")
    height: int = Field(..., description="Height in pixels")

    @classmethod
    def from_rect(cls, rect: Rect | None) -> Optional["RectPayload"]:
        return cls(**rect.to_dict()) if rect is not None else None


class DimensionsPayload(BaseModel):
    width: int = Field(..., gt=0, description="Width in pixels", example=1920)
    height: int = Field(..., gt=0, description="Height in pixels", example=1080)

    @classmethod
    def from_dimensions(cls, dims: Dimensions | None) -> Optional["DimensionsPayload"]:
        return cls(**dims.to_dict()) if dims is not None else None

    def to_dimensions(self) -> Dimensions:
        return Dimensions(width=self.width, height=self.height)


class SliderRequest(BaseModel):
    value: float = Field(..., description="New slider value; clamped to the slider's range", example=1.2)


class AspectRatioRequest(BaseModel):
    aspect_ratio: AspectRatioOption = Field(..., description="Crop aspect ratio", example="16:9")


class EffectRequest(BaseModel):
    effect: str = Field(..., description="Named effect: grayscale, resize, or a slider name", example="grayscale")
    params: Optional[dict[str, Union[float, int]]] = Field(
        None,
        description="Slider overrides and, for resize, width and/or height",
        example={"width": 800},
    )


class ZoomRequest(BaseModel):
    x: float = Field(..., description="Cursor x on the canvas")
    y: float = Field(..., description="Cursor y on the canvas")
    delta: float = Field(..., description="Wheel delta; positive zooms out", example=-100)


class PanRequest(BaseModel):
    dx: float = Field(..., description="Horizontal pan in canvas pixels")
    dy: float = Field(..., description="Vertical pan in canvas pixels")


class SessionStateResponse(BaseModel):
    """Everything the presentation layer reads from an editing session."""
    id: str = Field(..., description="Session identifier")
    filename: Optional[str] = Field(None, description="Name of the loaded file")
    is_loaded: bool = Field(..., description="A file is loaded")
    is_loading: bool = Field(..., description="A request to the processing service is in flight")
    has_pending_preview: bool = Field(False, description="A slider change is waiting for the debounce delay")
    error: Optional[str] = Field(None, description="Last user-visible error")
    zoom: float = Field(..., description="Viewport zoom factor")
    pan_offset: PointPayload = Field(..., description="Canvas position of the image origin")
    is_cropping: bool = Field(..., description="Crop mode is active")
    aspect_ratio: AspectRatioOption = Field(..., description="Selected crop aspect ratio")
    active_handle: Optional[str] = Field(None, description="Crop handle being dragged")
    ui_crop_region: Optional[RectPayload] = Field(None, description="In-progress crop, displayed-image pixels")
    committed_crop: Optional[RectPayload] = Field(None, description="Applied crop, true-original pixels")
    adjustments: dict[str, float] = Field(..., description="Current slider values")
    grayscale: bool = Field(False, description="Grayscale effect applied")
    output_size: Optional[DimensionsPayload] = Field(None, description="Resize target, if any")
    base_image_dimensions: Optional[DimensionsPayload] = Field(None, description="Size of the displayed image")
    true_original_dimensions: Optional[DimensionsPayload] = Field(None, description="Size of the source image")
    can_undo: bool
    can_redo: bool
    history_index: int = Field(..., description="History cursor, -1 when empty")
    history_length: int
    is_pristine: bool = Field(..., description="Nothing has been changed since loading")
    can_export: bool
    image_url: Optional[str] = Field(None, description="Where to fetch the displayed image")

    @classmethod
    def from_editor(cls, session_id: str, editor: Editor) -> "SessionStateResponse":
        s = editor.session
        handle = editor.crop_engine.active_handle
        return cls(
            id=session_id,
            filename=s.filename,
            is_loaded=s.is_loaded,
            is_loading=editor.is_loading,
            has_pending_preview=editor.coordinator.has_pending_preview,
            error=editor.error,
            zoom=editor.zoom,
            pan_offset=PointPayload.from_point(editor.pan_offset),
            is_cropping=editor.is_cropping,
            aspect_ratio=editor.aspect_ratio,
            active_handle=handle.value if handle is not None else None,
            ui_crop_region=RectPayload.from_rect(editor.ui_crop_region),
            committed_crop=RectPayload.from_rect(s.committed_crop),
            adjustments=editor.adjustments.to_dict(),
            grayscale=s.grayscale,
            output_size=DimensionsPayload.from_dimensions(s.output_size),
            base_image_dimensions=DimensionsPayload.from_dimensions(s.base_image_dimensions),
            true_original_dimensions=DimensionsPayload.from_dimensions(s.true_original_dimensions),
            can_undo=editor.can_undo(),
            can_redo=editor.can_redo(),
            history_index=editor.history.index,
            history_length=len(editor.history),
            is_pristine=editor.is_pristine(),
            can_export=editor.can_export(),
            image_url=f"/sessions/{session_id}/image" if editor.displayed_image is not None else None,
        )


class ExportResponse(BaseModel):
    filename: str = Field(..., description="Suggested download name", example="QuikLens_edited_photo.jpg")
    path: str = Field(..., description="Storage path of the exported file")
    url: str = Field(..., description="URL of the exported file")
    width: int
    height: int
    content_type: str
    size: int = Field(..., description="File size in bytes")


class SuccessResponse(BaseModel):
    ok: bool = Field(True, description="Indicates the operation was successful")
    message: Optional[str] = Field(None, description="Optional success message")
