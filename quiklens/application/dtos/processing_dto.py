"""Wire models of the image processing and RAW preview services."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from quiklens.domain.entities.edit_params import AdjustmentValues, EditParams
from quiklens.domain.entities.geometry import Dimensions, OriginalRect


class CropRegionPayload(BaseModel):
    """Crop rectangle in true-original pixels."""
    left: int = Field(..., ge=0, description="Left edge in pixels", example=200)
    top: int = Field(..., ge=0, description="Top edge in pixels", example=100)
    width: int = Field(..., gt=0, description="Width in pixels", example=800)
    height: int = Field(..., gt=0, description="Height in pixels", example=400)

    @classmethod
    def from_rect(cls, rect: OriginalRect) -> "CropRegionPayload":
        return cls(**rect.to_dict())

    def to_rect(self) -> OriginalRect:
        return OriginalRect(left=self.left, top=self.top, width=self.width, height=self.height)


class ProcessingParamsPayload(BaseModel):
    """The ``params`` form field of a processing request, JSON encoded."""
    brightness: Optional[float] = Field(None, description="Brightness multiplier (1 = unchanged)")
    exposure: Optional[float] = Field(None, description="Exposure in EV stops (0 = unchanged)")
    temperature: Optional[float] = Field(None, description="Warm (> 0) or cool (< 0), -100..100")
    contrast: Optional[float] = Field(None, description="Linear contrast, -50..50")
    saturation: Optional[float] = Field(None, description="Saturation multiplier (1 = unchanged)")
    tint: Optional[float] = Field(None, description="Magenta (> 0) or green (< 0), -100..100")
    sharpness: Optional[float] = Field(None, description="Unsharp mask strength, 0..100")
    crop: Optional[CropRegionPayload] = Field(None, description="Applied before any adjustment")
    grayscale: bool = Field(False, description="Convert to grayscale after the adjustments")
    width: Optional[int] = Field(None, gt=0, description="Resize target width")
    height: Optional[int] = Field(None, gt=0, description="Resize target height")

    @classmethod
    def from_edit_params(cls, params: EditParams) -> "ProcessingParamsPayload":
        return cls(
            **params.adjustments.to_dict(),
            crop=CropRegionPayload.from_rect(params.committed_crop) if params.committed_crop else None,
            grayscale=params.grayscale,
            width=params.output_size.width if params.output_size else None,
            height=params.output_size.height if params.output_size else None,
        )

    def adjustments(self) -> AdjustmentValues:
        return AdjustmentValues.from_dict(self.model_dump(include=set(AdjustmentValues.__dataclass_fields__)))


class RawPreviewResponse(BaseModel):
    """Preview of a camera RAW file plus the orientation-corrected size of the original."""
    model_config = ConfigDict(populate_by_name=True)

    preview_data_url: str = Field(..., alias="previewDataUrl", description="data: URL of the JPEG preview")
    original_width: int = Field(..., alias="originalWidth", description="True original width after EXIF orientation")
    original_height: int = Field(..., alias="originalHeight", description="True original height after EXIF orientation")
    preview_width: int = Field(..., alias="previewWidth", description="Preview width in pixels")
    preview_height: int = Field(..., alias="previewHeight", description="Preview height in pixels")

    def original_dimensions(self) -> Dimensions:
        return Dimensions(width=self.original_width, height=self.original_height)

    def preview_dimensions(self) -> Dimensions:
        return Dimensions(width=self.preview_width, height=self.preview_height)
