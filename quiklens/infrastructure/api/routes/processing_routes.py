from __future__ import annotations

import base64
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import ValidationError as PydanticValidationError

from quiklens.application.dtos.processing_dto import ProcessingParamsPayload, RawPreviewResponse
from quiklens.application.use_cases.process_image import ProcessImageUseCase
from quiklens.application.use_cases.raw_preview import GenerateRawPreviewUseCase
from quiklens.domain.entities.edit_params import EffectKind
from quiklens.infrastructure.api.dependencies import (
    get_current_user,
    get_process_use_case,
    get_raw_preview_use_case,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/image",
    tags=["Image Processing"],
    responses={
        400: {"description": "Bad Request - Missing file, unknown effect"},
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        422: {"description": "Unprocessable Entity - The file could not be decoded"},
    },
)


def _parse_params(raw: Optional[str]) -> ProcessingParamsPayload:
    if not raw:
        return ProcessingParamsPayload()
    try:
        return ProcessingParamsPayload.model_validate_json(raw)
    except PydanticValidationError as exc:
        logger.warning("Could not parse params JSON, using defaults: %r (%s)", raw, exc.error_count())
        return ProcessingParamsPayload()


@router.post(
    "/process",
    summary="Process Image",
    description="""
    Render one edit state of an image and return it as PNG.

    **Form fields:**
    - `imageFile` - the untouched source file (JPEG, PNG, TIFF, WEBP or camera RAW)
    - `effect` - `applyAll`, `crop`, `grayscale`, `resize`, or a slider name
    - `params` - JSON with slider values, optional `crop {left, top, width, height}`,
      optional `grayscale`, optional `width`/`height` for resizing

    **Pipeline:**
    1. RAW files are demosaiced with `dcraw_emu -w -T`
    2. EXIF orientation is applied
    3. Crop, in upright source pixels (skipped if out of bounds)
    4. Exposure, brightness, contrast, temperature, saturation, tint, sharpness
    5. Grayscale and/or resize

    The response carries `X-Image-Width` and `X-Image-Height` headers.
    """,
    response_class=Response,
    responses={200: {"content": {"image/png": {}}, "description": "The processed image"}},
)
async def process_image(
    imageFile: Optional[UploadFile] = File(None, description="Source image file"),
    effect: Optional[str] = Form(None, description="Effect to apply"),
    params: Optional[str] = Form(None, description="JSON encoded processing parameters"),
    user=Depends(get_current_user),
    uc: ProcessImageUseCase = Depends(get_process_use_case),
):
    """Apply the requested effect to the uploaded source image."""
    if imageFile is None:
        raise HTTPException(status_code=400, detail="No image file provided.")
    if not effect:
        raise HTTPException(status_code=400, detail="No effect specified.")
    try:
        kind = EffectKind(effect)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown effect: {effect}") from exc

    payload = _parse_params(params)
    data = await imageFile.read()
    filename = imageFile.filename or "image"
    logger.info("Processing %s with effect=%s for user %s", filename, kind.value, user.id)
    result = await run_in_threadpool(uc.execute, data, filename, kind, payload)
    return Response(
        content=result.data,
        media_type=result.media_type,
        headers={
            "Content-Disposition": 'inline; filename="processed_image.png"',
            "X-Image-Width": str(result.dimensions.width),
            "X-Image-Height": str(result.dimensions.height),
        },
    )


@router.post(
    "/raw-preview",
    response_model=RawPreviewResponse,
    summary="Generate RAW Preview",
    description="""
    Build a browser-displayable preview of a camera RAW file.

    The preview is a JPEG (quality 80) that fits inside 1080 x 1080 and is never
    enlarged. `originalWidth`/`originalHeight` are the full-resolution size after EXIF
    orientation (read with exiftool); crops are expressed in that space.
    Non-RAW files are previewed with Pillow.
    """,
    response_description="Preview as a data URL together with original and preview sizes",
)
async def raw_preview(
    rawImageFile: Optional[UploadFile] = File(None, description="Camera RAW file"),
    user=Depends(get_current_user),
    uc: GenerateRawPreviewUseCase = Depends(get_raw_preview_use_case),
):
    """Generate a preview and the true original dimensions for a RAW file."""
    if rawImageFile is None:
        raise HTTPException(status_code=400, detail="No image file provided.")
    data = await rawImageFile.read()
    filename = rawImageFile.filename or "inputfile"
    result = await run_in_threadpool(uc.execute, data, filename)
    encoded = base64.b64encode(result.preview).decode("ascii")
    return RawPreviewResponse(
        preview_data_url=f"data:{result.media_type};base64,{encoded}",
        original_width=result.true_original_dimensions.width,
        original_height=result.true_original_dimensions.height,
        preview_width=result.preview_dimensions.width,
        preview_height=result.preview_dimensions.height,
    )
