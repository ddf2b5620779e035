from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from quiklens.application.dtos.processing_dto import ProcessingParamsPayload
from quiklens.domain.entities.edit_params import EffectKind
from quiklens.domain.entities.geometry import Dimensions
from quiklens.domain.entities.images import ProcessedImage, is_raw_filename
from quiklens.domain.services.processing_service import ProcessingService
from quiklens.infrastructure.imaging.codec import decode_image, encode_array, to_array
from quiklens.infrastructure.raw.toolchain import RawToolchain

logger = logging.getLogger(__name__)


def sharpen_sigma(sharpness: float) -> float:
    return 0.3 + 1.7 * float(sharpness) / 100.0


@dataclass
class ProcessImageUseCase:
    processing: ProcessingService
    raw_tools: RawToolchain

    def execute(
        self, data: bytes, filename: str, effect: EffectKind, params: ProcessingParamsPayload
    ) -> ProcessedImage:
        """
        Render one edit state from the untouched source file.

        Every request starts again from the source bytes, so nothing accumulates between
        requests. RAW files are demosaiced first; EXIF orientation is applied before the
        crop so crop coordinates are always in upright true-original pixels.
        """
        if is_raw_filename(filename):
            logger.info("RAW file %s: decoding with %s", filename, self.raw_tools.dcraw_bin)
            data = self.raw_tools.decode_to_tiff(data, filename)
        src = to_array(decode_image(data))
        out = self.apply(src, effect, params)
        height, width = out.shape[:2]
        return ProcessedImage(
            data=encode_array(out, "PNG"),
            dimensions=Dimensions(width=width, height=height),
            media_type="image/png",
        )

    def apply(
        self, src: np.ndarray, effect: EffectKind, params: ProcessingParamsPayload
    ) -> np.ndarray:
        ps = self.processing
        out = src
        h, w = src.shape[:2]

        # crop first, in the source's own pixel space
        if params.crop is not None:
            c = params.crop
            if c.left + c.width <= w and c.top + c.height <= h:
                out = ps.crop(out, c.left, c.top, c.width, c.height)
            else:
                logger.warning("Crop %s is outside the %dx%d image, skipping crop", c.model_dump(), w, h)

        adj = params.adjustments()
        if adj.exposure != 0:
            out = ps.adjust_exposure(out, adj.exposure)
        if adj.brightness != 1:
            out = ps.adjust_brightness(out, adj.brightness)
        if adj.contrast != 0:
            out = ps.adjust_contrast(out, adj.contrast)
        temperature = ps.temperature_filter(adj.temperature)
        if temperature is not None:
            out = ps.apply_channel_tint(out, temperature)
        if adj.saturation != 1:
            out = ps.adjust_saturation(out, adj.saturation)
        tint = ps.tint_filter(adj.tint)
        if tint is not None:
            out = ps.apply_channel_tint(out, tint)
        if adj.sharpness > 0:
            out = ps.sharpen(out, sharpen_sigma(adj.sharpness))

        if effect == EffectKind.GRAYSCALE or params.grayscale:
            out = ps.grayscale_luminosity(out)
        if params.width or params.height:
            out = ps.resize(out, params.width, params.height)
        return out
