from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from quiklens.domain.entities.images import RawPreview, is_raw_filename
from quiklens.infrastructure.imaging.codec import decode_image, dimensions_of, encode_image
from quiklens.infrastructure.raw.toolchain import RawToolchain

logger = logging.getLogger(__name__)

PREVIEW_MAX_SIDE = 1080
PREVIEW_QUALITY = 80


@dataclass
class GenerateRawPreviewUseCase:
    raw_tools: RawToolchain
    max_side: int = PREVIEW_MAX_SIDE
    quality: int = PREVIEW_QUALITY

    def execute(self, data: bytes, filename: str) -> RawPreview:
        """Build a bounded JPEG preview and report the true original's upright size.

        For RAW files the true size comes from exiftool, corrected for orientation; other
        files are measured after Pillow applies their EXIF orientation.
        """
        if is_raw_filename(filename):
            meta = self.raw_tools.read_metadata(data, filename)
            true_dims = meta.oriented_dimensions
            img = decode_image(self.raw_tools.decode_to_tiff(data, filename))
        else:
            logger.info("%s is not a RAW file, previewing with Pillow", filename)
            img = decode_image(data)
            true_dims = dimensions_of(img)

        preview = img.convert("RGB")
        # fit inside max_side x max_side, never enlarging
        preview.thumbnail((self.max_side, self.max_side), Image.Resampling.LANCZOS)
        jpeg = encode_image(preview, "JPEG", self.quality)
        logger.info("Preview for %s: %dx%d (original %s)", filename, preview.width, preview.height, true_dims)
        return RawPreview(
            preview=jpeg,
            preview_dimensions=dimensions_of(preview),
            true_original_dimensions=true_dims,
            media_type="image/jpeg",
        )
