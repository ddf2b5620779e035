from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from quiklens.domain.entities.geometry import Dimensions


@dataclass(frozen=True)
class ProcessedImage:
    """Bytes returned by the processing service together with their pixel size."""

    data: bytes
    dimensions: Dimensions
    media_type: str = "image/png"


@dataclass(frozen=True)
class RawPreview:
    """Result of the RAW preview service."""

    preview: bytes
    preview_dimensions: Dimensions
    true_original_dimensions: Dimensions
    media_type: str = "image/jpeg"


@dataclass(frozen=True)
class DisplayedImage:
    """Handle to the image currently shown on the canvas.

    Each handle is released exactly once, after a different image has replaced it.
    """

    data: bytes
    dimensions: Dimensions
    media_type: str
    handle: str = field(default_factory=lambda: uuid.uuid4().hex)


RAW_EXTENSIONS = (".cr2", ".cr3", ".nef", ".arw", ".orf", ".raf", ".rw2", ".pef", ".srw", ".dng")


def is_raw_filename(filename: str | None) -> bool:
    """Camera RAW files are recognised by extension."""
    return bool(filename) and filename.lower().endswith(RAW_EXTENSIONS)
