from __future__ import annotations

import logging
from dataclasses import dataclass

from quiklens.application.editor import Editor
from quiklens.domain.entities.geometry import Dimensions
from quiklens.domain.errors import ValidationError
from quiklens.infrastructure.imaging.codec import decode_image, encode_image
from quiklens.infrastructure.storage.supabase_storage import StorageResult, SupabaseStorage

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    filename: str
    stored: StorageResult
    dimensions: Dimensions
    url: str


@dataclass
class ExportImageUseCase:
    storage: SupabaseStorage

    def execute(self, user_id: str, editor: Editor) -> ExportResult:
        """Store the displayed image under its export name, re-encoding if the extension asks for it."""
        image = editor.displayed_image
        if image is None:
            raise ValidationError("No image to export.")
        filename = editor.export_filename()
        content_type = "image/jpeg" if filename.endswith(".jpg") else "image/png"
        data = image.data
        if image.media_type != content_type:
            fmt = "JPEG" if content_type == "image/jpeg" else "PNG"
            data = encode_image(decode_image(image.data), fmt)
        stored = self.storage.upload_bytes(user_id, data, filename, content_type)
        logger.info("Exported %s for user %s", filename, user_id)
        return ExportResult(
            filename=filename,
            stored=stored,
            dimensions=image.dimensions,
            url=self.storage.public_url(stored.path),
        )
