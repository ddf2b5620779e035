from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from supabase import Client

from quiklens.domain.errors import ServiceError

logger = logging.getLogger(__name__)


@dataclass
class StorageResult:
    path: str
    content_type: str
    size: int


class SupabaseStorage:
    """Storage adapter for Supabase Storage with a local fake fallback."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", "exports")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))

    @property
    def is_local(self) -> bool:
        return self.disabled or self.client is None

    def upload_bytes(self, user_id: str, data: bytes, filename: str, content_type: str) -> StorageResult:
        # a unique folder per upload keeps the user-facing file name intact
        storage_path = f"{user_id}/{uuid.uuid4().hex}/{Path(filename).name}"
        if self.is_local:
            full_path = self.local_dir / storage_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
            logger.info("Stored %s locally (%d bytes)", storage_path, len(data))
            return StorageResult(path=storage_path, content_type=content_type, size=len(data))
        try:  # pragma: no cover - network
            self.client.storage.from_(self.bucket).upload(
                path=storage_path,
                file=data,
                file_options={"content-type": content_type},
            )
        except Exception as exc:  # pragma: no cover - network
            raise ServiceError(f"Storage upload failed: {exc}") from exc
        return StorageResult(path=storage_path, content_type=content_type, size=len(data))

    def public_url(self, path: str) -> str:
        if self.is_local:
            return f"/local-storage/{path}"
        return self.client.storage.from_(self.bucket).get_public_url(path)  # pragma: no cover - network

