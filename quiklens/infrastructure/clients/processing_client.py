from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from quiklens.application.dtos.processing_dto import ProcessingParamsPayload, RawPreviewResponse
from quiklens.domain.entities.edit_params import EditParams, EffectKind
from quiklens.domain.entities.geometry import Dimensions
from quiklens.domain.entities.images import ProcessedImage, RawPreview
from quiklens.domain.errors import DecodeError, EditorError, ServiceError
from quiklens.infrastructure.imaging.codec import probe_dimensions

logger = logging.getLogger(__name__)

PROCESS_PATH = "/api/image/process"
RAW_PREVIEW_PATH = "/api/image/raw-preview"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, str):
            return message
    return f"Processing failed: {response.status_code} {response.reason_phrase}"


class HttpImageProcessingClient:
    """Calls the processing and RAW preview endpoints over HTTP.

    With an ``httpx.ASGITransport`` the calls go straight into an ASGI app in the same
    process, which is how a single deployment serves both the editor and the service.
    """

    def __init__(
        self,
        base_url: str = "http://quiklens",
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url
        self.transport = transport
        self.headers = dict(headers or {})
        self.timeout = timeout

    @classmethod
    def for_app(cls, app: Any, headers: dict[str, str] | None = None, timeout: float = 60.0) -> "HttpImageProcessingClient":
        return cls(transport=httpx.ASGITransport(app=app), headers=headers, timeout=timeout)

    async def process(
        self, image: bytes, filename: str, effect: EffectKind, params: EditParams
    ) -> ProcessedImage:
        payload = ProcessingParamsPayload.from_edit_params(params)
        response = await self._post(
            PROCESS_PATH,
            files={"imageFile": (filename, image, "application/octet-stream")},
            data={"effect": effect.value, "params": payload.model_dump_json(exclude_none=True)},
            error_cls=ServiceError,
        )
        media_type = response.headers.get("content-type", "image/png").split(";")[0]
        dimensions = await self._dimensions(response)
        return ProcessedImage(data=response.content, dimensions=dimensions, media_type=media_type)

    async def generate_preview(self, raw: bytes, filename: str) -> RawPreview:
        response = await self._post(
            RAW_PREVIEW_PATH,
            files={"rawImageFile": (filename, raw, "application/octet-stream")},
            error_cls=DecodeError,
        )
        try:
            body = RawPreviewResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise DecodeError(f"Malformed preview response: {exc}") from exc
        header, _, encoded = body.preview_data_url.partition(",")
        if not header.startswith("data:") or not encoded:
            raise DecodeError("Preview is not a data URL")
        return RawPreview(
            preview=base64.b64decode(encoded),
            preview_dimensions=body.preview_dimensions(),
            true_original_dimensions=body.original_dimensions(),
            media_type=header[len("data:"):].split(";")[0] or "image/jpeg",
        )

    async def _post(
        self, path: str, *, files: dict, data: dict | None = None, error_cls: type[EditorError]
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, transport=self.transport, headers=self.headers, timeout=self.timeout
        ) as client:
            try:
                response = await client.post(path, files=files, data=data)
            except httpx.HTTPError as exc:
                raise ServiceError(f"Processing service unreachable: {exc}") from exc
        logger.debug("POST %s -> %d (%d bytes)", path, response.status_code, len(response.content))
        if response.status_code >= 400:
            message = _error_message(response)
            if error_cls is ServiceError:
                raise ServiceError(message, status_code=response.status_code)
            raise error_cls(message)
        return response

    @staticmethod
    async def _dimensions(response: httpx.Response) -> Dimensions:
        width = response.headers.get("x-image-width")
        height = response.headers.get("x-image-height")
        if width and height:
            try:
                return Dimensions(width=int(width), height=int(height))
            except ValueError:
                logger.warning("Ignoring bad size headers %sx%s", width, height)
        # measure the returned image itself
        try:
            return await asyncio.to_thread(probe_dimensions, response.content)
        except DecodeError as exc:
            raise ServiceError(f"Processing service returned an unreadable image: {exc}") from exc
