from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from quiklens.application.use_cases.processing_coordinator import (
    ImageProcessingGateway,
    ProcessingCoordinator,
)
from quiklens.config import EditorSettings, get_settings
from quiklens.domain.entities.edit_params import (
    NAMED_EFFECTS,
    AdjustmentValues,
    AspectRatioOption,
    EditParams,
    EffectKind,
)
from quiklens.domain.entities.editing_session import EditingSession
from quiklens.domain.entities.geometry import Dimensions, DisplayRect, Point
from quiklens.domain.entities.images import DisplayedImage, is_raw_filename
from quiklens.domain.errors import DecodeError, ServiceError, ValidationError
from quiklens.domain.services.crop_engine import (
    CropHandle,
    CropRegionEngine,
    compose_crop,
    fit_aspect_ratio,
    resolve_aspect_ratio,
)
from quiklens.domain.services.history_stack import HistoryStack
from quiklens.domain.services.viewport import ViewportController
from quiklens.infrastructure.imaging.codec import decode_image, dimensions_of, media_type_of

logger = logging.getLogger(__name__)


def _decode_local(data: bytes) -> tuple[Dimensions, str]:
    img = decode_image(data)
    return dimensions_of(img), media_type_of(img)


class Editor:
    """One open file: the operations a presentation layer drives.

    Pointer and wheel handlers are synchronous. Anything that talks to the processing
    service is a coroutine and must run on the event loop that owns this editor.
    """

    def __init__(
        self,
        gateway: ImageProcessingGateway,
        settings: EditorSettings | None = None,
        container: Dimensions | None = None,
        on_release: Callable[[DisplayedImage], None] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.gateway = gateway
        self.session = EditingSession()
        self.history = HistoryStack(settings.max_history_length)
        self.viewport = ViewportController()
        self.crop_engine = CropRegionEngine()
        self.container = container
        self.coordinator = ProcessingCoordinator(
            self.session,
            self.history,
            gateway,
            debounce_delay=settings.debounce_delay,
            on_display_changed=self._on_display_changed,
            on_release=on_release,
        )

    # --------- read accessors ---------
    @property
    def zoom(self) -> float:
        return self.viewport.zoom

    @property
    def pan_offset(self) -> Point:
        return self.viewport.pan_offset

    @property
    def ui_crop_region(self) -> DisplayRect | None:
        return self.session.ui_crop_region

    @property
    def adjustments(self) -> AdjustmentValues:
        return self.session.adjustments

    @property
    def is_loading(self) -> bool:
        return self.session.is_loading

    @property
    def error(self) -> str | None:
        return self.session.error

    @property
    def is_cropping(self) -> bool:
        return self.session.is_cropping

    @property
    def aspect_ratio(self) -> AspectRatioOption:
        return self.session.aspect_ratio

    @property
    def displayed_image(self) -> DisplayedImage | None:
        return self.session.displayed_image

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def can_export(self) -> bool:
        return self.session.displayed_image is not None

    def is_pristine(self) -> bool:
        s = self.session
        return (
            self.history.index <= 0
            and s.committed_crop is None
            and s.adjustments.is_default()
            and not s.grayscale
            and s.output_size is None
        )

    # --------- file lifecycle ---------
    async def load_file(self, data: bytes, filename: str) -> None:
        """Replace the open file; RAW files go through the preview service.

        Raises:
            DecodeError: the file could not be turned into a preview; nothing stays loaded.
        """
        self._discard_current()
        generation = self.session.generation
        self.session.is_loading = True
        try:
            if is_raw_filename(filename):
                preview = await self.gateway.generate_preview(data, filename)
                image = DisplayedImage(
                    data=preview.preview,
                    dimensions=preview.preview_dimensions,
                    media_type=preview.media_type,
                )
                true_dims = preview.true_original_dimensions
                media_type = "image/x-raw"
            else:
                dims, media_type = await asyncio.to_thread(_decode_local, data)
                image = DisplayedImage(data=data, dimensions=dims, media_type=media_type)
                true_dims = dims
        except (DecodeError, ServiceError) as exc:
            if generation != self.session.generation:
                logger.info("Ignoring failed load of superseded file %s: %s", filename, exc)
                return
            self.session.reset()
            self.history.reset()
            self.session.error = f"Could not load {filename}: {exc}"
            logger.warning("Load of %s failed: %s", filename, exc)
            raise DecodeError(str(exc)) from exc

        if generation != self.session.generation:
            logger.info("Discarding load of %s: another file replaced it", filename)
            return
        self.session.source_bytes = data
        self.session.filename = filename
        self.session.source_media_type = media_type
        self.session.true_original_dimensions = true_dims
        self.session.is_loading = False
        self.coordinator.show(image)
        self.history.reset(EditParams(source_base_dimensions=image.dimensions))
        logger.info("Loaded %s: original %s, displayed %s", filename, true_dims, image.dimensions)

    def close(self) -> None:
        self._discard_current()
        self.history.reset()

    def _discard_current(self) -> None:
        displayed = self.session.displayed_image
        self.session.reset()
        self.coordinator.cancel_pending()
        self.crop_engine.end_drag()
        self.viewport.reset()
        if displayed is not None:
            self.coordinator.release(displayed)

    # --------- sliders ---------
    def set_slider(self, name: str, value: float) -> bool:
        """Change one slider; returns True if a debounced preview was scheduled."""
        self.session.adjustments = self.session.adjustments.with_value(name, value)
        return self.coordinator.schedule_adjustment_preview()

    # --------- crop ---------
    def toggle_crop_mode(self) -> bool:
        s = self.session
        if not s.is_loaded:
            return False
        s.is_cropping = not s.is_cropping
        self.crop_engine.end_drag()
        if s.is_cropping:
            s.ui_crop_region = DisplayRect.covering(s.base_image_dimensions)
            s.aspect_ratio = AspectRatioOption.FREEFORM
        else:
            s.ui_crop_region = None
        return s.is_cropping

    def set_aspect_ratio(self, option: AspectRatioOption | str) -> None:
        try:
            option = AspectRatioOption(option)
        except ValueError as exc:
            raise ValidationError(f"Unknown aspect ratio: {option}") from exc
        s = self.session
        s.aspect_ratio = option
        if s.is_cropping and s.ui_crop_region is not None and s.base_image_dimensions is not None:
            s.ui_crop_region = fit_aspect_ratio(
                s.ui_crop_region, option, s.base_image_dimensions, s.true_original_dimensions
            )

    async def commit_crop(self) -> bool:
        """Compose the UI region into true-original space and render it.

        Raises:
            ValidationError: not cropping, or the region is below the minimum size.
        """
        s = self.session
        if not s.is_cropping or s.ui_crop_region is None:
            raise ValidationError("Crop mode is not active.")
        if s.base_image_dimensions is None or s.true_original_dimensions is None:
            raise ValidationError("Cannot apply crop: required image data is missing.")
        try:
            final = compose_crop(
                s.ui_crop_region, s.base_image_dimensions, s.true_original_dimensions, s.committed_crop
            )
        except ValidationError as exc:
            s.error = str(exc)
            raise
        try:
            applied = await self.coordinator.request_crop(final)
        except ServiceError:
            return False
        if applied:
            s.is_cropping = False
            s.ui_crop_region = None
            self.crop_engine.end_drag()
        return applied

    # --------- named effects ---------
    async def apply_named_effect(
        self, kind: EffectKind | str, overrides: dict[str, Any] | None = None
    ) -> bool:
        try:
            kind = EffectKind(kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown effect: {kind}") from exc
        if kind not in NAMED_EFFECTS:
            raise ValidationError(f"{kind.value} cannot be applied as a named effect")
        try:
            return await self.coordinator.request_named_effect(kind, overrides)
        except ServiceError:
            return False

    # --------- history ---------
    async def undo(self) -> bool:
        if not self.history.can_undo():
            return False
        return await self._replay(self.history.undo(), rollback=self.history.redo)

    async def redo(self) -> bool:
        if not self.history.can_redo():
            return False
        return await self._replay(self.history.redo(), rollback=self.history.undo)

    async def _replay(self, entry: EditParams, rollback: Callable[[], EditParams | None]) -> bool:
        # a pending slider change is superseded by the restored state
        self.coordinator.cancel_debounce()
        self.crop_engine.end_drag()
        self.session.restore(entry)
        generation = self.session.generation
        try:
            return await self.coordinator.replay(entry)
        except ServiceError as exc:
            if generation != self.session.generation or self.history.current is not entry:
                return False
            previous = rollback()
            if previous is not None:
                self.session.restore(previous)
            logger.info("Replay failed, history cursor restored to %d: %s", self.history.index, exc)
            return False

    # --------- pointer / viewport ---------
    def pointer_down(self, canvas_point: Point) -> CropHandle | None:
        """Start a crop drag if a handle is hit in crop mode, else start panning."""
        s = self.session
        if s.is_cropping and s.ui_crop_region is not None:
            handle = self.crop_engine.begin_drag(s.ui_crop_region, canvas_point, self.viewport)
            if handle is not None:
                return handle
        self.viewport.start_pan(canvas_point)
        return None

    def pointer_move(self, canvas_point: Point) -> None:
        s = self.session
        if self.crop_engine.is_dragging and s.base_image_dimensions is not None:
            ratio = resolve_aspect_ratio(s.aspect_ratio, s.true_original_dimensions)
            region = self.crop_engine.drag_to(canvas_point, self.viewport, s.base_image_dimensions, ratio)
            if region is not None:
                s.ui_crop_region = region
        elif self.viewport.is_panning:
            self.viewport.drag_pan(canvas_point)

    def pointer_up(self) -> None:
        self.crop_engine.end_drag()
        self.viewport.end_pan()

    def wheel(self, canvas_point: Point, delta: float) -> None:
        self.viewport.zoom_at(canvas_point, delta)

    def pan(self, delta: Point) -> None:
        self.viewport.pan(delta)

    def fit_to_container(self, container: Dimensions | None = None) -> None:
        if container is not None:
            self.container = container
        if self.container is not None and self.session.base_image_dimensions is not None:
            self.viewport.fit_to_container(self.session.base_image_dimensions, self.container)

    def _on_display_changed(self, image: DisplayedImage) -> None:
        self.fit_to_container()

    # --------- misc ---------
    def export_filename(self) -> str:
        if not self.can_export():
            raise ValidationError("No image to export.")
        suffix = "_original" if self.is_pristine() else "_edited"
        stem = Path(self.session.filename or "image").stem or "image"
        ext = "jpg" if self.session.source_media_type == "image/jpeg" else "png"
        return f"QuikLens{suffix}_{stem}.{ext}"

    def clear_error(self) -> None:
        self.session.error = None

    async def wait_idle(self) -> None:
        await self.coordinator.wait_idle()
