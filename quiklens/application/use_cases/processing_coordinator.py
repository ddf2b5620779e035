from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import replace
from typing import Any, Callable, Protocol

from quiklens.domain.entities.edit_params import SLIDER_RANGES, EditParams, EffectKind
from quiklens.domain.entities.editing_session import EditingSession
from quiklens.domain.entities.geometry import Dimensions, OriginalRect
from quiklens.domain.entities.images import DisplayedImage, ProcessedImage, RawPreview
from quiklens.domain.errors import ServiceError, ValidationError
from quiklens.domain.services.geometry import round_px
from quiklens.domain.services.history_stack import HistoryStack

logger = logging.getLogger(__name__)

DEBOUNCE_DELAY = 0.5  # seconds


class ImageProcessingGateway(Protocol):
    """The external processing and RAW preview services."""

    async def process(
        self, image: bytes, filename: str, effect: EffectKind, params: EditParams
    ) -> ProcessedImage: ...

    async def generate_preview(self, raw: bytes, filename: str) -> RawPreview: ...


class ProcessingCoordinator:
    """Turns the editing session into requests to the processing service.

    Every request carries a sequence number. A response is applied only if it answers
    the most recently issued request, and only if the file it was issued for is still
    the loaded one; anything else is discarded. Requests are never
    cancelled once sent.
    """

    def __init__(
        self,
        session: EditingSession,
        history: HistoryStack,
        gateway: ImageProcessingGateway,
        debounce_delay: float = DEBOUNCE_DELAY,
        on_display_changed: Callable[[DisplayedImage], None] | None = None,
        on_release: Callable[[DisplayedImage], None] | None = None,
    ) -> None:
        self.session = session
        self.history = history
        self.gateway = gateway
        self.debounce_delay = debounce_delay
        self.on_display_changed = on_display_changed
        self.on_release = on_release
        self._sequence = itertools.count(1)
        self._latest_issued = 0
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._debounce_task: asyncio.Task | None = None

    @property
    def has_pending_preview(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    # --------- debounce ---------
    def schedule_adjustment_preview(self) -> bool:
        """(Re)start the debounce timer for a slider change.

        Each call cancels the pending timer, so only the last change in a burst fires.
        Returns False when previews are suppressed (crop mode or nothing loaded).
        """
        if not self.session.is_loaded or self.session.is_cropping:
            logger.debug("Adjustment preview suppressed (loaded=%s, cropping=%s)",
                         self.session.is_loaded, self.session.is_cropping)
            return False
        self.cancel_debounce()
        self._debounce_task = asyncio.get_running_loop().create_task(self._fire_after_delay())
        return True

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self.debounce_delay)
        # past this point a new slider change must not cancel the request
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        if not self.session.is_loaded or self.session.is_cropping:
            logger.debug("Debounced preview dropped: session no longer eligible")
            return
        logger.debug("Debounce settled after %.3fs", self.debounce_delay)
        try:
            await self.request_adjustment_preview()
        except ServiceError as exc:
            logger.info("Debounced adjustment preview failed: %s", exc)

    def cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    # --------- requests ---------
    async def request_adjustment_preview(self) -> bool:
        return await self._submit(EffectKind.APPLY_ALL, self.session.snapshot(), add_to_history=True)

    async def request_crop(self, final_rect: OriginalRect) -> bool:
        """Render ``final_rect`` (true-original pixels) and make it the committed crop.

        A resize recorded for the previous framing does not carry over to the new crop.
        """
        params = replace(
            self.session.snapshot(),
            committed_crop=final_rect,
            applied_crop_for_this_state=final_rect,
            output_size=None,
        )

        def commit(_: ProcessedImage) -> None:
            self.session.committed_crop = final_rect
            self.session.output_size = None

        return await self._submit(EffectKind.CROP, params, add_to_history=True, on_success=commit)

    async def request_named_effect(
        self, kind: EffectKind, overrides: dict[str, Any] | None = None
    ) -> bool:
        """Apply a named effect on top of the current state, keeping the committed crop.

        ``overrides`` may hold slider values and, for ``resize``, ``width``/``height``.
        """
        overrides = dict(overrides or {})
        params = self.session.snapshot()
        if kind == EffectKind.GRAYSCALE:
            params = replace(params, grayscale=True)
        elif kind == EffectKind.RESIZE:
            size = self._resolve_output_size(overrides.pop("width", None), overrides.pop("height", None))
            params = replace(params, output_size=size)
        sliders = {name: value for name, value in overrides.items() if value is not None}
        unknown = set(sliders) - set(SLIDER_RANGES)
        if unknown:
            raise ValidationError(f"Unknown effect parameter(s): {', '.join(sorted(unknown))}")
        params = replace(params, adjustments=params.adjustments.with_values(sliders))

        def commit(_: ProcessedImage) -> None:
            self.session.adjustments = params.adjustments
            self.session.grayscale = params.grayscale
            self.session.output_size = params.output_size

        return await self._submit(kind, params, add_to_history=True, on_success=commit)

    async def replay(self, entry: EditParams) -> bool:
        """Re-render a history entry without growing the history."""
        return await self._submit(EffectKind.APPLY_ALL, entry, add_to_history=False)

    def _resolve_output_size(self, width: Any, height: Any) -> Dimensions:
        base = self.session.base_image_dimensions
        if base is None:
            raise ValidationError("Image dimensions are not available yet.")
        if not width and not height:
            raise ValidationError("Resize needs a width or a height.")
        try:
            if width and not height:
                height = max(1, round_px(float(width) / base.aspect_ratio))
            elif height and not width:
                width = max(1, round_px(float(height) * base.aspect_ratio))
            return Dimensions(width=int(width), height=int(height))
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid resize dimensions: {exc}") from exc

    async def _submit(
        self,
        effect: EffectKind,
        params: EditParams,
        *,
        add_to_history: bool,
        on_success: Callable[[ProcessedImage], None] | None = None,
    ) -> bool:
        """Send one request; returns True if its response was applied.

        Raises:
            ServiceError: if the service failed and the request was still current.
        """
        session = self.session
        if not session.is_loaded:
            raise ValidationError("No image is loaded.")
        seq = next(self._sequence)
        self._latest_issued = seq
        generation = session.generation
        self._begin()
        logger.info("Request #%d: effect=%s file=%s", seq, effect.value, session.filename)
        try:
            result = await self.gateway.process(
                session.source_bytes, session.filename or "image", effect, params
            )
        except ServiceError as exc:
            if self._is_obsolete(seq, generation):
                logger.info("Ignoring failure of superseded request #%d: %s", seq, exc)
                return False
            session.error = str(exc)
            logger.warning("Request #%d (%s) failed: %s", seq, effect.value, exc)
            raise
        finally:
            self._end(generation)

        if self._is_obsolete(seq, generation):
            logger.info("Discarding stale response #%d (latest issued #%d)", seq, self._latest_issued)
            return False
        if on_success is not None:
            on_success(result)
        self.show(DisplayedImage(data=result.data, dimensions=result.dimensions, media_type=result.media_type))
        if add_to_history:
            self.history.push(params.recorded_on(session.base_image_dimensions))
        session.error = None
        return True

    def _is_obsolete(self, seq: int, generation: int) -> bool:
        return generation != self.session.generation or seq != self._latest_issued

    def _begin(self) -> None:
        self._in_flight += 1
        self.session.is_loading = True
        self._idle.clear()

    def _end(self, generation: int) -> None:
        # counters were reset when the file changed
        if generation != self.session.generation:
            return
        self._in_flight = max(0, self._in_flight - 1)
        if self._in_flight == 0:
            self.session.is_loading = False
            self._idle.set()

    # --------- displayed image ---------
    def show(self, image: DisplayedImage) -> None:
        """Swap in a new displayed image; the old one is released only if it differs."""
        old = self.session.displayed_image
        self.session.displayed_image = image
        self.session.base_image_dimensions = image.dimensions
        if old is not None and old.handle != image.handle:
            self.release(old)
        if self.on_display_changed is not None:
            self.on_display_changed(image)

    def release(self, image: DisplayedImage) -> None:
        logger.debug("Releasing displayed image %s", image.handle)
        if self.on_release is not None:
            self.on_release(image)

    # --------- lifecycle ---------
    def cancel_pending(self) -> None:
        """Forget the pending debounce and in-flight bookkeeping after the file changed.

        In-flight requests keep running; their results are discarded on arrival.
        """
        self.cancel_debounce()
        self._in_flight = 0
        self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no debounce is pending and no request is in flight."""
        while True:
            task = self._debounce_task
            if task is not None and not task.done():
                await asyncio.wait({task})
                continue
            if self._in_flight == 0:
                return
            await self._idle.wait()
