from __future__ import annotations

import logging

from quiklens.domain.entities.geometry import Dimensions, Point
from quiklens.domain.services.geometry import clamp, to_canvas_space, to_image_space

logger = logging.getLogger(__name__)

MIN_ZOOM = 0.1
MAX_ZOOM = 10.0
ZOOM_SENSITIVITY = 0.001


class ViewportController:
    """Zoom level and pan offset of the canvas.

    ``pan_offset`` is the canvas position of the image origin, so a canvas point maps to
    image space as ``(p - pan_offset) / zoom``. Zoom is kept in ``[MIN_ZOOM, MAX_ZOOM]``;
    panning is not bounded.
    """

    def __init__(self, zoom: float = 1.0, pan_offset: Point = Point(0.0, 0.0)) -> None:
        self.zoom = clamp(float(zoom), MIN_ZOOM, MAX_ZOOM)
        self.pan_offset = pan_offset
        self._last_pan_point: Point | None = None

    @property
    def is_panning(self) -> bool:
        return self._last_pan_point is not None

    def to_image_space(self, canvas_point: Point) -> Point:
        return to_image_space(canvas_point, self.pan_offset, self.zoom)

    def to_canvas_space(self, image_point: Point) -> Point:
        return to_canvas_space(image_point, self.pan_offset, self.zoom)

    def reset(self) -> None:
        self.zoom = 1.0
        self.pan_offset = Point(0.0, 0.0)
        self._last_pan_point = None

    def fit_to_container(self, image_dims: Dimensions, container_dims: Dimensions) -> None:
        """Inscribe the image in the container, letterboxed on one axis, and center it."""
        if image_dims.aspect_ratio > container_dims.aspect_ratio:
            zoom = container_dims.width / image_dims.width
        else:
            zoom = container_dims.height / image_dims.height
        self.zoom = clamp(zoom, MIN_ZOOM, MAX_ZOOM)
        self.pan_offset = Point(
            (container_dims.width - image_dims.width * self.zoom) / 2,
            (container_dims.height - image_dims.height * self.zoom) / 2,
        )
        logger.debug("Fitted %s into %s: zoom=%.4f pan=%s", image_dims, container_dims, self.zoom, self.pan_offset)

    def zoom_at(self, canvas_point: Point, wheel_delta: float) -> None:
        """Zoom by a wheel delta, keeping the image point under the cursor fixed."""
        anchor = self.to_image_space(canvas_point)
        self.zoom = clamp(self.zoom * (1 - wheel_delta * ZOOM_SENSITIVITY), MIN_ZOOM, MAX_ZOOM)
        self.pan_offset = Point(
            canvas_point.x - anchor.x * self.zoom,
            canvas_point.y - anchor.y * self.zoom,
        )

    def pan(self, delta: Point) -> None:
        self.pan_offset = self.pan_offset + delta

    # click-drag panning
    def start_pan(self, canvas_point: Point) -> None:
        self._last_pan_point = canvas_point

    def drag_pan(self, canvas_point: Point) -> None:
        if self._last_pan_point is None:
            return
        self.pan(canvas_point - self._last_pan_point)
        self._last_pan_point = canvas_point

    def end_pan(self) -> None:
        self._last_pan_point = None
