from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

from quiklens.domain.entities.edit_params import AspectRatioOption
from quiklens.domain.entities.geometry import (
    MIN_CROP_SIZE,
    Dimensions,
    DisplayRect,
    OriginalRect,
    Point,
)
from quiklens.domain.errors import ValidationError
from quiklens.domain.services.geometry import aspect_ratio_value, clamp, round_px
from quiklens.domain.services.viewport import ViewportController

logger = logging.getLogger(__name__)

HANDLE_SIZE = 8  # screen pixels
HIT_RADIUS_FACTOR = 1.5
MIN_CROP_SIZE_SCREEN = 10  # screen pixels, divided by zoom while dragging
RATIO_TOLERANCE = 0.01


class CropHandle(str, Enum):
    TOP_LEFT = "topLeft"
    TOP_RIGHT = "topRight"
    BOTTOM_LEFT = "bottomLeft"
    BOTTOM_RIGHT = "bottomRight"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    MOVE = "move"


_MOVES_LEFT = frozenset({CropHandle.TOP_LEFT, CropHandle.BOTTOM_LEFT, CropHandle.LEFT})
_MOVES_RIGHT = frozenset({CropHandle.TOP_RIGHT, CropHandle.BOTTOM_RIGHT, CropHandle.RIGHT})
_MOVES_TOP = frozenset({CropHandle.TOP_LEFT, CropHandle.TOP_RIGHT, CropHandle.TOP})
_MOVES_BOTTOM = frozenset({CropHandle.BOTTOM_LEFT, CropHandle.BOTTOM_RIGHT, CropHandle.BOTTOM})
_HEIGHT_DRIVEN = frozenset({CropHandle.TOP, CropHandle.BOTTOM})


def resolve_aspect_ratio(
    option: AspectRatioOption, true_original: Dimensions | None
) -> float | None:
    """Numeric ratio for an option; ``original`` follows the true original image."""
    if option == AspectRatioOption.ORIGINAL:
        return true_original.aspect_ratio if true_original is not None else None
    return aspect_ratio_value(option)


def hit_test(region: DisplayRect, image_point: Point, zoom: float) -> CropHandle | None:
    """Return the handle under ``image_point``; corners win over edges, edges over the interior.

    The tolerance is a fixed number of screen pixels, so it shrinks in image space as the
    user zooms in.
    """
    radius = HANDLE_SIZE * HIT_RADIUS_FACTOR / zoom
    x, y = image_point.x, image_point.y
    corners = {
        CropHandle.TOP_LEFT: (region.left, region.top),
        CropHandle.TOP_RIGHT: (region.right, region.top),
        CropHandle.BOTTOM_LEFT: (region.left, region.bottom),
        CropHandle.BOTTOM_RIGHT: (region.right, region.bottom),
    }
    for handle, (cx, cy) in corners.items():
        if math.hypot(x - cx, y - cy) < radius:
            return handle

    if region.left - radius <= x <= region.right + radius:
        if abs(y - region.top) < radius:
            return CropHandle.TOP
        if abs(y - region.bottom) < radius:
            return CropHandle.BOTTOM
    if region.top - radius <= y <= region.bottom + radius:
        if abs(x - region.left) < radius:
            return CropHandle.LEFT
        if abs(x - region.right) < radius:
            return CropHandle.RIGHT

    if region.left < x < region.right and region.top < y < region.bottom:
        return CropHandle.MOVE
    return None


def _span(
    start: float, size: float, delta: float, moves_start: bool, moves_end: bool
) -> tuple[float, float, float | None, float | None]:
    """Resize one axis of the drag-start rectangle.

    Returns ``(start, size, fixed, moving)``; ``fixed``/``moving`` are the edge that stays
    put and the edge under the pointer, or None when this axis is not being dragged.
    """
    if moves_start:
        fixed, moving = start + size, start + delta
    elif moves_end:
        fixed, moving = start, start + size + delta
    else:
        return start, size, None, None
    return min(fixed, moving), abs(moving - fixed), fixed, moving


def _anchor(
    initial_start: float,
    initial_size: float,
    size: float,
    fixed: float | None,
    moving: float | None,
) -> float:
    """Position one axis so the edge not being dragged stays where it was.

    An axis that is not being dragged stays centred on the drag-start rectangle.
    """
    if fixed is None or moving is None:
        return initial_start + (initial_size - size) / 2
    return fixed - size if moving < fixed else fixed


def _grow_to_minimum(width: float, height: float, ratio: float, min_size: float) -> tuple[float, float]:
    if width >= min_size and height >= min_size:
        return width, height
    width = max(min_size, min_size * ratio)
    return width, width / ratio


def _to_display_rect(left: float, top: float, width: float, height: float, bounds: Dimensions) -> DisplayRect:
    left_px = int(clamp(round_px(left), 0, bounds.width - 1))
    top_px = int(clamp(round_px(top), 0, bounds.height - 1))
    width_px = int(clamp(round_px(width), 1, bounds.width - left_px))
    height_px = int(clamp(round_px(height), 1, bounds.height - top_px))
    return DisplayRect(left=left_px, top=top_px, width=width_px, height=height_px)


def apply_drag(
    initial: DisplayRect,
    handle: CropHandle,
    delta: Point,
    bounds: Dimensions,
    ratio: float | None = None,
    min_size: float = MIN_CROP_SIZE_SCREEN,
) -> DisplayRect:
    """Apply an image-space drag ``delta`` for ``handle`` to the drag-start rectangle.

    The result stays inside ``bounds``, is at least ``min_size`` on each side where the
    image allows it, and keeps ``ratio`` (width/height) when one is given.
    """
    if handle == CropHandle.MOVE:
        width = min(initial.width, bounds.width)
        height = min(initial.height, bounds.height)
        left = clamp(initial.left + delta.x, 0, bounds.width - width)
        top = clamp(initial.top + delta.y, 0, bounds.height - height)
        return _to_display_rect(left, top, width, height, bounds)

    left, width, fixed_x, moving_x = _span(
        initial.left, initial.width, delta.x, handle in _MOVES_LEFT, handle in _MOVES_RIGHT
    )
    top, height, fixed_y, moving_y = _span(
        initial.top, initial.height, delta.y, handle in _MOVES_TOP, handle in _MOVES_BOTTOM
    )

    if ratio:
        if handle in _HEIGHT_DRIVEN:
            width = height * ratio
        else:
            height = width / ratio
        width, height = _grow_to_minimum(width, height, ratio, min_size)
        left = _anchor(initial.left, initial.width, width, fixed_x, moving_x)
        top = _anchor(initial.top, initial.height, height, fixed_y, moving_y)
    else:
        width = max(width, min_size)
        height = max(height, min_size)
        left = _anchor(initial.left, initial.width, width, fixed_x, moving_x)
        top = _anchor(initial.top, initial.height, height, fixed_y, moving_y)

    # clip to the image
    if left < 0:
        width += left
        left = 0.0
    if top < 0:
        height += top
        top = 0.0
    width = min(width, bounds.width - left)
    height = min(height, bounds.height - top)

    # clipping can break the ratio: shrink whichever side is now too long
    if ratio and height > 0 and abs(width / height - ratio) > RATIO_TOLERANCE:
        if width / height > ratio:
            width = height * ratio
        else:
            height = width / ratio
        left = clamp(_anchor(initial.left, initial.width, width, fixed_x, moving_x), 0, bounds.width - width)
        top = clamp(_anchor(initial.top, initial.height, height, fixed_y, moving_y), 0, bounds.height - height)

    if width < min_size:
        width = min(min_size, bounds.width)
        left = clamp(left, 0, bounds.width - width)
    if height < min_size:
        height = min(min_size, bounds.height)
        top = clamp(top, 0, bounds.height - height)

    return _to_display_rect(left, top, width, height, bounds)


def fit_aspect_ratio(
    region: DisplayRect | None,
    option: AspectRatioOption,
    bounds: Dimensions,
    true_original: Dimensions | None,
    min_size: int = MIN_CROP_SIZE,
) -> DisplayRect:
    """Reshape an existing crop region for a newly selected aspect ratio.

    Fixed ratios keep the top-left corner and try the current width first, then the
    current height, then the largest rectangle that fits from that corner. ``original``
    uses the true original's ratio and centres the largest such rectangle.
    ``freeform`` leaves the region unchanged.
    """
    region = region or DisplayRect.covering(bounds)
    ratio = resolve_aspect_ratio(option, true_original)
    if ratio is None:
        return region

    if option == AspectRatioOption.ORIGINAL:
        width = float(bounds.width)
        height = width / ratio
        if height > bounds.height:
            height = float(bounds.height)
            width = height * ratio
        left = (bounds.width - width) / 2
        top = (bounds.height - height) / 2
    else:
        left, top = float(region.left), float(region.top)
        width = float(region.width)
        height = width / ratio
        if left + width > bounds.width or top + height > bounds.height:
            height = float(region.height)
            width = height * ratio
            if left + width > bounds.width or top + height > bounds.height:
                width = min(bounds.width - left, (bounds.height - top) * ratio)
                height = width / ratio

    if width < min_size or height < min_size:
        width, height = _grow_to_minimum(width, height, ratio, min_size)
        scale = min(1.0, bounds.width / width, bounds.height / height)
        width, height = width * scale, height * scale
        left = clamp(left, 0, bounds.width - width)
        top = clamp(top, 0, bounds.height - height)

    return _to_display_rect(left, top, width, height, bounds)


def compose_crop(
    ui_region: DisplayRect,
    base_dimensions: Dimensions,
    true_original: Dimensions,
    committed_crop: OriginalRect | None,
    min_size: int = MIN_CROP_SIZE,
) -> OriginalRect:
    """Express a crop drawn on the displayed base image in true-original coordinates.

    The displayed base shows either the whole original (possibly as a down-scaled
    preview) or exactly ``committed_crop`` scaled to ``base_dimensions``.

    Raises:
        ValidationError: if the rectangle is smaller than ``min_size`` on either side,
            in displayed or true-original pixels, after clamping.
    """
    left = max(0, ui_region.left)
    top = max(0, ui_region.top)
    width = min(ui_region.width, base_dimensions.width - left)
    height = min(ui_region.height, base_dimensions.height - top)
    if width < min_size or height < min_size:
        raise ValidationError("Crop dimensions are too small based on the current view.")

    if committed_crop is None:
        origin_x, origin_y = 0, 0
        scale_x = true_original.width / base_dimensions.width
        scale_y = true_original.height / base_dimensions.height
    else:
        origin_x, origin_y = committed_crop.left, committed_crop.top
        scale_x = committed_crop.width / base_dimensions.width
        scale_y = committed_crop.height / base_dimensions.height

    final_left = max(0, round_px(origin_x + left * scale_x))
    final_top = max(0, round_px(origin_y + top * scale_y))
    final_width = min(round_px(width * scale_x), true_original.width - final_left)
    final_height = min(round_px(height * scale_y), true_original.height - final_top)
    if final_width < min_size or final_height < min_size:
        raise ValidationError("Invalid crop dimensions after final validation against original image.")

    composed = OriginalRect(left=final_left, top=final_top, width=final_width, height=final_height)
    logger.debug("Composed %s on %s (committed=%s) into %s", ui_region, base_dimensions, committed_crop, composed)
    return composed


@dataclass(frozen=True)
class _DragState:
    handle: CropHandle
    start: Point  # canvas space
    initial: DisplayRect


class CropRegionEngine:
    """Pointer interaction with the crop rectangle: Idle -> Dragging -> Idle."""

    def __init__(self) -> None:
        self._drag: _DragState | None = None

    @property
    def active_handle(self) -> CropHandle | None:
        return self._drag.handle if self._drag else None

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    def hit_test(
        self, region: DisplayRect, canvas_point: Point, viewport: ViewportController
    ) -> CropHandle | None:
        return hit_test(region, viewport.to_image_space(canvas_point), viewport.zoom)

    def begin_drag(
        self, region: DisplayRect, canvas_point: Point, viewport: ViewportController
    ) -> CropHandle | None:
        handle = self.hit_test(region, canvas_point, viewport)
        if handle is not None:
            self._drag = _DragState(handle=handle, start=canvas_point, initial=region)
        return handle

    def drag_to(
        self,
        canvas_point: Point,
        viewport: ViewportController,
        bounds: Dimensions,
        ratio: float | None,
    ) -> DisplayRect | None:
        if self._drag is None:
            return None
        # both ends in image space so the drag is independent of zoom
        delta = viewport.to_image_space(canvas_point) - viewport.to_image_space(self._drag.start)
        return apply_drag(
            self._drag.initial,
            self._drag.handle,
            delta,
            bounds,
            ratio=ratio,
            min_size=MIN_CROP_SIZE_SCREEN / viewport.zoom,
        )

    def end_drag(self) -> None:
        self._drag = None
