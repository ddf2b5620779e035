from __future__ import annotations

import math

from quiklens.domain.entities.edit_params import AspectRatioOption
from quiklens.domain.entities.geometry import Point

_ASPECT_RATIOS: dict[AspectRatioOption, float] = {
    AspectRatioOption.SQUARE: 1.0,
    AspectRatioOption.LANDSCAPE_16_9: 16 / 9,
    AspectRatioOption.PORTRAIT_9_16: 9 / 16,
    AspectRatioOption.STANDARD_4_3: 4 / 3,
    AspectRatioOption.PORTRAIT_3_4: 3 / 4,
}


# canvas -> image: (p - pan) / zoom
def to_image_space(canvas_point: Point, pan_offset: Point, zoom: float) -> Point:
    return Point(
        (canvas_point.x - pan_offset.x) / zoom,
        (canvas_point.y - pan_offset.y) / zoom,
    )


# image -> canvas: p * zoom + pan
def to_canvas_space(image_point: Point, pan_offset: Point, zoom: float) -> Point:
    return Point(
        image_point.x * zoom + pan_offset.x,
        image_point.y * zoom + pan_offset.y,
    )


def aspect_ratio_value(option: AspectRatioOption | str) -> float | None:
    """Width/height for a fixed ratio; None for ``freeform`` and ``original``.

    ``original`` depends on the loaded image and is resolved by the crop engine.
    """
    try:
        option = AspectRatioOption(option)
    except ValueError:
        return None
    return _ASPECT_RATIOS.get(option)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_px(value: float) -> int:
    """Round half away from zero, as pixel coordinates are rounded on screen."""
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))
