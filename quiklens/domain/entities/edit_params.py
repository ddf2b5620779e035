from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any

from quiklens.domain.entities.geometry import Dimensions, OriginalRect
from quiklens.domain.errors import ValidationError


class EffectKind(str, Enum):
    APPLY_ALL = "applyAll"
    CROP = "crop"
    GRAYSCALE = "grayscale"
    RESIZE = "resize"
    BRIGHTNESS = "brightness"
    EXPOSURE = "exposure"
    TEMPERATURE = "temperature"
    CONTRAST = "contrast"
    SATURATION = "saturation"
    TINT = "tint"
    SHARPNESS = "sharpness"


# Effects a user can request by name; applyAll and crop are issued by the editor itself
NAMED_EFFECTS = frozenset(EffectKind) - {EffectKind.APPLY_ALL, EffectKind.CROP}


class AspectRatioOption(str, Enum):
    FREEFORM = "freeform"
    ORIGINAL = "original"
    SQUARE = "1:1"
    LANDSCAPE_16_9 = "16:9"
    PORTRAIT_9_16 = "9:16"
    STANDARD_4_3 = "4:3"
    PORTRAIT_3_4 = "3:4"


@dataclass(frozen=True)
class SliderRange:
    default: float
    minimum: float
    maximum: float
    step: float

    def clamp(self, value: float) -> float:
        return min(self.maximum, max(self.minimum, float(value)))


SLIDER_RANGES: dict[str, SliderRange] = {
    "brightness": SliderRange(default=1.0, minimum=0.1, maximum=2.0, step=0.05),
    "exposure": SliderRange(default=0.0, minimum=-2.0, maximum=2.0, step=0.05),
    "temperature": SliderRange(default=0.0, minimum=-100.0, maximum=100.0, step=1.0),
    "contrast": SliderRange(default=0.0, minimum=-50.0, maximum=50.0, step=1.0),
    "saturation": SliderRange(default=1.0, minimum=0.0, maximum=2.0, step=0.01),
    "tint": SliderRange(default=0.0, minimum=-100.0, maximum=100.0, step=1.0),
    "sharpness": SliderRange(default=0.0, minimum=0.0, maximum=100.0, step=1.0),
}


@dataclass(frozen=True)
class AdjustmentValues:
    """The seven tone/color sliders."""

    brightness: float = 1.0
    exposure: float = 0.0
    temperature: float = 0.0
    contrast: float = 0.0
    saturation: float = 1.0
    tint: float = 0.0
    sharpness: float = 0.0

    def with_value(self, name: str, value: float) -> AdjustmentValues:
        """Return a copy with one slider changed, clamped to the slider's range."""
        slider = SLIDER_RANGES.get(name)
        if slider is None:
            raise ValidationError(f"Unknown slider: {name}")
        return replace(self, **{name: slider.clamp(value)})

    def with_values(self, values: dict[str, float]) -> AdjustmentValues:
        out = self
        for name, value in values.items():
            out = out.with_value(name, value)
        return out

    def is_default(self) -> bool:
        return self == AdjustmentValues()

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdjustmentValues:
        known = {f.name for f in fields(cls)}
        defaults = cls()
        return cls(
            **{
                name: float(data[name]) if data.get(name) is not None else getattr(defaults, name)
                for name in known
            }
        )


@dataclass(frozen=True)
class EditParams:
    """One immutable snapshot of everything the user can adjust; the unit of history.

    ``source_base_dimensions`` is the size of the base image this state displays, which is
    the resolution any later UI crop rectangle is drawn against.
    ``grayscale`` and ``output_size`` record named effects so that replaying the entry
    reproduces them.
    """

    adjustments: AdjustmentValues = AdjustmentValues()
    committed_crop: OriginalRect | None = None
    source_base_dimensions: Dimensions | None = None
    applied_crop_for_this_state: OriginalRect | None = None
    grayscale: bool = False
    output_size: Dimensions | None = None

    def recorded_on(self, base_dimensions: Dimensions | None) -> EditParams:
        """Return the history entry for this request once it has produced ``base_dimensions``."""
        return replace(
            self,
            source_base_dimensions=base_dimensions,
            applied_crop_for_this_state=self.committed_crop,
        )
