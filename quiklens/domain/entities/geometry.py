from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

MIN_CROP_SIZE = 20


@dataclass(frozen=True)
class Point:
    """A 2D point or vector. The coordinate space is given by the caller."""

    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Dimensions:
    """Pixel size of an image instance."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Dimensions must be positive, got {self.width}x{self.height}")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dimensions:
        return cls(width=int(data["width"]), height=int(data["height"]))


R = TypeVar("R", bound="Rect")


@dataclass(frozen=True)
class Rect:
    """Integer pixel rectangle.

    Never used directly: the subclasses tag which coordinate space the numbers are in,
    and two rectangles from different spaces never compare equal.
    """

    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def fits_within(self, bounds: Dimensions) -> bool:
        return (
            self.left >= 0
            and self.top >= 0
            and self.width > 0
            and self.height > 0
            and self.right <= bounds.width
            and self.bottom <= bounds.height
        )

    def meets_minimum(self, min_size: int = MIN_CROP_SIZE) -> bool:
        return self.width >= min_size and self.height >= min_size

    def to_dict(self) -> dict[str, int]:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls: type[R], data: dict[str, Any]) -> R:
        return cls(
            left=int(data["left"]),
            top=int(data["top"]),
            width=int(data["width"]),
            height=int(data["height"]),
        )

    @classmethod
    def covering(cls: type[R], bounds: Dimensions) -> R:
        return cls(left=0, top=0, width=bounds.width, height=bounds.height)


@dataclass(frozen=True)
class DisplayRect(Rect):
    """Rectangle in the pixel space of the currently displayed base image."""


@dataclass(frozen=True)
class OriginalRect(Rect):
    """Rectangle in the pixel space of the true original image."""
