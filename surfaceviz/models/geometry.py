from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Point:
    x: float  # pixel coordinates, not normalised
    y: float


@dataclass(frozen=True)
class Quad:
    """Four-corner boundary of a surface as projected in the photo."""
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point

    @classmethod
    def from_bounds(cls, left: float, top: float, right: float, bottom: float) -> Quad:
        return cls(
            top_left=Point(left, top),
            top_right=Point(right, top),
            bottom_left=Point(left, bottom),
            bottom_right=Point(right, bottom),
        )

    def corners(self) -> Tuple[Point, Point, Point, Point]:
        """Clockwise order: tl, tr, br, bl."""
        return self.top_left, self.top_right, self.bottom_right, self.bottom_left

    def to_dict(self) -> dict:
        return {
            name: {"x": p.x, "y": p.y}
            for name, p in (
                ("top_left", self.top_left),
                ("top_right", self.top_right),
                ("bottom_left", self.bottom_left),
                ("bottom_right", self.bottom_right),
            )
        }


@dataclass(frozen=True)
class HomographyCoeffs:
    """
    x' = (a*x + b*y + c) / (g*x + h*y + 1)
    y' = (d*x + e*y + f) / (g*x + h*y + 1)
    """
    a: float
    b: float
    c: float
    d: float
    e: float
    f: float
    g: float
    h: float

    def as_tuple(self) -> Tuple[float, ...]:
        return self.a, self.b, self.c, self.d, self.e, self.f, self.g, self.h
