from __future__ import annotations
from dataclasses import dataclass

from .geometry import Quad
from .mask import Mask


@dataclass(frozen=True)
class SegmentationResult:
    """
    Data object produced once per detection call.

    confidence: floor detection reports a fixed heuristic value, every other
    path reports the mean of mask.values. Neither is a calibrated probability.
    """
    mask: Mask
    confidence: float
    boundary: Quad | None = None
    surface: str = "floor"  # "floor" | "window"
    method: str = ""  # which strategy / path produced the mask

    @property
    def width(self) -> int:
        return self.mask.width

    @property
    def height(self) -> int:
        return self.mask.height
