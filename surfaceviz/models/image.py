from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np

from .exceptions import InputError


@dataclass(frozen=True)
class RasterImage:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    The pixel buffer is frozen on construction; every stage builds a new one.
    """
    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, RGBA order.
    path: Path | None = None  # Source of the image.

    def __post_init__(self):
        px = self.pixels
        if not isinstance(px, np.ndarray) or px.ndim != 3 or px.shape[2] != 4:
            raise InputError(f"RasterImage expects an (H, W, 4) array, got {getattr(px, 'shape', type(px))}")
        if px.dtype != np.uint8:
            raise InputError(f"RasterImage expects uint8 samples, got {px.dtype}")
        if px.shape[0] == 0 or px.shape[1] == 0:
            raise InputError("RasterImage must have at least one pixel")
        if px.flags.writeable:
            px = px.copy()
            px.flags.writeable = False
            object.__setattr__(self, "pixels", px)

    @classmethod
    def from_rgb(cls, rgb: np.ndarray, path: Path | None = None) -> RasterImage:
        """Wrap an (H, W, 3) uint8 RGB buffer, adding an opaque alpha channel."""
        if not isinstance(rgb, np.ndarray) or rgb.ndim != 3 or rgb.shape[2] != 3:
            raise InputError(f"Expected an (H, W, 3) RGB array, got {getattr(rgb, 'shape', type(rgb))}")
        alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
        return cls(np.concatenate([rgb.astype(np.uint8), alpha], axis=2), path)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        """(H, W, 3) view of the colour channels."""
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]
