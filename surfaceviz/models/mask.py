from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .exceptions import InputError


@dataclass(frozen=True)
class Mask:
    """
    Per-pixel surface confidence, row-major, same addressing as RasterImage.
    """
    values: np.ndarray  # Shape (H, W), dtype float32, [0, 1].

    def __post_init__(self):
        v = self.values
        if not isinstance(v, np.ndarray) or v.ndim != 2 or v.size == 0:
            raise InputError(f"Mask expects a non-empty (H, W) array, got {getattr(v, 'shape', type(v))}")
        v = v.astype(np.float32, copy=True)
        if not np.all(np.isfinite(v)) or v.min() < 0.0 or v.max() > 1.0:
            raise InputError("Mask values must lie in [0, 1]")
        v.flags.writeable = False
        object.__setattr__(self, "values", v)

    @classmethod
    def from_binary(cls, grid: np.ndarray) -> Mask:
        return cls(np.asarray(grid, dtype=bool).astype(np.float32))

    @classmethod
    def empty(cls, width: int, height: int) -> Mask:
        return cls(np.zeros((height, width), dtype=np.float32))

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    def binary(self) -> np.ndarray:
        """Bool grid of cells > 0.5."""
        return self.values > 0.5

    def coverage(self) -> float:
        """Fraction of cells that are "on"."""
        return float(self.binary().mean())

    def mean(self) -> float:
        return float(self.values.mean())
