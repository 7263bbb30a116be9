from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from .exceptions import InputError
from .geometry import Quad


class BlendMode(str, Enum):
    MULTIPLY = "multiply"
    OVERLAY = "overlay"
    NORMAL = "normal"
    REPLACE = "replace"


@dataclass(frozen=True)
class OverlayConfig:
    """
    Value-object holding the per-composite settings chosen by the caller.
    There are deliberately no defaults: the UI layer owns them.
    """
    opacity: float             # [0, 1]
    blend_mode: BlendMode
    tile_size: int             # texture tile width in px, 0 = native size
    feather_edges: bool
    preserve_lighting: bool
    perspective: Quad | None

    def __post_init__(self):
        if not 0.0 <= self.opacity <= 1.0:
            raise InputError(f"opacity must be in [0, 1], got {self.opacity}")
        if self.tile_size < 0:
            raise InputError(f"tile_size must be >= 0, got {self.tile_size}")
        if not isinstance(self.blend_mode, BlendMode):
            object.__setattr__(self, "blend_mode", BlendMode(self.blend_mode))
