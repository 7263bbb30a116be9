from __future__ import annotations
from dataclasses import dataclass

from .image import RasterImage


@dataclass
class Texture:
    """
    Texture-store record: the decoded tile plus catalogue metadata.
    Physical size is for display only, compositing never reads it.
    """
    identifier: str
    image: RasterImage
    name: str = ""
    width_cm: float | None = None
    height_cm: float | None = None
