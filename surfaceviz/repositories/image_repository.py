from __future__ import annotations
import base64
import logging
import os
from io import BytesIO
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError
from dotenv import load_dotenv

from ..models.exceptions import InputError
from ..models.image import RasterImage

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

_MIME = {"JPEG": "image/jpeg", "PNG": "image/png"}


class ImageRepository:
    """
    Handles decoding, encoding and file I/O for RasterImage entities.
    Everything Pillow-specific stays in here.
    """

    def __init__(self, jpeg_quality: int | None = None):
        self.jpeg_quality = jpeg_quality or int(os.getenv("JPEG_QUALITY", "95"))

    # ─── Reading ──────────────────────────────────────────────────
    @staticmethod
    def decode(data: bytes, path: Union[str, Path, None] = None) -> RasterImage:
        """Decode encoded image bytes (any Pillow format) into RGBA."""
        try:
            with PILImage.open(BytesIO(data)) as pil:
                pil.load()
                rgba = np.asarray(pil.convert("RGBA"), dtype=np.uint8)
        except (UnidentifiedImageError, OSError, ValueError) as err:
            raise InputError(f"Could not decode image{f' {path}' if path else ''}: {err}") from err
        return RasterImage(rgba, Path(path) if path is not None else None)

    def load(self, path: Union[str, Path]) -> RasterImage:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found: {path}")
        image = self.decode(path.read_bytes(), path)
        logger.debug(f"Loaded {path} ({image.width}x{image.height})")
        return image

    # ─── Writing ──────────────────────────────────────────────────
    def encode(self, image: RasterImage, fmt: str = "JPEG", quality: int | None = None) -> bytes:
        """
        Encode to JPEG or PNG bytes. JPEG has no alpha channel, so it is dropped.
        """
        fmt = fmt.upper().replace("JPG", "JPEG")
        if fmt not in _MIME:
            raise InputError(f"Unsupported export format: {fmt}")

        buffer = BytesIO()
        if fmt == "JPEG":
            pil = PILImage.fromarray(np.ascontiguousarray(image.rgb))
            pil.save(buffer, format="JPEG", quality=quality or self.jpeg_quality)
        else:
            PILImage.fromarray(image.pixels).save(buffer, format="PNG")
        return buffer.getvalue()

    def save(self, image: RasterImage, path: Union[str, Path], quality: int | None = None) -> Path:
        """Write to path; the format follows the file suffix (PNG or JPEG)."""
        path = Path(path)
        fmt = "PNG" if path.suffix.lower() == ".png" else "JPEG"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.encode(image, fmt, quality))
        logger.info(f"Saved {fmt} {image.width}x{image.height} to {path}")
        return path

    def to_data_url(self, image: RasterImage, fmt: str = "JPEG", quality: int | None = None) -> str:
        """Convert RasterImage to a base64 data URL, e.g. for JSON payloads."""
        fmt = fmt.upper().replace("JPG", "JPEG")
        encoded = base64.b64encode(self.encode(image, fmt, quality)).decode("utf-8")
        return f"data:{_MIME[fmt]};base64,{encoded}"

    @staticmethod
    def create_thumbnail(image: RasterImage, max_size: int = 300) -> RasterImage:
        """Shrink so neither side exceeds max_size, keeping aspect. Never upscales."""
        pil = PILImage.fromarray(image.pixels)
        pil.thumbnail((max_size, max_size), PILImage.LANCZOS)
        return RasterImage(np.asarray(pil, dtype=np.uint8), image.path)
