from __future__ import annotations
from typing import Callable, Dict

import cv2
import numpy as np

from ..models.overlay import BlendMode


def _round(values: np.ndarray) -> np.ndarray:
    """Round half up and clamp into uint8."""
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


# ─── Per-channel formulas (float arrays, 0‑255) ──────────────────────
def multiply(base: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    return base * overlay / 255.0


def overlay(base: np.ndarray, over: np.ndarray) -> np.ndarray:
    """2·b·o below mid-grey, inverse screen above."""
    b = base / 255.0
    o = over / 255.0
    return np.where(b < 0.5, 2.0 * b * o, 1.0 - 2.0 * (1.0 - b) * (1.0 - o)) * 255.0


def normal(base: np.ndarray, over: np.ndarray) -> np.ndarray:
    return np.array(over, dtype=np.float64, copy=True)


BLEND_FORMULAS: Dict[BlendMode, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    BlendMode.MULTIPLY: multiply,
    BlendMode.OVERLAY: overlay,
    BlendMode.NORMAL: normal,
}


class BlendService:
    """
    Pixel math for the compositor. Works on raw numpy buffers:
    RGBA arrays are (H, W, 4), masks are (H, W) floats in [0, 1].
    """

    @staticmethod
    def tile(texture: np.ndarray, width: int, height: int) -> np.ndarray:
        """Repeat texture periodically (both axes independently) to width x height."""
        th, tw = texture.shape[:2]
        rows = np.arange(height) % th
        cols = np.arange(width) % tw
        return texture[rows[:, None], cols[None, :]]

    @staticmethod
    def resize_tile(texture: np.ndarray, tile_size: int) -> np.ndarray:
        """Scale a texture so one tile is tile_size px wide (aspect kept). 0 = native."""
        th, tw = texture.shape[:2]
        if tile_size <= 0 or tile_size == tw:
            return texture
        new_h = max(1, round(th * tile_size / tw))
        return cv2.resize(np.ascontiguousarray(texture).copy(), (tile_size, new_h), interpolation=cv2.INTER_LINEAR)

    @staticmethod
    def preserve_lighting(overlay_rgba: np.ndarray, base_rgba: np.ndarray, strength: float = 0.5) -> np.ndarray:
        """
        Transfer the photo's local shading onto the flat texture.

        factor = (luminance / 127.5 - 1) * strength + 1, applied to overlay RGB.
        Returns a float64 RGBA array (alpha untouched).
        """
        base = base_rgba.astype(np.float64)
        lum = 0.299 * base[..., 0] + 0.587 * base[..., 1] + 0.114 * base[..., 2]
        factor = (lum / 127.5 - 1.0) * strength + 1.0

        out = overlay_rgba.astype(np.float64)
        out[..., :3] = np.clip(out[..., :3] * factor[..., None], 0.0, 255.0)
        return out

    @staticmethod
    def feather(mask: np.ndarray, radius: int = 2) -> np.ndarray:
        """Mean of each (2r+1)² neighbourhood, counting only in-bounds cells."""
        values = np.asarray(mask, dtype=np.float64)
        if radius <= 0:
            return values.copy()
        ksize = (2 * radius + 1, 2 * radius + 1)
        total = cv2.boxFilter(values, -1, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
        count = cv2.boxFilter(np.ones_like(values), -1, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
        return np.clip(total / count, 0.0, 1.0)

    @staticmethod
    def apply_blend_mode(
        base_rgba: np.ndarray,
        overlay_rgba: np.ndarray,
        mask: np.ndarray,
        blend_mode: BlendMode,
        opacity: float,
    ) -> np.ndarray:
        """
        Combine base and overlay under mask and opacity.

        Non-replace modes use w = opacity * mask * overlay_alpha / 255 and
        output = base * (1 - w) + blended * w. Replace writes the overlay
        directly inside the mask and only interpolates at its soft edge.
        Output alpha is always the base alpha.
        """
        base = base_rgba.astype(np.float64)
        over = overlay_rgba.astype(np.float64)
        m = np.asarray(mask, dtype=np.float64)
        b_rgb = base[..., :3]
        o_rgb = over[..., :3]

        result = np.array(base_rgba, dtype=np.uint8, copy=True)

        if blend_mode == BlendMode.REPLACE:
            inside = m > 0.5
            edge = (m > 0) & ~inside
            if opacity >= 1.0:
                result[inside, :3] = _round(o_rgb[inside])
            else:
                result[inside, :3] = _round(b_rgb[inside] * (1 - opacity) + o_rgb[inside] * opacity)
            f = (m[edge] * 2.0 * opacity)[:, None]
            result[edge, :3] = _round(b_rgb[edge] * (1 - f) + o_rgb[edge] * f)
            return result

        blended = BLEND_FORMULAS[blend_mode](b_rgb, o_rgb)
        w = (opacity * m * (over[..., 3] / 255.0))[..., None]
        touched = m > 0
        mixed = b_rgb * (1.0 - w) + blended * w
        result[touched, :3] = _round(mixed[touched])
        return result
