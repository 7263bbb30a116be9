from __future__ import annotations
import dataclasses
import logging
import os
from typing import Tuple

import cv2
import numpy as np
from dotenv import load_dotenv

from ..models.cancellation import CancellationToken, check_cancelled
from ..models.exceptions import GeometryError, InputError
from ..models.geometry import Point, Quad
from ..models.image import RasterImage
from ..models.mask import Mask
from ..models.overlay import BlendMode, OverlayConfig
from .blend_service import BlendService
from .morphology_service import MorphologyService
from .perspective_service import PerspectiveService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LIGHTING_STRENGTH = 0.5
FEATHER_RADIUS = 2


class CompositingService:
    """
    Blends a tiled texture into the masked surface of a photo.
    *   No I/O here, works only with RasterImage / Mask objects.
    *   Every call is stateless; the blend mode is a parameter, not a mode.
    """

    def __init__(self, preview_max_dimension: int | None = None):
        self.blend_service = BlendService()
        self.perspective_service = PerspectiveService()
        self.preview_max_dimension = preview_max_dimension or int(
            os.getenv("PREVIEW_MAX_DIMENSION", "800")
        )

    # ─── Texture mapping ────────────────────────────────────────────
    @staticmethod
    def _sample_trapezoid(tiled: np.ndarray, quad: Quad) -> np.ndarray:
        """
        Map every output pixel to normalised (u, v) by interpolating the quad's
        left and right edges row by row, then bilinearly sample `tiled` there.
        """
        height, width = tiled.shape[:2]
        top_y = quad.top_left.y
        floor_h = max(1.0, quad.bottom_left.y - top_y)

        ys = np.arange(height, dtype=np.float64)
        xs = np.arange(width, dtype=np.float64)
        v = np.clip((ys - top_y) / floor_h, 0.0, 1.0)
        left = quad.top_left.x + (quad.bottom_left.x - quad.top_left.x) * v
        right = quad.top_right.x + (quad.bottom_right.x - quad.top_right.x) * v
        row_w = np.maximum(1.0, right - left)
        u = np.clip((xs[None, :] - left[:, None]) / row_w[:, None], 0.0, 1.0)

        tex_x = u * (width - 1)
        tex_y = np.broadcast_to((v * (height - 1))[:, None], tex_x.shape)

        x0 = np.floor(tex_x).astype(np.intp)
        y0 = np.floor(tex_y).astype(np.intp)
        x1 = np.minimum(x0 + 1, width - 1)
        y1 = np.minimum(y0 + 1, height - 1)
        fx = (tex_x - x0)[..., None]
        fy = (tex_y - y0)[..., None]

        src = tiled.astype(np.float64)
        sampled = (
            src[y0, x0] * (1 - fx) * (1 - fy)
            + src[y0, x1] * fx * (1 - fy)
            + src[y1, x0] * (1 - fx) * fy
            + src[y1, x1] * fx * fy
        )
        return np.clip(np.floor(sampled + 0.5), 0, 255).astype(np.uint8)

    def _overlay_texture(
        self,
        base: RasterImage,
        texture: RasterImage,
        config: OverlayConfig,
        boundary: Quad | None,
    ) -> np.ndarray:
        tile = self.blend_service.resize_tile(texture.pixels, config.tile_size)
        tiled = self.blend_service.tile(tile, base.width, base.height)

        if config.perspective is None or boundary is None:
            return tiled

        try:
            self.perspective_service.solve(
                self.perspective_service.default_corners(base.width, base.height),
                config.perspective,
            )
        except GeometryError as err:
            logger.warning(f"Perspective quad rejected, using flat tiling: {err}")
            return tiled
        return self._sample_trapezoid(tiled, config.perspective)

    # ─── Public API ─────────────────────────────────────────────────
    def composite(
        self,
        base: RasterImage,
        texture: RasterImage,
        mask: Mask,
        config: OverlayConfig,
        boundary: Quad | None = None,
        cancel: CancellationToken | None = None,
    ) -> RasterImage:
        """
        Produce the final composited image.

        Args:
            base: the photo.
            texture: one texture tile.
            mask: surface mask, same size as base.
            config: caller-chosen overlay settings.
            boundary: detected surface quad; perspective mapping needs both
                this and config.perspective.
            cancel: optional token checked between steps.

        Returns:
            RasterImage: a new image; base alpha is preserved.
        """
        if (mask.width, mask.height) != (base.width, base.height):
            raise InputError(
                f"Mask {mask.width}x{mask.height} does not match image {base.width}x{base.height}"
            )
        replace = config.blend_mode == BlendMode.REPLACE

        check_cancelled(cancel, "texture mapping")
        overlay = self._overlay_texture(base, texture, config, boundary)

        check_cancelled(cancel, "lighting")
        if not replace and config.preserve_lighting:
            overlay = self.blend_service.preserve_lighting(overlay, base.pixels, LIGHTING_STRENGTH)

        check_cancelled(cancel, "feathering")
        weights = mask.values.astype(np.float64)
        if not replace and config.feather_edges:
            # soften inside the surface only; cells outside the mask stay untouched
            weights = self.blend_service.feather(weights, FEATHER_RADIUS) * (weights > 0)

        check_cancelled(cancel, "blending")
        out = self.blend_service.apply_blend_mode(
            base.pixels, overlay, weights, config.blend_mode, config.opacity
        )
        logger.debug(f"Composited {base.width}x{base.height} with {config.blend_mode.value} @ {config.opacity:.2f}")
        return RasterImage(out)

    def create_preview(
        self,
        base: RasterImage,
        texture: RasterImage,
        mask: Mask,
        config: OverlayConfig,
        boundary: Quad | None = None,
        max_dimension: int | None = None,
    ) -> RasterImage:
        """
        Lower-resolution composite for interactive use.
        The photo, texture, mask and quads are all rescaled explicitly.
        """
        max_dimension = max_dimension or self.preview_max_dimension
        longest = max(base.width, base.height)
        if longest <= max_dimension:
            return self.composite(base, texture, mask, config, boundary)

        scale = max_dimension / longest
        width = max(1, round(base.width * scale))
        height = max(1, round(base.height * scale))

        small_base = RasterImage(cv2.resize(base.pixels.copy(), (width, height), interpolation=cv2.INTER_AREA))
        tex_w = max(1, round(texture.width * scale))
        tex_h = max(1, round(texture.height * scale))
        small_texture = RasterImage(
            cv2.resize(texture.pixels.copy(), (tex_w, tex_h), interpolation=cv2.INTER_AREA)
        )
        small_mask = Mask(MorphologyService.scale_grid(mask.values, width, height))

        small_config = dataclasses.replace(
            config,
            tile_size=round(config.tile_size * scale) if config.tile_size else 0,
            perspective=_scale_quad(config.perspective, scale),
        )
        return self.composite(small_base, small_texture, small_mask, small_config, _scale_quad(boundary, scale))

    @staticmethod
    def render_mask_overlay(
        mask: Mask,
        color: Tuple[int, int, int] = (59, 130, 246),
        opacity: float = 0.3,
    ) -> RasterImage:
        """Tinted RGBA layer showing the detected surface."""
        pixels = np.zeros((mask.height, mask.width, 4), dtype=np.uint8)
        on = mask.values > 0
        pixels[on, :3] = color
        pixels[..., 3] = np.clip(np.floor(mask.values * 255.0 * opacity + 0.5), 0, 255).astype(np.uint8)
        return RasterImage(pixels)


def _scale_quad(quad: Quad | None, scale: float) -> Quad | None:
    if quad is None:
        return None
    return Quad(*(Point(p.x * scale, p.y * scale) for p in (
        quad.top_left, quad.top_right, quad.bottom_left, quad.bottom_right
    )))
