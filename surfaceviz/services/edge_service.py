from __future__ import annotations
import math

import cv2
import numpy as np

from ..models.image import RasterImage

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


class EdgeService:
    """Grayscale and gradient-magnitude grids. No I/O, no detection logic."""

    @staticmethod
    def to_luminance(image: RasterImage) -> np.ndarray:
        """Per-pixel 0.299 R + 0.587 G + 0.114 B as a float64 (H, W) grid."""
        return image.rgb.astype(np.float64) @ _LUMA

    @staticmethod
    def sobel_magnitude(luminance: np.ndarray) -> np.ndarray:
        """
        3x3 Sobel gradient magnitude, divided by the largest observed value.

        Border cells (no full 3x3 neighbourhood) are 0. A flat grid stays all 0.
        """
        gray = np.asarray(luminance, dtype=np.float64)
        mag = np.zeros_like(gray)
        if gray.shape[0] < 3 or gray.shape[1] < 3:
            return mag
        gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
        gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
        mag[1:-1, 1:-1] = np.hypot(gx, gy)[1:-1, 1:-1]
        peak = mag.max()
        if peak > 0:
            mag /= peak
        return mag

    @staticmethod
    def downscale(image: RasterImage, max_dimension: int) -> RasterImage:
        """
        Shrink so the long edge is <= max_dimension. Never upscales.
        """
        scale = min(max_dimension / image.width, max_dimension / image.height, 1.0)
        if scale >= 1.0:
            return image
        width = max(1, math.floor(image.width * scale))
        height = max(1, math.floor(image.height * scale))
        small = cv2.resize(image.pixels.copy(), (width, height), interpolation=cv2.INTER_AREA)
        return RasterImage(small)

    def edge_map(self, image: RasterImage) -> np.ndarray:
        return self.sobel_magnitude(self.to_luminance(image))
