from __future__ import annotations
import logging
import math
import os
from typing import List

import numpy as np
from dotenv import load_dotenv

from ..models.cancellation import CancellationToken, check_cancelled
from ..models.exceptions import InputError
from ..models.geometry import Quad
from ..models.image import RasterImage
from ..models.mask import Mask
from ..models.segmentation import SegmentationResult
from ..models.segmentation_engine import SegmentationEngine
from .edge_service import EdgeService
from .morphology_service import Component, MorphologyService
from .perspective_service import PerspectiveService
from .segmentation_service import SegmentationService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class WindowDetectionService:
    """
    Finds bright, smooth, roughly rectangular background regions.

    • Starts from the background mask of the segmentation model.
    • Boosts bright pixels, damps strong edges and the top/bottom margins.
    • Keeps only components that look like window panes.
    """

    BRIGHTNESS_FACTOR = 0.9
    EDGE_THRESHOLD = 0.3
    FOCUS_START = 0.05
    FOCUS_END = 0.85
    SCORE_THRESHOLD = 0.5
    MIN_COMPONENT_FRACTION = 0.02
    LARGE_COMPONENT_FRACTION = 0.10
    MIN_FILL_RATIO = 0.4
    ASPECT_RANGE = (0.2, 5.0)

    def __init__(
        self,
        segmentation_service: SegmentationService | None = None,
        engine: SegmentationEngine | None = None,
        analysis_dimension: int | None = None,
    ):
        self.segmentation_service = segmentation_service or SegmentationService(engine)
        self.analysis_dimension = analysis_dimension or int(os.getenv("WINDOW_ANALYSIS_DIMENSION", "512"))
        self.edge_service = EdgeService()
        self.perspective_service = PerspectiveService()

    # ─── Scoring ──────────────────────────────────────────────────
    @staticmethod
    def _lookup(grid: np.ndarray, width: int, height: int) -> np.ndarray:
        """Nearest lookup of `grid` for every cell of a width x height frame."""
        gh, gw = grid.shape
        ys = np.minimum(np.floor(np.arange(height) * (gh / height)).astype(int), gh - 1)
        xs = np.minimum(np.floor(np.arange(width) * (gw / width)).astype(int), gw - 1)
        return grid[ys[:, None], xs[None, :]]

    def score(self, background: np.ndarray, luminance: np.ndarray, edges: np.ndarray) -> np.ndarray:
        """
        Window likelihood per background cell, binarised at SCORE_THRESHOLD.

        Args:
            background: (H, W) background mask values.
            luminance: luminance grid in [0, 1], any resolution.
            edges: normalised Sobel grid, any resolution.
        """
        height, width = background.shape
        value = np.asarray(background, dtype=np.float64)
        lum = self._lookup(luminance, width, height)
        edge = self._lookup(edges, width, height)

        threshold = float(luminance.mean()) * self.BRIGHTNESS_FACTOR
        value = np.where(lum > threshold, value * (1 + (lum - threshold) * 2), value * 0.5)
        value = np.where(edge > self.EDGE_THRESHOLD, value * 0.8, value)

        rows = np.arange(height)
        in_focus = (rows >= math.floor(height * self.FOCUS_START)) & (rows <= math.floor(height * self.FOCUS_END))
        value = value * np.where(in_focus, 1.3, 0.3)[:, None]

        return value > self.SCORE_THRESHOLD

    # ─── Shape filtering ─────────────────────────────────────────
    def _looks_like_window(self, comp: Component, total: int) -> bool:
        comp_w = comp.max_x - comp.min_x
        comp_h = comp.max_y - comp.min_y
        aspect = comp_w / max(comp_h, 1)
        fill_ratio = comp.pixel_count / max(comp_w * comp_h, 1)

        large_enough = comp.pixel_count > total * self.MIN_COMPONENT_FRACTION
        rectangular = fill_ratio > self.MIN_FILL_RATIO
        low, high = self.ASPECT_RANGE
        very_large = comp.pixel_count > total * self.LARGE_COMPONENT_FRACTION
        return (large_enough and rectangular and low < aspect < high) or very_large

    def filter_rectangular(self, grid: np.ndarray) -> np.ndarray:
        labels, components = MorphologyService.label_components(grid)
        keep: List[Component] = [c for c in components if self._looks_like_window(c, grid.size)]
        logger.debug(f"Window components kept: {len(keep)}/{len(components)}")
        return MorphologyService.keep_components(labels, keep)

    # ─── Boundaries ──────────────────────────────────────────────
    @staticmethod
    def detect_boundaries(grid: np.ndarray) -> Quad | None:
        """Axis-aligned bounding box of the "on" cells; windows are assumed frontal."""
        on = np.asarray(grid) > 0.5
        ys, xs = np.nonzero(on)
        if ys.size == 0:
            return None
        return Quad.from_bounds(int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max()))

    def has_perspective_distortion(self, quad: Quad, tolerance: float = 0.1) -> bool:
        return self.perspective_service.has_perspective_distortion(quad, tolerance)

    # ─── Public API ───────────────────────────────────────────────
    def detect(self, image: RasterImage, cancel: CancellationToken | None = None) -> SegmentationResult:
        """
        Locate window panes.

        Raises:
            ModelUnavailableError: the segmentation model could not run.
            InputError: nothing window-like survived.
        """
        logger.info(f"Detecting window area in {image.width}x{image.height} image")

        check_cancelled(cancel, "background segmentation")
        background = self.segmentation_service.segment_background(image)

        check_cancelled(cancel, "brightness and edges")
        small = self.edge_service.downscale(image, self.analysis_dimension)
        luminance = self.edge_service.to_luminance(small) / 255.0
        edges = self.edge_service.sobel_magnitude(luminance)

        check_cancelled(cancel, "window scoring")
        scored = self.score(background.mask.values, luminance, edges)
        grid = self.filter_rectangular(scored)

        full = MorphologyService.scale_grid(grid, image.width, image.height)
        if not full.any():
            raise InputError("Could not find a window in this photo, please try a different one")

        mask = Mask.from_binary(full)
        confidence = mask.mean()
        logger.info(f"Window detected: coverage {confidence:.3f}")
        return SegmentationResult(
            mask=mask,
            confidence=confidence,
            boundary=self.detect_boundaries(full),
            surface="window",
            method="window_heuristic",
        )
