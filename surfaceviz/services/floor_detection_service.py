from __future__ import annotations
import logging
import math
import os
from typing import Callable, List, Tuple

import numpy as np
from dotenv import load_dotenv

from ..models.cancellation import CancellationToken, check_cancelled
from ..models.exceptions import InputError
from ..models.geometry import Point, Quad
from ..models.image import RasterImage
from ..models.mask import Mask
from ..models.segmentation import SegmentationResult
from .edge_service import EdgeService
from .morphology_service import MorphologyService, color_distance_below

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

FloorStrategy = Callable[[RasterImage], np.ndarray]


class FloorDetectionService:
    """
    Heuristic floor segmentation, no model and no per-image user input.

    Colour strategies are tried in order until one covers enough of the frame,
    then strong edges (furniture legs, skirting) are cut out and the region is
    cleaned up morphologically. Works on a downscaled copy and maps the result
    back to the original size.
    """

    CONFIDENCE = 0.85           # fixed heuristic value, not a measurement
    FLOOR_REGION_START = 0.40   # the top 40% of the frame is never floor
    MIN_COVERAGE = 0.05
    FLOOD_STEP_THRESHOLD = 50
    MEDIAN_COLOR_THRESHOLD = 60
    SAMPLE_BAND = 0.15
    FALLBACK_BAND = 0.25
    EDGE_THRESHOLD = 0.25
    MIN_COMPONENT_FRACTION = 0.015

    def __init__(self, max_dimension: int | None = None):
        self.max_dimension = max_dimension or int(os.getenv("FLOOR_MAX_DIMENSION", "500"))
        self.edge_service = EdgeService()
        self.morphology = MorphologyService()
        # (name, strategy, acceptance coverage), evaluated in order
        self.strategies: List[Tuple[str, FloorStrategy, float]] = [
            ("flood_fill", self._strategy_flood_fill, 0.08),
            ("median_color", self._strategy_median_color, self.MIN_COVERAGE),
        ]

    # ─── Strategies ───────────────────────────────────────────────
    def _floor_region(self, height: int, width: int) -> np.ndarray:
        allowed = np.zeros((height, width), dtype=bool)
        allowed[math.floor(height * self.FLOOR_REGION_START):, :] = True
        return allowed

    @staticmethod
    def _seed_points(width: int, height: int) -> List[Tuple[int, int]]:
        """20 evenly spaced seeds on the last row, 8 fixed ones on the row above."""
        last = height - 1
        above = max(0, height - 2)
        seeds = [(min(width - 1, int((i + 0.5) * width / 20)), last) for i in range(20)]
        for frac in (0.1, 0.2, 0.3, 0.4, 0.6, 0.7, 0.8, 0.9):
            seeds.append((min(width - 1, int(frac * width)), above))
        return seeds

    def _strategy_flood_fill(self, image: RasterImage) -> np.ndarray:
        """Gradient-following fill from the bottom edge."""
        return self.morphology.flood_fill(
            image.rgb.astype(np.int32),
            self._seed_points(image.width, image.height),
            color_distance_below(self.FLOOD_STEP_THRESHOLD),
            allowed=self._floor_region(image.height, image.width),
        )

    def _strategy_median_color(self, image: RasterImage) -> np.ndarray:
        """Everything close to the median colour sampled near the bottom edge."""
        height, width = image.height, image.width
        start = min(height - 1, math.floor(height * (1 - self.SAMPLE_BAND)))
        rows = np.unique(np.linspace(start, height - 1, 3).round().astype(int))
        cols = np.unique(np.minimum(((np.arange(10) + 0.5) * width / 10).astype(int), width - 1))
        rgb = image.rgb.astype(np.float64)
        samples = rgb[rows[:, None], cols[None, :]].reshape(-1, 3)
        reference = np.median(samples, axis=0)

        distance = np.sqrt(((rgb - reference) ** 2).sum(axis=2))
        return (distance < self.MEDIAN_COLOR_THRESHOLD) & self._floor_region(height, width)

    def _strategy_bottom_band(self, image: RasterImage) -> np.ndarray:
        band = np.zeros((image.height, image.width), dtype=bool)
        band[math.floor(image.height * (1 - self.FALLBACK_BAND)):, :] = True
        return band

    def _run_strategies(
        self, image: RasterImage, cancel: CancellationToken | None
    ) -> Tuple[np.ndarray, str]:
        partial: List[Tuple[float, str, np.ndarray]] = []
        for name, strategy, threshold in self.strategies:
            check_cancelled(cancel, f"floor strategy {name}")
            grid = strategy(image)
            coverage = self.morphology.coverage(grid)
            logger.info(f"Floor strategy {name}: coverage {coverage:.3f} (needs {threshold:.2f})")
            if coverage >= threshold:
                return grid, name
            partial.append((coverage, name, grid))

        usable = [p for p in partial if p[0] >= self.MIN_COVERAGE]
        if usable:
            coverage, name, grid = max(usable, key=lambda p: p[0])
            logger.info(f"Keeping partial result of {name} ({coverage:.3f})")
            return grid, name

        logger.info("No colour strategy found the floor, using the bottom band")
        return self._strategy_bottom_band(image), "bottom_band"

    # ─── Refinement ──────────────────────────────────────────────
    def _exclude_edges(self, grid: np.ndarray, edges: np.ndarray) -> np.ndarray:
        """Clear every strong-edge cell together with its 3x3 neighbourhood."""
        strong = edges > self.EDGE_THRESHOLD
        return grid & ~self.morphology.dilate(strong, 1)

    def _cleanup(self, grid: np.ndarray) -> np.ndarray:
        m = self.morphology
        grid = m.dilate(m.erode(grid, 2), 2)
        grid = m.remove_small_components(grid, grid.size * self.MIN_COMPONENT_FRACTION)
        grid = m.erode(m.dilate(grid, 3), 2)
        grid = m.largest_connected_component(grid)
        grid = m.fill_holes(grid)
        return m.erode(m.dilate(grid, 2), 1)

    @staticmethod
    def detect_boundaries(grid: np.ndarray) -> Quad | None:
        """
        Trapezoid from the first and last rows holding any "on" cell, using the
        leftmost and rightmost "on" columns of each of those two rows.
        """
        on = np.asarray(grid) > 0.5
        rows = np.flatnonzero(on.any(axis=1))
        if rows.size == 0:
            return None
        top_y, bottom_y = int(rows[0]), int(rows[-1])
        top_cols = np.flatnonzero(on[top_y])
        bottom_cols = np.flatnonzero(on[bottom_y])
        return Quad(
            top_left=Point(float(top_cols[0]), float(top_y)),
            top_right=Point(float(top_cols[-1]), float(top_y)),
            bottom_left=Point(float(bottom_cols[0]), float(bottom_y)),
            bottom_right=Point(float(bottom_cols[-1]), float(bottom_y)),
        )

    # ─── Public API ───────────────────────────────────────────────
    def detect(self, image: RasterImage, cancel: CancellationToken | None = None) -> SegmentationResult:
        """
        Locate the floor.

        Raises:
            InputError: nothing floor-like survived (e.g. pure noise).
        """
        logger.info(f"Detecting floor area in {image.width}x{image.height} image")
        small = self.edge_service.downscale(image, self.max_dimension)

        grid, method = self._run_strategies(small, cancel)

        check_cancelled(cancel, "edge exclusion")
        edges = self.edge_service.edge_map(small)
        grid = self._exclude_edges(grid, edges)

        check_cancelled(cancel, "mask cleanup")
        grid = self._cleanup(grid)

        full = self.morphology.scale_grid(grid, image.width, image.height)
        if not full.any():
            raise InputError("Could not find a floor in this photo, please try a different one")

        mask = Mask.from_binary(full)
        logger.info(f"Floor detected via {method}: coverage {mask.coverage():.3f}")
        return SegmentationResult(
            mask=mask,
            confidence=self.CONFIDENCE,
            boundary=self.detect_boundaries(full),
            surface="floor",
            method=method,
        )
