from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, List, Sequence, Tuple

import cv2
import numpy as np

ColorPredicate = Callable[[Tuple[int, ...], Tuple[int, ...]], bool]


@dataclass
class Component:
    """One 4-connected "on" region of a binary grid."""
    label: int
    pixel_count: int
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    first_index: int  # row-major index of the first cell met in a scan


def color_distance_below(threshold: float) -> ColorPredicate:
    """Predicate: Euclidean RGB distance between the two colours < threshold."""
    limit = float(threshold) ** 2

    def _close(current, neighbour) -> bool:
        dr = current[0] - neighbour[0]
        dg = current[1] - neighbour[1]
        db = current[2] - neighbour[2]
        return dr * dr + dg * dg + db * db < limit

    return _close


class MorphologyService:
    """
    Binary-grid primitives shared by the floor and window detectors.
    Grids are (H, W) numpy arrays; anything non-zero counts as "on".
    Results are always new bool arrays.
    """

    @staticmethod
    def _kernel(radius: int) -> np.ndarray:
        return np.ones((2 * radius + 1, 2 * radius + 1), np.uint8)

    @staticmethod
    def dilate(grid: np.ndarray, radius: int) -> np.ndarray:
        """On if any cell of the (2r+1)² window is on. Out of bounds counts as off."""
        src = np.asarray(grid) > 0
        if radius <= 0:
            return src.copy()
        out = cv2.dilate(src.astype(np.uint8), MorphologyService._kernel(radius))
        return out > 0

    @staticmethod
    def erode(grid: np.ndarray, radius: int) -> np.ndarray:
        """On only if every in-bounds cell of the (2r+1)² window is on."""
        src = np.asarray(grid) > 0
        if radius <= 0:
            return src.copy()
        # OpenCV's default border for erode is +inf, i.e. out-of-bounds cells are ignored
        out = cv2.erode(src.astype(np.uint8), MorphologyService._kernel(radius))
        return out > 0

    @staticmethod
    def majority_filter(grid: np.ndarray, kernel_size: int = 5) -> np.ndarray:
        """On when more than half of the in-bounds window cells are on."""
        src = (np.asarray(grid) > 0).astype(np.float32)
        ksize = (kernel_size, kernel_size)
        on = cv2.boxFilter(src, -1, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
        count = cv2.boxFilter(np.ones_like(src), -1, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
        return on / count > 0.5

    # ─── Region growth ─────────────────────────────────────────────
    @staticmethod
    def flood_fill(
        pixels: np.ndarray,
        seeds: Iterable[Tuple[int, int]],
        predicate: ColorPredicate,
        allowed: np.ndarray | None = None,
    ) -> np.ndarray:
        """
        4-connected region growth from (x, y) seeds.

        A neighbour joins when predicate(current_color, neighbour_color) holds,
        so the fill follows gradual colour changes instead of matching a single
        reference colour.

        Args:
            pixels: (H, W) or (H, W, C) sample grid.
            seeds: (x, y) start points; out-of-range or disallowed seeds are skipped.
            predicate: colour-step test.
            allowed: optional bool grid restricting where the region may grow.

        Returns:
            (H, W) bool grid of filled cells.
        """
        height, width = pixels.shape[:2]
        flat = pixels.reshape(height * width, -1).tolist()
        colors = [tuple(c) for c in flat]
        ok = None if allowed is None else (np.asarray(allowed) > 0).ravel().tolist()
        visited = bytearray(height * width)

        queue = deque()
        for x, y in seeds:
            x, y = int(x), int(y)
            if not (0 <= x < width and 0 <= y < height):
                continue
            idx = y * width + x
            if visited[idx] or (ok is not None and not ok[idx]):
                continue
            visited[idx] = 1
            queue.append(idx)

        while queue:
            idx = queue.popleft()
            y, x = divmod(idx, width)
            current = colors[idx]
            for nidx, inside in (
                (idx - width, y > 0),
                (idx + width, y < height - 1),
                (idx - 1, x > 0),
                (idx + 1, x < width - 1),
            ):
                if not inside or visited[nidx]:
                    continue
                if ok is not None and not ok[nidx]:
                    continue
                if predicate(current, colors[nidx]):
                    visited[nidx] = 1
                    queue.append(nidx)

        return np.frombuffer(bytes(visited), dtype=np.uint8).reshape(height, width) > 0

    # ─── Connected components ─────────────────────────────────────
    @staticmethod
    def _label(grid: np.ndarray) -> Tuple[int, np.ndarray, np.ndarray]:
        src = (np.asarray(grid) > 0).astype(np.uint8)
        return cv2.connectedComponentsWithStats(src, connectivity=4)[:3]

    @staticmethod
    def label_components(grid: np.ndarray) -> Tuple[np.ndarray, List[Component]]:
        """
        Label 4-connected components.

        Returns the label grid (0 = off) and the components sorted by the
        row-major position of their first cell, which keeps every later
        tie-break independent of OpenCV's internal label numbering.
        """
        n, labels, stats = MorphologyService._label(grid)
        if n <= 1:
            return labels, []
        found, first = np.unique(labels.ravel(), return_index=True)
        first_of = dict(zip(found.tolist(), first.tolist()))
        components = []
        for label in range(1, n):
            x, y, w, h, area = stats[label].tolist()
            components.append(Component(
                label=label,
                pixel_count=area,
                min_x=x,
                min_y=y,
                max_x=x + w - 1,
                max_y=y + h - 1,
                first_index=first_of[label],
            ))
        components.sort(key=lambda c: c.first_index)
        return labels, components

    @staticmethod
    def keep_components(labels: np.ndarray, keep: Sequence[Component]) -> np.ndarray:
        if not keep:
            return np.zeros(labels.shape, dtype=bool)
        return np.isin(labels, [c.label for c in keep])

    @staticmethod
    def largest_connected_component(grid: np.ndarray) -> np.ndarray:
        """
        Keep only the component with the most cells.
        Ties go to the component met first in a row-major scan.
        """
        labels, components = MorphologyService.label_components(grid)
        if not components:
            return np.zeros(labels.shape, dtype=bool)
        best = components[0]
        for comp in components[1:]:
            if comp.pixel_count > best.pixel_count:
                best = comp
        return labels == best.label

    @staticmethod
    def remove_small_components(grid: np.ndarray, min_size: float) -> np.ndarray:
        """Drop every component with fewer than min_size cells."""
        labels, components = MorphologyService.label_components(grid)
        keep = [c for c in components if c.pixel_count >= min_size]
        return MorphologyService.keep_components(labels, keep)

    @staticmethod
    def fill_holes(grid: np.ndarray) -> np.ndarray:
        """Off cells that cannot be reached from the border (4-connected) become on."""
        on = np.asarray(grid) > 0
        labels, components = MorphologyService.label_components(~on)
        if not components:
            return on.copy()
        border = np.concatenate([labels[0, :], labels[-1, :], labels[:, 0], labels[:, -1]])
        outside = set(np.unique(border).tolist()) - {0}
        holes = [c for c in components if c.label not in outside]
        return on | MorphologyService.keep_components(labels, holes)

    # ─── Helpers ───────────────────────────────────────────────────
    @staticmethod
    def coverage(grid: np.ndarray) -> float:
        """Fraction of "on" cells."""
        return float((np.asarray(grid) > 0).mean())

    @staticmethod
    def scale_grid(grid: np.ndarray, width: int, height: int) -> np.ndarray:
        """
        Nearest-neighbour rescale by index mapping:
        src = floor(dst * src_size / dst_size).
        """
        src_h, src_w = grid.shape[:2]
        ys = np.minimum((np.arange(height) * src_h) // height, src_h - 1)
        xs = np.minimum((np.arange(width) * src_w) // width, src_w - 1)
        return np.asarray(grid)[ys[:, None], xs[None, :]]
