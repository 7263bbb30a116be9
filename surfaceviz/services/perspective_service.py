from __future__ import annotations
from itertools import combinations
from typing import List

from ..models.exceptions import GeometryError
from ..models.geometry import HomographyCoeffs, Point, Quad

PIVOT_EPS = 1e-10
COLLINEAR_EPS = 1e-9


class PerspectiveService:
    """
    Projective transform between two quadrilaterals, plus quad helpers.
    Pure functions of their inputs; nothing is cached between calls.
    """

    # ─── Validation ──────────────────────────────────────────────
    @staticmethod
    def validate_quad(quad: Quad) -> None:
        """
        Raise GeometryError if any three corners are collinear
        (or coincide), which leaves the 8x8 system singular.
        """
        corners = quad.corners()
        span = max(
            max(p.x for p in corners) - min(p.x for p in corners),
            max(p.y for p in corners) - min(p.y for p in corners),
            1.0,
        )
        for p, q, r in combinations(corners, 3):
            cross = (q.x - p.x) * (r.y - p.y) - (q.y - p.y) * (r.x - p.x)
            if abs(cross) <= COLLINEAR_EPS * span * span:
                raise GeometryError(
                    f"Degenerate quad: ({p.x}, {p.y}), ({q.x}, {q.y}), ({r.x}, {r.y}) are collinear"
                )

    # ─── Solver ──────────────────────────────────────────────────
    @staticmethod
    def _solve_linear_system(matrix: List[List[float]], rhs: List[float]) -> List[float]:
        """Gaussian elimination with partial pivoting, then back substitution."""
        n = len(matrix)
        aug = [list(row) + [rhs[i]] for i, row in enumerate(matrix)]

        for col in range(n):
            pivot_row = max(range(col, n), key=lambda r: abs(aug[r][col]))
            if abs(aug[pivot_row][col]) < PIVOT_EPS:
                raise GeometryError("Singular perspective system (near-zero pivot)")
            aug[col], aug[pivot_row] = aug[pivot_row], aug[col]

            pivot = aug[col][col]
            for r in range(col + 1, n):
                factor = aug[r][col] / pivot
                if factor == 0.0:
                    continue
                for j in range(col, n + 1):
                    aug[r][j] -= factor * aug[col][j]

        solution = [0.0] * n
        for i in range(n - 1, -1, -1):
            acc = aug[i][n]
            for j in range(i + 1, n):
                acc -= aug[i][j] * solution[j]
            solution[i] = acc / aug[i][i]
        return solution

    def solve(self, src: Quad, dst: Quad) -> HomographyCoeffs:
        """
        Coefficients mapping each corner of src onto the matching corner of dst.

        Raises:
            GeometryError: degenerate quad or singular system.
        """
        self.validate_quad(src)
        self.validate_quad(dst)

        matrix: List[List[float]] = []
        rhs: List[float] = []
        for s, d in zip(src.corners(), dst.corners()):
            matrix.append([s.x, s.y, 1.0, 0.0, 0.0, 0.0, -d.x * s.x, -d.x * s.y])
            matrix.append([0.0, 0.0, 0.0, s.x, s.y, 1.0, -d.y * s.x, -d.y * s.y])
            rhs.extend([d.x, d.y])

        return HomographyCoeffs(*self._solve_linear_system(matrix, rhs))

    @staticmethod
    def transform_point(point: Point, coeffs: HomographyCoeffs) -> Point:
        a, b, c, d, e, f, g, h = coeffs.as_tuple()
        denominator = g * point.x + h * point.y + 1.0
        if abs(denominator) < PIVOT_EPS:
            raise GeometryError(f"Point ({point.x}, {point.y}) maps to infinity")
        return Point(
            (a * point.x + b * point.y + c) / denominator,
            (d * point.x + e * point.y + f) / denominator,
        )

    # ─── Quad helpers ────────────────────────────────────────────
    @staticmethod
    def default_corners(width: float, height: float) -> Quad:
        """Full-frame rectangle, no perspective."""
        return Quad.from_bounds(0, 0, width, height)

    @staticmethod
    def is_rectangular(quad: Quad, threshold: float = 5) -> bool:
        """True when opposite sides differ by less than threshold px."""
        top_width = quad.top_right.x - quad.top_left.x
        bottom_width = quad.bottom_right.x - quad.bottom_left.x
        left_height = quad.bottom_left.y - quad.top_left.y
        right_height = quad.bottom_right.y - quad.top_right.y
        return abs(top_width - bottom_width) < threshold and abs(left_height - right_height) < threshold

    @staticmethod
    def has_perspective_distortion(quad: Quad, tolerance: float = 0.1) -> bool:
        """Opposite sides differ by more than `tolerance` of the longer one."""
        top_width = quad.top_right.x - quad.top_left.x
        bottom_width = quad.bottom_right.x - quad.bottom_left.x
        left_height = quad.bottom_left.y - quad.top_left.y
        right_height = quad.bottom_right.y - quad.top_right.y

        widest = max(top_width, bottom_width)
        tallest = max(left_height, right_height)
        width_ratio = abs(top_width - bottom_width) / widest if widest > 0 else 0.0
        height_ratio = abs(left_height - right_height) / tallest if tallest > 0 else 0.0
        return width_ratio > tolerance or height_ratio > tolerance

    @staticmethod
    def perspective_ratio(quad: Quad) -> float:
        """0 for a rectangle, towards 1 as the far edge shrinks."""
        top_width = quad.top_right.x - quad.top_left.x
        bottom_width = quad.bottom_right.x - quad.bottom_left.x
        if bottom_width <= 0:
            return 0.0
        return max(0.0, min(1.0, 1.0 - top_width / bottom_width))

    @staticmethod
    def adjust_corners_for_aspect_ratio(quad: Quad, aspect_ratio: float) -> Quad:
        """
        Grow the quad's bounding rectangle around its centre to match
        aspect_ratio (width / height). Within 0.1 of the target it is returned as is.
        """
        width = quad.top_right.x - quad.top_left.x
        height = quad.bottom_left.y - quad.top_left.y
        if height == 0 or aspect_ratio <= 0:
            raise GeometryError("Cannot adjust a quad with zero height or non-positive aspect ratio")
        current = width / height
        if abs(current - aspect_ratio) < 0.1:
            return quad

        new_width, new_height = width, height
        if current > aspect_ratio:
            new_height = width / aspect_ratio
        else:
            new_width = height * aspect_ratio

        cx = (quad.top_left.x + quad.top_right.x) / 2
        cy = (quad.top_left.y + quad.bottom_left.y) / 2
        return Quad.from_bounds(
            cx - new_width / 2, cy - new_height / 2,
            cx + new_width / 2, cy + new_height / 2,
        )
