"""Tests for FloorDetectionService: strategy cascade, cleanup and end-to-end detection."""
import numpy as np
import pytest

from surfaceviz.models.cancellation import CancellationToken
from surfaceviz.models.exceptions import InputError, OperationCancelledError
from surfaceviz.models.geometry import Point
from surfaceviz.models.image import RasterImage
from surfaceviz.services.floor_detection_service import FloorDetectionService

from conftest import BROWN, solid_image


@pytest.fixture
def service():
    return FloorDetectionService(max_dimension=500)


def fixed_grid(height, width, rows):
    grid = np.zeros((height, width), dtype=bool)
    grid[rows, :] = True
    return grid


class TestEndToEnd:

    def test_two_tone_room(self, service, floor_scene):
        result = service.detect(floor_scene)

        assert (result.width, result.height) == (100, 100)
        values = result.mask.values
        assert values.min() >= 0.0 and values.max() <= 1.0
        assert result.mask.coverage() >= 0.55
        assert not result.mask.binary()[:40].any()
        assert result.mask.binary()[40:].all()

        boundary = result.boundary
        assert boundary.top_left.y == 40 and boundary.top_right.y == 40
        assert boundary.bottom_left.y == 99 and boundary.bottom_right.y == 99
        assert boundary.top_left.x == 0 and boundary.bottom_right.x == 99

        assert result.confidence == pytest.approx(0.85)
        assert result.method == "flood_fill"
        assert result.surface == "floor"

    def test_large_photo_is_analysed_downscaled(self, floor_scene):
        big = RasterImage(np.repeat(np.repeat(floor_scene.pixels, 4, axis=0), 4, axis=1))
        result = FloorDetectionService(max_dimension=100).detect(big)
        assert (result.width, result.height) == (400, 400)
        assert result.boundary.top_left.y == 160
        assert result.boundary.bottom_left.y == 399

    def test_empty_result_raises(self, service, floor_scene, monkeypatch):
        monkeypatch.setattr(service, "_exclude_edges", lambda grid, edges: np.zeros_like(grid))
        with pytest.raises(InputError, match="different"):
            service.detect(floor_scene)

    def test_cancellation(self, service, floor_scene):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            service.detect(floor_scene, cancel=token)


class TestStrategies:

    def test_seed_points(self):
        seeds = FloorDetectionService._seed_points(100, 50)
        assert len(seeds) == 28
        assert all(y == 49 for _, y in seeds[:20])
        assert seeds[:20][0] == (2, 49) and seeds[19] == (97, 49)
        assert all(y == 48 for _, y in seeds[20:])
        assert [x for x, _ in seeds[20:]] == [10, 20, 30, 40, 60, 70, 80, 90]

    def test_flood_fill_restricted_to_bottom_region(self, service):
        result = service._strategy_flood_fill(solid_image(20, 20, color=BROWN))
        assert not result[:8].any()
        assert result[8:].all()

    def test_median_color(self, service, floor_scene):
        grid = service._strategy_median_color(floor_scene)
        assert not grid[:40].any()
        assert grid[40:].all()

    def test_bottom_band(self, service):
        band = service._strategy_bottom_band(solid_image(10, 20))
        assert not band[:15].any() and band[15:].all()

    def test_first_accepted_strategy_wins(self, service):
        image = solid_image(10, 10)
        service.strategies = [
            ("a", lambda img: fixed_grid(10, 10, slice(9, 10)), 0.08),
            ("b", lambda img: fixed_grid(10, 10, slice(5, 10)), 0.05),
        ]
        grid, name = service._run_strategies(image, None)
        assert name == "a"
        assert grid.sum() == 10

    def test_best_partial_result_kept(self, service):
        image = solid_image(100, 10)
        service.strategies = [
            ("a", lambda img: fixed_grid(10, 100, slice(9, 10)), 0.5),
            ("b", lambda img: fixed_grid(10, 100, slice(7, 10)), 0.5),
        ]
        grid, name = service._run_strategies(image, None)
        assert name == "b"
        assert grid.sum() == 300

    def test_falls_back_to_bottom_band(self, service):
        image = solid_image(10, 100)
        service.strategies = [("a", lambda img: np.zeros((100, 10), dtype=bool), 0.08)]
        grid, name = service._run_strategies(image, None)
        assert name == "bottom_band"
        assert grid[75:].all() and not grid[:75].any()


class TestRefinement:

    def test_edges_clear_neighbourhood(self, service):
        grid = np.ones((7, 7), dtype=bool)
        edges = np.zeros((7, 7))
        edges[3, 3] = 0.9
        edges[0, 0] = 0.2
        out = service._exclude_edges(grid, edges)
        assert not out[2:5, 2:5].any()
        assert out.sum() == 40

    def test_cleanup_drops_specks_and_fills_holes(self, service):
        grid = np.zeros((60, 60), dtype=bool)
        grid[30:, :] = True
        grid[45, 30] = False
        grid[5, 5] = True
        out = service._cleanup(grid)
        assert not out[:25].any()
        assert out[31:, :].all()

    def test_detect_boundaries_trapezoid(self):
        grid = np.zeros((10, 10), dtype=bool)
        grid[4, 3:7] = True
        grid[5:, :] = True
        quad = FloorDetectionService.detect_boundaries(grid)
        assert quad.top_left == Point(3, 4) and quad.top_right == Point(6, 4)
        assert quad.bottom_left == Point(0, 9) and quad.bottom_right == Point(9, 9)

    def test_detect_boundaries_empty(self):
        assert FloorDetectionService.detect_boundaries(np.zeros((3, 3))) is None
