"""Tests for WindowDetectionService with a fake segmentation engine."""
import numpy as np
import pytest

from surfaceviz.models.exceptions import InputError, ModelUnavailableError
from surfaceviz.models.geometry import Point, Quad
from surfaceviz.services.window_detection_service import WindowDetectionService

from conftest import FakeEngine, solid_image


def person_outside_pane(h, w):
    """Alpha 1 (person) everywhere except the pane of window_scene."""
    alpha = np.ones((h, w), dtype=np.float32)
    alpha[30:80, 30:90] = 0.0
    return alpha


class TestDetect:

    def test_bright_pane_detected(self, window_scene):
        service = WindowDetectionService(engine=FakeEngine(person_outside_pane))
        result = service.detect(window_scene)

        assert (result.width, result.height) == (120, 120)
        on = result.mask.binary()
        # the 5x5 majority vote trims three cells off each pane corner
        assert on[32:78, 32:88].all()
        assert not on[:30].any() and not on[80:].any()
        assert on.sum() == 50 * 60 - 12
        assert result.boundary == Quad.from_bounds(30, 30, 89, 79)
        assert result.confidence == pytest.approx(2988 / 14400)
        assert result.method == "window_heuristic"
        assert result.surface == "window"

    def test_all_person_photo_raises(self):
        engine = FakeEngine(lambda h, w: np.ones((h, w), dtype=np.float32))
        service = WindowDetectionService(engine=engine)
        with pytest.raises(InputError):
            service.detect(solid_image(40, 40))

    def test_model_failure_propagates(self, window_scene):
        class BrokenEngine:
            def predict(self, rgb):
                raise RuntimeError("no GPU")

        service = WindowDetectionService(engine=BrokenEngine())
        with pytest.raises(ModelUnavailableError):
            service.detect(window_scene)

    def test_model_sees_full_resolution_when_small(self, window_scene):
        engine = FakeEngine(person_outside_pane)
        WindowDetectionService(engine=engine).detect(window_scene)
        assert engine.calls == [(120, 120, 3)]


class TestScoring:

    @pytest.fixture
    def service(self, fake_engine):
        return WindowDetectionService(engine=fake_engine)

    def test_bright_rows_in_focus_band_score(self, service):
        background = np.ones((20, 10))
        luminance = np.full((20, 10), 0.2)
        luminance[:, :5] = 0.9
        edges = np.zeros((20, 10))
        scored = service.score(background, luminance, edges)
        # dark: 1 * 0.5 * 1.3 = 0.65 inside the band, 0.15 outside
        assert scored[1:18].all()
        assert not scored[0, 5:].any()
        assert not scored[18:, 5:].any()
        # bright columns survive even outside the band
        assert scored[[0, 18, 19], :5].all()

    def test_edges_damp_score(self, service):
        background = np.full((20, 1), 0.4)
        luminance = np.full((20, 1), 0.5)
        edges = np.zeros((20, 1))
        edges[10] = 0.8
        scored = service.score(background, luminance, edges)
        assert scored[9, 0]
        assert not scored[10, 0]

    def test_lookup_scales_grids(self):
        grid = np.array([[0.0, 1.0], [2.0, 3.0]])
        looked = WindowDetectionService._lookup(grid, 4, 4)
        assert looked[3, 3] == 3.0 and looked[0, 1] == 0.0 and looked[1, 2] == 1.0

    def test_rectangularity_filter(self, service):
        grid = np.zeros((100, 100), dtype=bool)
        grid[0:5, 20:80] = True       # 3% but aspect ~15
        grid[30:50, 30:50] = True     # 4%, square
        grid[60:100, 60:100] = True   # 16%, always kept
        grid[90:95, 0:5] = True       # too small
        out = service.filter_rectangular(grid)
        assert not out[0:5].any()
        assert out[30:50, 30:50].all()
        assert out[60:100, 60:100].all()
        assert not out[90:95, 0:5].any()

    def test_sparse_component_rejected(self, service):
        grid = np.zeros((100, 100), dtype=bool)
        grid[5:95, 5] = True
        grid[5:95, 94] = True
        grid[5, 5:95] = True
        grid[94, 5:95] = True         # hollow square, fill ratio ~0.05
        out = service.filter_rectangular(grid)
        assert not out.any()


class TestBoundaries:

    def test_bounding_box(self):
        grid = np.zeros((10, 10), dtype=bool)
        grid[2, 3] = grid[7, 8] = True
        assert WindowDetectionService.detect_boundaries(grid) == Quad.from_bounds(3, 2, 8, 7)

    def test_perspective_distortion_delegates(self, fake_engine):
        service = WindowDetectionService(engine=fake_engine)
        skewed = Quad(Point(20, 0), Point(80, 0), Point(0, 50), Point(100, 50))
        assert service.has_perspective_distortion(skewed)
        assert not service.has_perspective_distortion(Quad.from_bounds(0, 0, 100, 50))
