"""End-to-end tests for the visualize_surface pipeline and the CLI."""
from unittest.mock import Mock

import numpy as np
import pytest

from surfaceviz.cli import visualize
from surfaceviz.models.cancellation import CancellationToken
from surfaceviz.models.exceptions import OperationCancelledError
from surfaceviz.models.geometry import Quad
from surfaceviz.models.mask import Mask
from surfaceviz.models.overlay import BlendMode
from surfaceviz.models.segmentation import SegmentationResult
from surfaceviz.pipeline.visualize_surface import visualize_surface
from surfaceviz.repositories.image_repository import ImageRepository
from surfaceviz.services.compositing_service import CompositingService
from surfaceviz.services.surface_service import SurfaceService

from conftest import LIGHT_GRAY, make_config, solid_image


@pytest.fixture(autouse=True)
def no_remote(monkeypatch):
    monkeypatch.delenv("REMOTE_SEGMENTATION_URL", raising=False)


class TestVisualizeSurface:

    def test_floor_replace(self, floor_scene):
        texture = solid_image(8, 8, color=(0, 200, 0))
        config = make_config(blend_mode=BlendMode.REPLACE)
        output, result = visualize_surface(floor_scene, texture, "floor", config)

        assert (output.width, output.height) == (100, 100)
        assert np.all(output.rgb[:40] == LIGHT_GRAY)
        assert np.all(output.rgb[40:] == (0, 200, 0))
        assert result.boundary.top_left.y == 40

    def test_detected_boundary_used_for_perspective(self):
        boundary = Quad.from_bounds(0, 5, 9, 9)
        detection = SegmentationResult(mask=Mask(np.ones((10, 10), np.float32)), confidence=1.0, boundary=boundary)
        surface_service = Mock(spec=SurfaceService)
        surface_service.detect.return_value = detection
        compositing_service = Mock(spec=CompositingService)
        compositing_service.composite.return_value = "composited"

        output, result = visualize_surface(
            solid_image(10, 10), solid_image(2, 2), "floor", make_config(),
            surface_service=surface_service,
            compositing_service=compositing_service,
            use_detected_perspective=True,
        )

        assert output == "composited"
        assert result is detection
        config = compositing_service.composite.call_args.args[3]
        assert config.perspective == boundary
        assert compositing_service.composite.call_args.kwargs["boundary"] == boundary

    def test_explicit_perspective_kept(self):
        boundary = Quad.from_bounds(0, 5, 9, 9)
        explicit = Quad.from_bounds(1, 1, 8, 8)
        surface_service = Mock(spec=SurfaceService)
        surface_service.detect.return_value = SegmentationResult(
            mask=Mask(np.ones((10, 10), np.float32)), confidence=1.0, boundary=boundary
        )
        compositing_service = Mock(spec=CompositingService)

        visualize_surface(
            solid_image(10, 10), solid_image(2, 2), "floor", make_config(perspective=explicit),
            surface_service=surface_service,
            compositing_service=compositing_service,
            use_detected_perspective=True,
        )
        assert compositing_service.composite.call_args.args[3].perspective == explicit

    def test_cancelled(self, floor_scene):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            visualize_surface(floor_scene, solid_image(2, 2), "floor", make_config(), cancel=token)


class TestCli:

    def test_renders_floor(self, floor_scene, tmp_path, capsys):
        repo = ImageRepository()
        photo = repo.save(floor_scene, tmp_path / "room.png")
        texture = repo.save(solid_image(4, 4, color=(0, 0, 255)), tmp_path / "tile.png")
        out = tmp_path / "result.png"

        code = visualize.main([
            str(photo), str(texture), "--out", str(out),
            "--blend-mode", "replace", "--opacity", "1", "--no-feather", "--no-lighting",
        ])

        assert code == 0
        rendered = repo.load(out)
        assert np.all(rendered.rgb[60] == (0, 0, 255))
        assert np.all(rendered.rgb[10] == LIGHT_GRAY)
        assert "Result saved" in capsys.readouterr().out

    def test_missing_photo(self, tmp_path):
        code = visualize.main([
            str(tmp_path / "missing.jpg"), str(tmp_path / "tile.png"), "--out", str(tmp_path / "r.jpg"),
        ])
        assert code == 1

    def test_parser_defaults(self):
        args = visualize.build_parser().parse_args(["a.jpg", "b.png", "--out", "c.jpg"])
        assert args.surface == "floor"
        assert args.blend_mode == "multiply"
        assert args.tile_size == 0
        assert not args.perspective
