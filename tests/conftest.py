"""Pytest configuration and shared fixtures for the surface visualizer.

Images are small synthetic rasters; the segmentation model is always a fake
so no test needs MediaPipe weights.
"""
import sys
import logging
from pathlib import Path
from typing import Callable

import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from surfaceviz.models.image import RasterImage
from surfaceviz.models.mask import Mask
from surfaceviz.models.overlay import BlendMode, OverlayConfig


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

# Disable some verbose loggers during testing
logging.getLogger('PIL').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)


LIGHT_GRAY = (200, 200, 200)
BROWN = (139, 90, 43)


class FakeEngine:
    """Stand-in for SegmentationEngine: returns a deterministic alpha grid."""

    def __init__(self, alpha_fn: Callable[[int, int], np.ndarray] | None = None):
        self.alpha_fn = alpha_fn or (lambda h, w: np.zeros((h, w), dtype=np.float32))
        self.calls = []

    def predict(self, rgb: np.ndarray) -> np.ndarray:
        self.calls.append(rgb.shape)
        h, w = rgb.shape[:2]
        return self.alpha_fn(h, w)


def solid_image(width: int, height: int, color=(128, 128, 128), alpha: int = 255) -> RasterImage:
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = color
    pixels[..., 3] = alpha
    return RasterImage(pixels)


def make_config(**overrides) -> OverlayConfig:
    values = dict(
        opacity=1.0,
        blend_mode=BlendMode.MULTIPLY,
        tile_size=0,
        feather_edges=False,
        preserve_lighting=False,
        perspective=None,
    )
    values.update(overrides)
    return OverlayConfig(**values)


@pytest.fixture
def fake_engine():
    """Engine that reports no person anywhere (alpha = 0)."""
    return FakeEngine()


@pytest.fixture
def floor_scene():
    """100x100: light gray in the top 40 rows, brown in the bottom 60."""
    pixels = np.zeros((100, 100, 4), dtype=np.uint8)
    pixels[:40, :, :3] = LIGHT_GRAY
    pixels[40:, :, :3] = BROWN
    pixels[..., 3] = 255
    return RasterImage(pixels)


@pytest.fixture
def window_scene():
    """120x120 dark wall with one bright pane at rows 30-79, cols 30-89."""
    pixels = np.zeros((120, 120, 4), dtype=np.uint8)
    pixels[..., :3] = (60, 60, 60)
    pixels[30:80, 30:90, :3] = (250, 250, 250)
    pixels[..., 3] = 255
    return RasterImage(pixels)


@pytest.fixture
def gradient_texture():
    """4x4 texture whose every pixel colour is distinct."""
    pixels = np.zeros((4, 4, 4), dtype=np.uint8)
    for y in range(4):
        for x in range(4):
            pixels[y, x] = (x * 60, y * 60, 100 + x + y, 255)
    return RasterImage(pixels)


@pytest.fixture
def half_mask():
    """10x10 mask: left half on."""
    values = np.zeros((10, 10), dtype=np.float32)
    values[:, :5] = 1.0
    return Mask(values)
