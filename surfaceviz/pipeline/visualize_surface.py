# pipeline/visualize_surface.py
from __future__ import annotations
import dataclasses
import logging
from typing import Sequence, Tuple

from ..models.cancellation import CancellationToken, check_cancelled
from ..models.image import RasterImage
from ..models.overlay import OverlayConfig
from ..models.segmentation import SegmentationResult
from ..services.compositing_service import CompositingService
from ..services.surface_service import SurfaceService

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
def visualize_surface(
    image: RasterImage,
    texture: RasterImage,
    surface: str,
    config: OverlayConfig,
    *,
    surface_service: SurfaceService | None = None,
    compositing_service: CompositingService | None = None,
    seed_points: Sequence[Tuple[float, float]] | None = None,
    use_detected_perspective: bool = False,
    cancel: CancellationToken | None = None,
) -> Tuple[RasterImage, SegmentationResult]:
    """
    For one photo:
        • detect the requested surface (floor / window)
        • composite the texture into it
    With use_detected_perspective and no explicit config.perspective, the
    detected boundary doubles as the perspective quad.
    Returns the composited image and the detection result.
    """
    surface_service = surface_service or SurfaceService()
    compositing_service = compositing_service or CompositingService()

    # 1. detect → mask + boundary
    result = surface_service.detect(image, surface, seed_points=seed_points, cancel=cancel)
    logger.info(
        f"{surface.capitalize()} found via {result.method or 'local'}: "
        f"confidence {result.confidence:.2f}, boundary {result.boundary is not None}"
    )

    # 2. perspective source
    if use_detected_perspective and config.perspective is None and result.boundary is not None:
        config = dataclasses.replace(config, perspective=result.boundary)

    # 3. composite
    check_cancelled(cancel, "compositing")
    output = compositing_service.composite(
        image, texture, result.mask, config, boundary=result.boundary, cancel=cancel
    )
    return output, result
