from __future__ import annotations
import logging
from typing import Sequence, Tuple

from ..models.cancellation import CancellationToken, check_cancelled
from ..models.exceptions import InputError, RemoteServiceError
from ..models.image import RasterImage
from ..models.segmentation import SegmentationResult
from ..models.segmentation_engine import SegmentationEngine
from ..repositories.remote_segmentation_repository import RemoteSegmentationRepository
from .floor_detection_service import FloorDetectionService
from .window_detection_service import WindowDetectionService

logger = logging.getLogger(__name__)

SURFACES = ("floor", "window")


class SurfaceService:
    """
    Single entry point for surface detection.

    Floors may come from the remote point-segmentation service; whenever it
    is missing, declines, or fails, the local floor detector runs instead.
    Windows always use the local detector.
    """

    def __init__(
        self,
        floor_service: FloorDetectionService | None = None,
        window_service: WindowDetectionService | None = None,
        remote: RemoteSegmentationRepository | None = None,
        engine: SegmentationEngine | None = None,
    ):
        self.floor_service = floor_service or FloorDetectionService()
        self._window_service = window_service
        self._engine = engine
        self.remote = remote or RemoteSegmentationRepository()

    @property
    def window_service(self) -> WindowDetectionService:
        # built on first use so floor-only callers never touch the model
        if self._window_service is None:
            self._window_service = WindowDetectionService(engine=self._engine)
        return self._window_service

    def _remote_floor(
        self, image: RasterImage, seed_points: Sequence[Tuple[float, float]] | None
    ) -> SegmentationResult | None:
        try:
            mask = self.remote.segment(image, seed_points)
        except RemoteServiceError as err:
            logger.warning(f"Remote segmentation failed, falling back to local detection: {err}")
            return None
        if mask is None:
            return None
        if not mask.binary().any():
            logger.warning("Remote segmentation returned an empty mask, falling back to local detection")
            return None
        return SegmentationResult(
            mask=mask,
            confidence=mask.mean(),
            boundary=self.floor_service.detect_boundaries(mask.binary()),
            surface="floor",
            method="remote",
        )

    def detect(
        self,
        image: RasterImage,
        surface: str,
        *,
        seed_points: Sequence[Tuple[float, float]] | None = None,
        cancel: CancellationToken | None = None,
    ) -> SegmentationResult:
        """
        Detect `surface` ("floor" or "window") in image.

        seed_points are normalised (x, y) hints for the remote service only.
        """
        surface = surface.lower()
        if surface not in SURFACES:
            raise InputError(f"Unknown surface type {surface!r}, expected one of {', '.join(SURFACES)}")

        check_cancelled(cancel, "surface detection")
        if surface == "window":
            return self.window_service.detect(image, cancel=cancel)

        result = self._remote_floor(image, seed_points)
        if result is not None:
            return result
        check_cancelled(cancel, "local floor detection")
        return self.floor_service.detect(image, cancel=cancel)
