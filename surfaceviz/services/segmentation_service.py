# services/segmentation_service.py
from __future__ import annotations
import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..models.image import RasterImage
from ..models.mask import Mask
from ..models.segmentation import SegmentationResult
from ..models.segmentation_engine import SegmentationEngine
from ..repositories.segmentation_repository import SegmentationRepository
from .edge_service import EdgeService
from .morphology_service import MorphologyService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class SegmentationService:
    """
    Generic background segmentation on top of the person model.
    Used directly by the window detector, and available as a coarse
    "everything that is not a person" surface.
    """

    def __init__(
        self,
        engine: SegmentationEngine | None = None,
        inference_max_dimension: int | None = None,
    ) -> None:
        self.repo = SegmentationRepository(engine)
        self.inference_max_dimension = inference_max_dimension or int(
            os.getenv("INFERENCE_MAX_DIMENSION", "1024")
        )

    @staticmethod
    def _clean_mask(background: np.ndarray) -> np.ndarray:
        """
        1) Majority vote over a 5x5 window to drop speckle
        2) Keep the largest connected region
        """
        smoothed = MorphologyService.majority_filter(background, kernel_size=5)
        return MorphologyService.largest_connected_component(smoothed)

    def segment_background(self, image: RasterImage, thr: float = 0.5) -> SegmentationResult:
        """
        Background mask at inference resolution (long edge <= inference_max_dimension).

        confidence is the mean mask value, i.e. the share of the frame kept.
        """
        small = EdgeService.downscale(image, self.inference_max_dimension)
        background = self.repo.retrieve_background(np.ascontiguousarray(small.rgb), thr)
        cleaned = self._clean_mask(background)
        mask = Mask.from_binary(cleaned)
        confidence = mask.mean()
        logger.info(
            f"Background segmentation {small.width}x{small.height}: confidence {confidence * 100:.2f}%"
        )
        return SegmentationResult(mask=mask, confidence=confidence, surface="background", method="background")

    @staticmethod
    def scale_mask(mask: Mask, width: int, height: int) -> Mask:
        """Explicit nearest-neighbour rescale of a mask to width x height."""
        if (mask.width, mask.height) == (width, height):
            return mask
        return Mask(MorphologyService.scale_grid(mask.values, width, height))
