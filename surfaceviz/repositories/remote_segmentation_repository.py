from __future__ import annotations
import base64
import binascii
import logging
import os
from typing import List, Sequence, Tuple

import cv2
import numpy as np
import requests
from dotenv import load_dotenv

from ..models.exceptions import InputError, RemoteServiceError
from ..models.image import RasterImage
from ..models.mask import Mask
from .image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

POINT_FRAME = 1024
DEFAULT_SEED = (0.5, 0.85)  # normalised (x, y): lower middle of the photo


class RemoteSegmentationRepository:
    """
    Client for an optional point-prompted segmentation endpoint.

    segment() returns None whenever the caller should use local detection
    instead (service not configured, or the service asks for it), and
    raises RemoteServiceError for anything that went wrong on the way.
    """

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        image_repository: ImageRepository | None = None,
    ):
        self.url = url if url is not None else os.getenv("REMOTE_SEGMENTATION_URL", "")
        self.token = token if token is not None else os.getenv("REMOTE_SEGMENTATION_TOKEN", "")
        self.timeout = timeout or float(os.getenv("REMOTE_SEGMENTATION_TIMEOUT", "30"))
        self.image_repository = image_repository or ImageRepository()

    @property
    def configured(self) -> bool:
        return bool(self.url)

    @staticmethod
    def _frame_points(seed_points: Sequence[Tuple[float, float]] | None) -> List[List[int]]:
        """Normalised (x, y) seeds -> integer points in the service's square frame."""
        points = seed_points or [DEFAULT_SEED]
        return [[round(x * POINT_FRAME), round(y * POINT_FRAME)] for x, y in points]

    def _build_payload(self, image: RasterImage, seed_points) -> dict:
        points = self._frame_points(seed_points)
        return {
            "image": self.image_repository.to_data_url(image, fmt="PNG"),
            "points": points,
            "labels": [1] * len(points),
        }

    def _decode_mask(self, encoded: str, width: int, height: int) -> Mask:
        if "," in encoded and encoded.startswith("data:"):
            encoded = encoded.split(",", 1)[1]
        try:
            raw = base64.b64decode(encoded, validate=True)
            decoded = self.image_repository.decode(raw)
        except (binascii.Error, ValueError, InputError) as err:
            raise RemoteServiceError(f"Remote mask could not be decoded: {err}") from err

        gray = decoded.rgb.astype(np.float64).mean(axis=2) / 255.0
        if gray.shape != (height, width):
            gray = cv2.resize(gray, (width, height), interpolation=cv2.INTER_NEAREST)
        return Mask(np.clip(gray, 0.0, 1.0))

    # ─── Public API ───────────────────────────────────────────────
    def segment(
        self,
        image: RasterImage,
        seed_points: Sequence[Tuple[float, float]] | None = None,
    ) -> Mask | None:
        """
        Ask the remote service for a surface mask at image size.

        Args:
            image: the photo.
            seed_points: normalised (x, y) points on the surface.

        Returns:
            Mask | None: None means "use local detection".
        """
        if not self.configured:
            logger.info("Remote segmentation not configured, using local detection")
            return None

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = requests.post(
                self.url, json=self._build_payload(image, seed_points), headers=headers, timeout=self.timeout
            )
        except requests.exceptions.Timeout as err:
            raise RemoteServiceError(f"Remote segmentation timed out after {self.timeout}s") from err
        except requests.exceptions.RequestException as err:
            raise RemoteServiceError(f"Remote segmentation request failed: {err}") from err

        if not response.ok:
            raise RemoteServiceError(
                f"Remote segmentation returned {response.status_code}: {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as err:
            raise RemoteServiceError(f"Remote segmentation returned invalid JSON: {err}") from err
        if not isinstance(body, dict):
            raise RemoteServiceError("Remote segmentation returned an unexpected payload")

        if body.get("useLocalDetection"):
            logger.info(f"Remote service asked for local detection: {body.get('message', '')}")
            return None
        if not body.get("success") or not isinstance(body.get("mask"), str):
            raise RemoteServiceError("Remote segmentation response carries no mask")

        mask = self._decode_mask(body["mask"], image.width, image.height)
        logger.info(f"Remote segmentation mask received: coverage {mask.coverage():.3f}")
        return mask
