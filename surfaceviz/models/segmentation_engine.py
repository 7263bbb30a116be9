# models/segmentation_engine.py
"""
Wrapper around MediaPipe Selfie Segmentation.

• The TFLite graph is loaded lazily, once per engine instance, under a lock.
• Exposes .predict(rgb)  →  float alpha (H, W) in [0, 1], person = 1.
• One engine is created by the application and handed to the services
  that need it; there is no module-level cache.
"""
from __future__ import annotations
import logging
import os
import threading

import numpy as np
from dotenv import load_dotenv

from .exceptions import ModelUnavailableError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class SegmentationEngine:

    def __init__(self, model_selection: int | None = None) -> None:
        if model_selection is None:
            model_selection = int(os.getenv("SEGMENTATION_MODEL_SELECTION", "0"))
        # 0 → general model, 1 → landscape
        self.model_selection = model_selection
        self._mp_seg = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._mp_seg is not None

    # --------------------------------------------------
    def _init_runtime(self):
        with self._lock:
            if self._mp_seg is None:
                logger.info(f"Loading selfie segmentation model (model_selection={self.model_selection})")
                try:
                    import mediapipe as mp
                    self._mp_seg = mp.solutions.selfie_segmentation.SelfieSegmentation(
                        model_selection=self.model_selection
                    )
                except Exception as err:
                    raise ModelUnavailableError(f"Could not load segmentation model: {err}") from err
                logger.info("Segmentation model loaded")
        return self._mp_seg

    # --------------------------------------------------
    def predict(self, rgb: np.ndarray) -> np.ndarray:
        """
        Args
        ----
        rgb : np.ndarray  (H, W, 3)  uint8  RGB order

        Returns
        -------
        alpha : np.ndarray  (H, W)  float32  [0, 1]
        """
        seg = self._init_runtime()
        try:
            results = seg.process(np.ascontiguousarray(rgb))
        except Exception as err:
            raise ModelUnavailableError(f"Segmentation inference failed: {err}") from err
        if results.segmentation_mask is None:
            raise ModelUnavailableError("Segmentation model returned no mask")
        return results.segmentation_mask.astype("float32")

    def close(self) -> None:
        with self._lock:
            if self._mp_seg is not None:
                self._mp_seg.close()
                self._mp_seg = None
