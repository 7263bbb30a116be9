# repositories/segmentation_repository.py
from __future__ import annotations
import numpy as np

from ..models.exceptions import InputError, ModelUnavailableError
from ..models.segmentation_engine import SegmentationEngine


class SegmentationRepository:
    """
    One-image inference against the background-segmentation engine.

    • The engine is anything exposing .predict(rgb) -> alpha.
    • Inference failures surface as ModelUnavailableError, wrong-sized
      alpha grids as InputError.
    """

    def __init__(self, engine: SegmentationEngine | None = None) -> None:
        self.engine = engine if engine is not None else SegmentationEngine()

    # ---------- public API ----------
    def retrieve_alpha(self, rgb: np.ndarray) -> np.ndarray:
        """
        Person alpha (H, W) float32 in [0, 1], validated against the input size.
        """
        try:
            alpha = np.asarray(self.engine.predict(rgb), dtype=np.float32)
        except ModelUnavailableError:
            raise
        except Exception as err:
            raise ModelUnavailableError(f"Background segmentation failed: {err}") from err

        if alpha.ndim == 3 and alpha.shape[2] == 1:
            alpha = alpha[:, :, 0]
        if alpha.shape != rgb.shape[:2]:
            raise InputError(
                f"Segmentation alpha has shape {alpha.shape}, expected {rgb.shape[:2]}"
            )
        return np.clip(np.nan_to_num(alpha), 0.0, 1.0)

    def retrieve_background(self, rgb: np.ndarray, thr: float = 0.5) -> np.ndarray:
        """
        Returns a bool (H, W) grid, True where the pixel is probably not a person.
        thr : alpha threshold in [0,1]
        """
        return self.retrieve_alpha(rgb) < thr
