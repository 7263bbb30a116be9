from __future__ import annotations
import threading

from .exceptions import OperationCancelledError


class CancellationToken:
    """
    Thread-safe cancel flag shared between a caller and a long detection /
    compositing pass. Workers call .raise_if_cancelled() between stages.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        if self._event.is_set():
            where = f" during {stage}" if stage else ""
            raise OperationCancelledError(f"Operation cancelled{where}")


def check_cancelled(token: CancellationToken | None, stage: str = "") -> None:
    """No-op when no token was supplied."""
    if token is not None:
        token.raise_if_cancelled(stage)
