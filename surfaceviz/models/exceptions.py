"""Custom exceptions for the surface visualizer."""


class SurfaceVizError(Exception):
    """Base error for detection and compositing."""
    pass


class InputError(SurfaceVizError, ValueError):
    """Malformed or mismatched image / mask data, or an unsegmentable photo."""
    pass


class GeometryError(SurfaceVizError):
    """Degenerate quad or singular perspective system."""
    pass


class ModelUnavailableError(SurfaceVizError):
    """Background-segmentation model failed to load or infer."""
    pass


class RemoteServiceError(SurfaceVizError):
    """Remote point-segmentation call failed. Always recoverable."""
    pass


class OperationCancelledError(SurfaceVizError):
    """Raised between stages once a CancellationToken has been cancelled."""
    pass
