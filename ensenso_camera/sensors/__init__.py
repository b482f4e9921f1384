"""Camera drivers."""

from .ensenso import CameraNotFoundError, CaptureError, Ensenso, MonocularCameraError

__all__ = ["Ensenso", "CameraNotFoundError", "CaptureError", "MonocularCameraError"]
