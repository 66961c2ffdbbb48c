"""Browser package"""
from .controller import BrowserController
from .artifact_capture import ArtifactCapture, CaptureResult

__all__ = ["BrowserController", "ArtifactCapture", "CaptureResult"]
