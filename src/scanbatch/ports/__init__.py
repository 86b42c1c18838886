"""Ports - interfaces for external dependencies."""

from .codec import CodecPort
from .ocr import OCRPort, RecognizedPage
from .progress import ProgressPort
from .raster import RasterValidatorPort
from .storage import StoragePort

__all__ = [
    "CodecPort",
    "OCRPort",
    "ProgressPort",
    "RasterValidatorPort",
    "RecognizedPage",
    "StoragePort",
]
