"""OCR adapters."""

from .tesseract import TesseractAdapter

__all__ = ["TesseractAdapter"]
