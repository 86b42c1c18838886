"""OCR port - interface for text recognition."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.layout import LayoutDocument
    from ..domain.models import CancelToken


@dataclass
class RecognizedPage:
    """Engine output for one page, parsed into a layout document."""

    document: "LayoutDocument"
    source: Path  # engine's native output file
    engine: str = ""


class OCRPort(ABC):
    """Interface for OCR processing."""

    @abstractmethod
    def recognize(
        self,
        raster: Path,
        output_base: Path,
        language: str,
        cancel: "CancelToken | None" = None,
    ) -> RecognizedPage:
        """Run OCR on a raster, writing engine output next to output_base.

        Raises RecognizerUnavailable, RecognizerRejected, ProcessTimeout or
        MalformedOcrOutput.
        """
        pass

    @abstractmethod
    def command(self, raster: Path, output_base: Path, language: str) -> list[str]:
        """Command line that recognize would run."""
        pass
