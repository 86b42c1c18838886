"""Raster port - interface for input image validation."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import RasterInfo


class RasterValidatorPort(ABC):
    """Interface for checking page rasters before processing."""

    @abstractmethod
    def validate(self, path: Path) -> "RasterInfo":
        """Inspect raster structure without modifying it.

        Raises InvalidFormat, UnsupportedColorModel or CorruptFile.
        """
        pass
