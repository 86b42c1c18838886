"""Codec port - interface for archival codestream encoding."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import CancelToken


class CodecPort(ABC):
    """Interface for producing compressed codestreams from rasters."""

    @property
    @abstractmethod
    def profiles(self) -> dict[str, str]:
        """Enabled profile names mapped to their output file suffix."""
        pass

    @abstractmethod
    def encode(
        self,
        raster: Path,
        output: Path,
        profile: str,
        cancel: "CancelToken | None" = None,
    ) -> Path:
        """Encode raster into output using the named profile.

        Output exists only on success. Raises EncoderUnavailable,
        EncoderRejected or ProcessTimeout.
        """
        pass

    @abstractmethod
    def command(self, raster: Path, output: Path, profile: str) -> list[str]:
        """Command line that encode would run."""
        pass
