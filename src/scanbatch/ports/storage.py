"""Storage port - interface for the output tree."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.layout import LayoutDocument
    from ..domain.models import PageTask, WorkItem


class StoragePort(ABC):
    """Interface for output file storage."""

    @abstractmethod
    def prepare_root(self) -> None:
        """Make sure the output root is usable. Raises BatchAborted."""
        pass

    @abstractmethod
    def prepare_batch(self, item: "WorkItem") -> None:
        """Create the batch output and logs directories."""
        pass

    @abstractmethod
    def write_document(self, path: Path, document: "LayoutDocument") -> Path:
        """Write a layout document atomically, honouring editor leases.

        Raises DocumentLocked or StorageError.
        """
        pass

    @abstractmethod
    def write_text(self, path: Path, text: str) -> Path:
        """Write a plain-text export atomically."""
        pass

    @abstractmethod
    def outputs_complete(self, task: "PageTask") -> bool:
        """Whether every output file of a page exists and is non-empty."""
        pass

    @abstractmethod
    def finalize_batch(self, item: "WorkItem") -> Path:
        """Write manifest and checksums for a batch.

        Returns path to manifest.
        """
        pass
