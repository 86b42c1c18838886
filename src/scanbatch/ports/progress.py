"""Progress port - interface for resumable batch progress."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import ProgressRecord


class ProgressPort(ABC):
    """Append-only record of page outcomes for one batch."""

    @abstractmethod
    def append(self, record: "ProgressRecord") -> None:
        """Persist one terminal page outcome. Safe to call from any thread."""
        pass

    @abstractmethod
    def load(self) -> dict[str, "ProgressRecord"]:
        """Latest record per page id."""
        pass
