"""Editing session over one layout document."""

import logging
from pathlib import Path

from ..adapters.layout.alto import build_alto, read_alto
from ..adapters.platform import DocumentLease
from ..adapters.storage.filesystem import atomic_write
from ..domain.edits import AppliedEdit, EditTransaction
from ..domain.layout import DEFAULT_TOLERANCE, BoundsPolicy, LayoutDocument

logger = logging.getLogger(__name__)


class EditorSession:
    """Holds the document lease, the working copy and undo/redo history.

    Nothing reaches disk until commit(). A rejected transaction raises
    DocumentInvariantError and leaves the working copy as it was.
    """

    def __init__(
        self,
        document_path: Path,
        image_path: Path | None = None,
        *,
        text_path: Path | None = None,
        alto_version: str = "4.4",
        bounds_policy: BoundsPolicy = BoundsPolicy.CLAMP,
        tolerance: float = DEFAULT_TOLERANCE,
        merge_separator: str = " ",
    ) -> None:
        self.document_path = document_path
        self.image_path = image_path
        self.text_path = text_path or document_path.with_suffix(".txt")
        self.alto_version = alto_version
        self.layout_options = {
            "bounds_policy": bounds_policy,
            "tolerance": tolerance,
            "merge_separator": merge_separator,
        }
        self._lease = DocumentLease(document_path)
        self._undo: list[AppliedEdit] = []
        self._redo: list[AppliedEdit] = []
        self.document: LayoutDocument | None = None
        self._saved: LayoutDocument | None = None

    # Lifecycle

    def open(self) -> "EditorSession":
        self._lease.acquire()
        try:
            self._load()
        except Exception:
            self._lease.release()
            raise
        words = len(self.document.words())
        logger.info(f"Editing {self.document_path.name}: {words} words")
        return self

    def close(self) -> None:
        if self.dirty:
            logger.warning(f"Closing {self.document_path.name} with unsaved changes")
        self._lease.release()

    def __enter__(self) -> "EditorSession":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _load(self) -> None:
        self.document = read_alto(self.document_path, **self.layout_options)
        self._saved = self.document.copy()
        self._undo.clear()
        self._redo.clear()

    # State

    @property
    def dirty(self) -> bool:
        return self.document is not None and self.document != self._saved

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def history(self) -> list[str]:
        return [edit.transaction.describe() for edit in self._undo]

    # Editing

    def apply(self, transaction: EditTransaction) -> AppliedEdit:
        applied = transaction.apply(self.document)
        self._undo.append(applied)
        self._redo.clear()
        logger.debug(f"Applied: {transaction.describe()}")
        return applied

    def undo(self) -> AppliedEdit | None:
        if not self._undo:
            return None
        edit = self._undo.pop()
        edit.undo(self.document)
        self._redo.append(edit)
        return edit

    def redo(self) -> AppliedEdit | None:
        if not self._redo:
            return None
        edit = self._redo.pop()
        edit.redo(self.document)
        self._undo.append(edit)
        return edit

    def check(self) -> None:
        self.document.check_invariants()

    def commit(self) -> Path:
        """Write document and text export atomically. History is kept."""
        self.document.check_invariants()
        atomic_write(self.document_path, build_alto(self.document, self.alto_version))
        text = self.document.plain_text()
        atomic_write(self.text_path, text if text.endswith("\n") else text + "\n")
        self._saved = self.document.copy()
        logger.info(f"Saved {self.document_path.name}")
        return self.document_path

    def discard(self) -> None:
        """Drop unsaved changes by reloading from disk."""
        self._load()
        logger.info(f"Discarded changes to {self.document_path.name}")
