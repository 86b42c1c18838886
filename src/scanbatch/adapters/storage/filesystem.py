"""Storage adapter using local filesystem."""

import logging
import os
import tempfile
from pathlib import Path

from ...domain.errors import BatchAborted, StorageError
from ...domain.layout import LayoutDocument
from ...domain.models import PageTask, WorkItem
from ...ports.storage import StoragePort
from ..layout.alto import build_alto
from ..platform import DocumentLease
from .manifest import write_manifest

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: str) -> Path:
    """Write via a temp file in the same directory and rename over path."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
    except OSError as e:
        raise StorageError(f"Cannot write {path.name}: {e}", path) from e
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError as e:
        raise StorageError(f"Cannot write {path.name}: {e}", path) from e
    finally:
        if tmp.exists():
            tmp.unlink()
    return path


class FilesystemAdapter(StoragePort):
    """Storage implementation using local filesystem."""

    def __init__(
        self,
        output_root: Path,
        alto_version: str = "4.4",
        run_info: dict | None = None,
    ) -> None:
        self.output_root = output_root
        self.alto_version = alto_version
        self.run_info = run_info or {}

    def prepare_root(self) -> None:
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryFile(dir=self.output_root):
                pass
        except OSError as e:
            raise BatchAborted(
                f"Output root {self.output_root} is not writable: {e}"
            ) from e

    def prepare_batch(self, item: WorkItem) -> None:
        try:
            item.output_dir.mkdir(parents=True, exist_ok=True)
            item.logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BatchAborted(f"Cannot create output for batch {item.name}: {e}") from e

    def write_document(self, path: Path, document: LayoutDocument) -> Path:
        content = build_alto(document, self.alto_version)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {path.parent}: {e}", path) from e
        with DocumentLease(path):
            atomic_write(path, content)
        logger.debug(f"Stored: {path.name}")
        return path

    def write_text(self, path: Path, text: str) -> Path:
        # Trailing newline keeps blank pages non-empty on disk
        if not text.endswith("\n"):
            text += "\n"
        return atomic_write(path, text)

    def outputs_complete(self, task: PageTask) -> bool:
        for path in task.outputs:
            try:
                if path.stat().st_size == 0:
                    return False
            except OSError:
                return False
        return True

    def finalize_batch(self, item: WorkItem) -> Path:
        try:
            return write_manifest(item, self.run_info)
        except OSError as e:
            raise StorageError(
                f"Cannot write manifest for {item.name}: {e}", item.logs_dir
            ) from e
