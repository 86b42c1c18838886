"""Progress store as an append-only JSON-lines file."""

import json
import logging
import os
import threading
from pathlib import Path

from ...domain.errors import StorageError
from ...domain.models import ProgressRecord
from ...ports.progress import ProgressPort

logger = logging.getLogger(__name__)


class JsonlProgressStore(ProgressPort):
    """Single-writer progress log for one batch.

    Every append is flushed and fsynced before returning, so a crash loses at
    most the line being written. On load the last record per page wins and a
    damaged line is skipped.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def append(self, record: ProgressRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise StorageError(f"Cannot append progress: {e}", self.path) from e
        logger.debug(f"Progress: {record.page_id} {record.status.value}")

    def load(self) -> dict[str, ProgressRecord]:
        records: dict[str, ProgressRecord] = {}
        with self._lock:
            if not self.path.exists():
                return records
            try:
                lines = self.path.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                raise StorageError(f"Cannot read progress: {e}", self.path) from e

        for lineno, line in enumerate(lines, 1):
            if not line.strip():
                continue
            try:
                record = ProgressRecord.from_dict(json.loads(line))
            except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
                logger.warning(
                    f"{self.path.name}:{lineno}: skipping unreadable record ({e})"
                )
                continue
            records[record.page_id] = record
        return records
