"""Exclusive lease on a layout document, shared by editor and batch runs."""

import logging
import os
from pathlib import Path

from ...domain.errors import DocumentLocked, StorageError
from . import UNLINK_WHILE_OPEN, try_lock, unlock

logger = logging.getLogger(__name__)


def lease_path(document: Path) -> Path:
    return document.with_name(document.name + ".lock")


class DocumentLease:
    """Non-blocking exclusive lock on ``<document>.lock``.

    Usable as a context manager. Raises DocumentLocked when another holder
    (another process or another lease object in this one) has it.
    """

    def __init__(self, document: Path) -> None:
        self.document = document
        self.path = lease_path(document)
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> "DocumentLease":
        if self._fd is not None:
            return self

        while True:
            try:
                fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
            except OSError as e:
                raise StorageError(
                    f"Cannot create lease {self.path.name}: {e}", self.path
                ) from e

            if not try_lock(fd):
                os.close(fd)
                raise DocumentLocked(
                    f"{self.document.name} is locked by another session", self.document
                )

            if not UNLINK_WHILE_OPEN:
                break
            # The previous holder may have removed the file after we opened it
            try:
                current = os.stat(self.path)
            except FileNotFoundError:
                current = None
            if current is not None and os.path.samestat(os.fstat(fd), current):
                break
            unlock(fd)
            os.close(fd)

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug(f"Lease acquired: {self.path.name}")
        return self

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            if UNLINK_WHILE_OPEN:
                try:
                    self.path.unlink()
                except FileNotFoundError:
                    pass
            unlock(fd)
        finally:
            os.close(fd)
        logger.debug(f"Lease released: {self.path.name}")

    def __enter__(self) -> "DocumentLease":
        return self.acquire()

    def __exit__(self, *exc) -> None:
        self.release()
