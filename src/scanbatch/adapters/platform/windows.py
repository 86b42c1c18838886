"""Byte-range locks via msvcrt."""

import msvcrt
import os

UNLINK_WHILE_OPEN = False


def try_lock(fd: int) -> bool:
    """Lock the first byte without blocking. False if someone else holds it."""
    os.lseek(fd, 0, os.SEEK_SET)
    try:
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
    except OSError:
        return False
    return True


def unlock(fd: int) -> None:
    os.lseek(fd, 0, os.SEEK_SET)
    msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
