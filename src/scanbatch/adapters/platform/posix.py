"""Advisory file locks via flock."""

import fcntl

# An open lock file may be unlinked while still locked
UNLINK_WHILE_OPEN = True


def try_lock(fd: int) -> bool:
    """Take an exclusive lock without blocking. False if someone else holds it."""
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


def unlock(fd: int) -> None:
    fcntl.flock(fd, fcntl.LOCK_UN)
