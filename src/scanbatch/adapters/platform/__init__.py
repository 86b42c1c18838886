"""Platform-specific adapters."""

import sys

if sys.platform == "win32":
    from .windows import UNLINK_WHILE_OPEN, try_lock, unlock
else:
    from .posix import UNLINK_WHILE_OPEN, try_lock, unlock

from .lease import DocumentLease, lease_path

__all__ = ["DocumentLease", "UNLINK_WHILE_OPEN", "lease_path", "try_lock", "unlock"]
