"""Output storage adapters."""

from .filesystem import FilesystemAdapter, atomic_write
from .manifest import blake3_file, read_manifest, write_manifest
from .previews import write_previews

__all__ = [
    "FilesystemAdapter",
    "atomic_write",
    "blake3_file",
    "read_manifest",
    "write_manifest",
    "write_previews",
]
