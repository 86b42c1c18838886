"""Layout document file formats."""

from .alto import build_alto, namespace_for, parse_alto, read_alto

__all__ = ["build_alto", "namespace_for", "parse_alto", "read_alto"]
