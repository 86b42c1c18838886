"""Progress store adapters."""

from .jsonl import JsonlProgressStore

__all__ = ["JsonlProgressStore"]
