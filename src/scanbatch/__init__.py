"""Scanned page batch conversion: JPEG 2000 codestreams and ALTO layout documents."""

__version__ = "0.1.0"
