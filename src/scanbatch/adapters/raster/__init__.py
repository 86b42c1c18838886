"""Raster validation adapters."""

from .pillow import PillowRasterValidator

__all__ = ["PillowRasterValidator"]
