"""Raster validation using Pillow."""

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ...domain.errors import CorruptFile, InvalidFormat, UnsupportedColorModel
from ...domain.models import RasterInfo
from ...ports.raster import RasterValidatorPort

logger = logging.getLogger(__name__)

# Pillow mode -> (color model, bits per sample)
MODES = {
    "1": ("bilevel", 1),
    "L": ("grayscale", 8),
    "LA": ("grayscale-alpha", 8),
    "I;16": ("grayscale", 16),
    "I;16L": ("grayscale", 16),
    "I;16B": ("grayscale", 16),
    "I;16N": ("grayscale", 16),
    "I": ("grayscale", 32),
    "F": ("grayscale", 32),
    "P": ("palette", 8),
    "RGB": ("rgb", 8),
    "RGBA": ("rgba", 8),
    "CMYK": ("cmyk", 8),
}


class PillowRasterValidator(RasterValidatorPort):
    """Checks that a page raster is a readable, supported image."""

    def __init__(
        self,
        formats: list[str] | None = None,
        color_models: list[str] | None = None,
        rejected_compressions: list[str] | None = None,
        min_size: int = 1,
        max_pixels: int | None = None,
    ) -> None:
        self.formats = {f.upper() for f in (formats or ["TIFF"])}
        self.color_models = set(color_models or ["bilevel", "grayscale", "rgb"])
        self.rejected_compressions = {c.lower() for c in (rejected_compressions or [])}
        self.min_size = min_size
        self.max_pixels = max_pixels
        limit = Image.MAX_IMAGE_PIXELS
        if max_pixels and limit is not None and limit < max_pixels:
            # Pillow refuses rasters past twice this process-wide limit
            Image.MAX_IMAGE_PIXELS = max_pixels

    def validate(self, path: Path) -> RasterInfo:
        logger.debug(f"Validating: {path.name}")
        try:
            size = path.stat().st_size
        except OSError as e:
            raise CorruptFile(path, f"cannot read file: {e}") from e
        if size == 0:
            raise CorruptFile(path, "file is empty")

        try:
            with Image.open(path) as img:
                fmt = img.format or ""
                img.verify()
        except UnidentifiedImageError as e:
            raise InvalidFormat(path, "not a recognized image") from e
        except Image.DecompressionBombError as e:
            raise CorruptFile(path, f"too many pixels: {e}") from e
        except (OSError, SyntaxError, ValueError) as e:
            raise CorruptFile(path, f"structure check failed: {e}") from e

        if fmt.upper() not in self.formats:
            raise InvalidFormat(path, f"format {fmt} not in {sorted(self.formats)}")

        # verify() leaves the image unusable, reopen to read and decode
        try:
            with Image.open(path) as img:
                mode = img.mode
                width, height = img.size
                compression = img.info.get("compression")
                dpi = img.info.get("dpi")
                self._check_geometry(path, width, height)
                img.load()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
            raise CorruptFile(path, f"cannot decode: {e}") from e

        if mode not in MODES:
            raise UnsupportedColorModel(path, f"unsupported image mode {mode}")
        color_model, bit_depth = MODES[mode]
        if color_model not in self.color_models:
            raise UnsupportedColorModel(
                path, f"color model {color_model} not in {sorted(self.color_models)}"
            )
        if compression and compression.lower() in self.rejected_compressions:
            raise InvalidFormat(path, f"compression {compression} not accepted")

        info = RasterInfo(
            width=width,
            height=height,
            bit_depth=bit_depth,
            color_model=color_model,
            format=fmt,
            compression=compression,
            dpi=tuple(float(d) for d in dpi) if dpi else None,
        )
        logger.debug(f"Valid: {path.name} {width}x{height} {color_model}/{bit_depth}")
        return info

    def _check_geometry(self, path: Path, width: int, height: int) -> None:
        if width < self.min_size or height < self.min_size:
            raise CorruptFile(path, f"dimensions {width}x{height} below {self.min_size}px")
        if self.max_pixels and width * height > self.max_pixels:
            raise CorruptFile(path, f"{width}x{height} exceeds {self.max_pixels} pixels")
