"""WebP thumbnails of source rasters for quick visual review."""

import logging
from pathlib import Path

from PIL import Image

from ...domain.models import PageStatus, WorkItem

logger = logging.getLogger(__name__)

PREVIEW_DIR = "previews"


def write_preview(source: Path, dest: Path, size: int) -> Path:
    with Image.open(source) as img:
        img = img.convert("RGB" if img.mode in ("RGB", "RGBA", "CMYK", "P") else "L")
        img.thumbnail((size, size))
        dest.parent.mkdir(parents=True, exist_ok=True)
        img.save(dest, format="WEBP", quality=80)
    return dest


def write_previews(item: WorkItem, size: int) -> int:
    """Write a preview per completed page. Returns number written.

    A preview that cannot be written is logged and skipped.
    """
    written = 0
    for task in item.pages:
        if task.status != PageStatus.DONE:
            continue
        dest = item.logs_dir / PREVIEW_DIR / f"{task.page_id}.webp"
        try:
            write_preview(task.source, dest, size)
            written += 1
        except (OSError, ValueError) as e:
            logger.warning(f"Preview failed for {task.page_id}: {e}")
    logger.info(f"Previews: {written} written for {item.name}")
    return written
