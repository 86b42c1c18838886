"""Per-batch manifest (YAML) and checksum list."""

import logging
from datetime import datetime
from pathlib import Path

import yaml
from blake3 import blake3

from ...domain.models import PageStatus, PageTask, WorkItem

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.yaml"
CHECKSUMS_NAME = "checksums.txt"
CHUNK_SIZE = 1 << 20


def blake3_file(path: Path) -> str:
    digest = blake3()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def file_entry(path: Path) -> dict | None:
    """Path, size and digest, or None if the file is missing."""
    if not path.is_file():
        return None
    return {
        "path": str(path),
        "size": path.stat().st_size,
        "blake3": blake3_file(path),
    }


def _page_entry(task: PageTask) -> dict:
    outputs = {name: file_entry(path) for name, path in task.codestreams.items()}
    outputs["alto"] = file_entry(task.document)
    outputs["text"] = file_entry(task.text)
    entry = {
        "page_id": task.page_id,
        "status": task.status.value,
        "source": file_entry(task.source),
        "outputs": outputs,
    }
    if task.raster is not None:
        entry["raster"] = {
            "width": task.raster.width,
            "height": task.raster.height,
            "color_model": task.raster.color_model,
            "bit_depth": task.raster.bit_depth,
        }
    if task.status == PageStatus.FAILED:
        entry["failures"] = [f.to_dict() for f in task.failures]
    return entry


def build_manifest(item: WorkItem, run_info: dict | None = None) -> dict:
    pages = [_page_entry(task) for task in item.pages]
    return {
        "batch": item.name,
        "state": item.state.value,
        "input_dir": str(item.source_dir),
        "output_dir": str(item.output_dir),
        "logs_dir": str(item.logs_dir),
        "generated": datetime.now().isoformat(timespec="seconds"),
        "page_count": len(pages),
        "done": len(item.done),
        "failed": len(item.failed),
        **(run_info or {}),
        "pages": pages,
    }


def checksum_lines(manifest: dict) -> list[str]:
    """b3sum-compatible lines for every file listed in the manifest."""
    lines = []
    for page in manifest["pages"]:
        entries = [page["source"], *page["outputs"].values()]
        for entry in entries:
            if entry is not None:
                lines.append(f"{entry['blake3']}  {entry['path']}")
    return lines


def write_manifest(item: WorkItem, run_info: dict | None = None) -> Path:
    """Write manifest.yaml and checksums.txt into the batch logs dir.

    Returns path to manifest.
    """
    manifest = build_manifest(item, run_info)
    item.logs_dir.mkdir(parents=True, exist_ok=True)

    manifest_path = item.logs_dir / MANIFEST_NAME
    logger.info(f"Writing manifest: {manifest_path}")
    manifest_path.write_text(
        yaml.safe_dump(
            manifest, default_flow_style=False, allow_unicode=True, sort_keys=False
        ),
        encoding="utf-8",
    )

    checksums_path = item.logs_dir / CHECKSUMS_NAME
    checksums_path.write_text("\n".join(checksum_lines(manifest)) + "\n", encoding="utf-8")
    return manifest_path


def read_manifest(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8"))
