"""Locate external tools and report their status."""

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from ...domain.errors import ExternalToolError
from .runner import ProcessRunner

logger = logging.getLogger(__name__)

AUTO = "auto"
PROBE_TIMEOUT = 15.0


@dataclass(frozen=True)
class ToolStatus:
    name: str
    path: str
    source: str
    available: bool
    detail: str


def _exe_name(name: str) -> str:
    return f"{name}.exe" if sys.platform == "win32" else name


def resolve_executable(
    configured: str, name: str, tool_dir: str, base: Path | None = None
) -> tuple[str, str]:
    """Find a tool binary.

    Order: explicit setting, ./<tool_dir>/bin/<name>, ./<tool_dir>/<name>,
    then PATH. Returns (path, source) where source says how it was found.
    """
    if configured != AUTO:
        return configured, "configured"

    base = base or Path.cwd()
    exe = _exe_name(name)
    for candidate, source in (
        (base / tool_dir / "bin" / exe, "local/bin"),
        (base / tool_dir / exe, "local"),
    ):
        if candidate.is_file():
            return str(candidate), source

    found = shutil.which(exe)
    if found:
        return found, "path"

    # Let the launch fail later with a clear message
    return exe, "path-fallback"


def find_tessdata_dir(tesseract: str, configured: Path | None = None) -> Path | None:
    """Find the directory holding *.traineddata files."""
    if configured is not None:
        nested = configured / "tessdata"
        return nested if nested.is_dir() else configured

    candidates: list[Path] = []
    located = shutil.which(tesseract) or tesseract
    parent = Path(located).resolve().parent
    candidates += [
        parent / "tessdata",
        parent.parent / "tessdata",
        parent.parent / "share" / "tessdata",
        Path.cwd() / "tessdata",
    ]
    prefix = os.environ.get("TESSDATA_PREFIX")
    if prefix:
        candidates += [Path(prefix) / "tessdata", Path(prefix)]

    for candidate in candidates:
        if candidate.is_dir() and any(candidate.glob("*.traineddata")):
            logger.debug(f"Found tessdata: {candidate}")
            return candidate
    return None


def probe_tool(
    runner: ProcessRunner, name: str, path: str, source: str, version_args: list[str]
) -> ToolStatus:
    """Run a tool's version/help command to see whether it works."""
    try:
        result = runner.run(path, version_args, timeout=PROBE_TIMEOUT)
    except ExternalToolError as e:
        return ToolStatus(name, path, source, False, str(e))

    output = (result.stdout or result.stderr).strip()
    first = output.splitlines()[0] if output else ""
    if result.ok:
        return ToolStatus(name, path, source, True, first or "OK")
    return ToolStatus(name, path, source, False, f"exit {result.exit_code}: {first}")
