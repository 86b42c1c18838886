"""External process adapters."""

from .discovery import ToolStatus, find_tessdata_dir, probe_tool, resolve_executable
from .runner import ProcessResult, ProcessRunner, command_to_string

__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "ToolStatus",
    "command_to_string",
    "find_tessdata_dir",
    "probe_tool",
    "resolve_executable",
]
