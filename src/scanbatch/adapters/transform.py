"""Shared invocation logic for tools that turn a raster into a file.

The codec and OCR adapters differ only in how they build arguments and read
back their output; launching, error mapping and timeouts live here.
"""

import logging
from pathlib import Path

from ..domain.errors import LaunchFailed, ToolRejected, ToolUnavailable
from ..domain.models import CancelToken
from .process.runner import ProcessResult, ProcessRunner

logger = logging.getLogger(__name__)


class ExternalTransform:
    """Base for adapters wrapping one external executable."""

    label = "tool"
    unavailable_error: type[ToolUnavailable] = ToolUnavailable
    rejected_error: type[ToolRejected] = ToolRejected

    def __init__(
        self,
        executable: str,
        runner: ProcessRunner | None = None,
        timeout: float | None = None,
    ) -> None:
        self.executable = executable
        self.runner = runner or ProcessRunner()
        self.timeout = timeout

    def invoke(
        self,
        args: list[str],
        working_dir: Path | None = None,
        cancel: CancelToken | None = None,
        env: dict[str, str] | None = None,
    ) -> ProcessResult:
        """Run the tool; non-zero exit raises rejected_error.

        ProcessTimeout and ProcessKilled propagate unchanged.
        """
        try:
            result = self.runner.run(
                self.executable,
                args,
                working_dir=working_dir,
                timeout=self.timeout,
                cancel=cancel,
                env=env,
            )
        except LaunchFailed as e:
            raise self.unavailable_error(
                f"{self.label} unavailable ({self.executable}): {e}", self.executable
            ) from e

        if not result.ok:
            first = next((ln for ln in result.stderr.splitlines() if ln.strip()), "")
            raise self.rejected_error(
                f"{self.label} exited with {result.exit_code}: {first}".rstrip(": "),
                self.executable,
                result.exit_code,
                result.stderr_tail,
            )
        return result
