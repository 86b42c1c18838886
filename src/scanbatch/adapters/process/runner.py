"""Run external executables with a time budget and cancellation."""

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from ...domain.errors import LaunchFailed, ProcessKilled, ProcessTimeout
from ...domain.models import CancelToken

logger = logging.getLogger(__name__)

STDERR_TAIL = 4000


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str
    stderr: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def stderr_tail(self) -> str:
        return self.stderr[-STDERR_TAIL:]


def command_to_string(executable: str, args: list[str]) -> str:
    return " ".join([executable, *args])


class ProcessRunner:
    """Launch a child in its own process group and always reap it.

    On timeout or cancellation the whole group gets SIGTERM, then SIGKILL
    after kill_grace seconds.
    """

    def __init__(self, kill_grace: float = 3.0, poll_interval: float = 0.1) -> None:
        self.kill_grace = kill_grace
        self.poll_interval = poll_interval

    def run(
        self,
        executable: str | Path,
        args: list[str],
        working_dir: Path | None = None,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        env: dict[str, str] | None = None,
    ) -> ProcessResult:
        exe = str(executable)
        cmd = [exe, *args]
        logger.debug(f"Running: {command_to_string(exe, args)}")

        popen_kwargs: dict = dict(
            cwd=working_dir,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        if env is not None:
            popen_kwargs["env"] = {**os.environ, **env}
        if os.name == "nt":
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

        started = time.monotonic()
        try:
            proc = subprocess.Popen(cmd, **popen_kwargs)
        except (FileNotFoundError, PermissionError, NotADirectoryError, OSError) as e:
            raise LaunchFailed(f"Cannot launch {exe}: {e}", exe) from e

        with proc:
            try:
                stdout, stderr = self._communicate(proc, exe, started, timeout, cancel)
            finally:
                if proc.poll() is None:
                    self._terminate(proc)

        duration = time.monotonic() - started
        if proc.returncode < 0:
            raise ProcessKilled(
                f"{exe} killed by signal {-proc.returncode}",
                exe,
                proc.returncode,
                proc.pid,
            )
        logger.debug(f"{Path(exe).name} exited {proc.returncode} after {duration:.1f}s")
        return ProcessResult(proc.returncode, stdout or "", stderr or "", duration)

    def _communicate(
        self,
        proc: subprocess.Popen,
        exe: str,
        started: float,
        timeout: float | None,
        cancel: CancelToken | None,
    ) -> tuple[str, str]:
        deadline = started + timeout if timeout is not None else None
        while True:
            wait = self.poll_interval
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            try:
                return proc.communicate(timeout=wait)
            except subprocess.TimeoutExpired:
                pass

            if cancel is not None and cancel.is_cancelled():
                logger.info(f"Cancelling {Path(exe).name} (pid {proc.pid})")
                self._terminate(proc)
                raise ProcessKilled(f"{exe} cancelled", exe, proc.returncode, proc.pid)

            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"{Path(exe).name} exceeded {timeout}s, terminating")
                self._terminate(proc)
                raise ProcessTimeout(f"{exe} timed out after {timeout}s", exe, proc.pid)

    def _terminate(self, proc: subprocess.Popen) -> None:
        """Terminate the child's process group and reap the child."""
        self._signal_group(proc, signal.SIGTERM)
        try:
            proc.communicate(timeout=self.kill_grace)
            return
        except subprocess.TimeoutExpired:
            pass
        self._signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        proc.communicate()

    def _signal_group(self, proc: subprocess.Popen, sig: int) -> None:
        if os.name == "nt":
            if sig == signal.SIGTERM:
                proc.terminate()
            else:
                proc.kill()
            return
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            proc.send_signal(sig)
