"""Error taxonomy.

Page-level errors (validation, external tools, parsing, single-page storage)
are recorded against the page and never abort a batch. Batch-level errors
(configuration, output root) abort the run.
"""

from pathlib import Path


class ScanBatchError(Exception):
    """Base class for all scanbatch errors."""


class ConfigurationError(ScanBatchError):
    """Configuration is missing or invalid."""


class BatchAborted(ScanBatchError):
    """The whole batch run cannot continue."""


# Raster validation


class ValidationError(ScanBatchError):
    """Input raster does not meet pipeline requirements."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path.name}: {message}")
        self.path = path


class InvalidFormat(ValidationError):
    pass


class UnsupportedColorModel(ValidationError):
    pass


class CorruptFile(ValidationError):
    pass


# External tools


class ExternalToolError(ScanBatchError):
    """External process could not produce a result."""

    retryable = True

    def __init__(
        self,
        message: str,
        executable: str = "",
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.executable = executable
        self.exit_code = exit_code
        self.stderr = stderr


class LaunchFailed(ExternalToolError):
    pass


class ProcessTimeout(ExternalToolError):
    def __init__(self, message: str, executable: str = "", pid: int | None = None) -> None:
        super().__init__(message, executable)
        self.pid = pid


class ProcessKilled(ExternalToolError):
    def __init__(
        self,
        message: str,
        executable: str = "",
        exit_code: int | None = None,
        pid: int | None = None,
    ) -> None:
        super().__init__(message, executable, exit_code)
        self.pid = pid


class ToolUnavailable(ExternalToolError):
    """Executable not found or misconfigured."""

    retryable = False


class ToolRejected(ExternalToolError):
    """Executable ran but refused the input."""


class EncoderUnavailable(ToolUnavailable):
    pass


class EncoderRejected(ToolRejected):
    pass


class RecognizerUnavailable(ToolUnavailable):
    pass


class RecognizerRejected(ToolRejected):
    pass


# Parsing


class ParseError(ScanBatchError):
    """External tool output cannot be understood. Never retried."""

    def __init__(self, message: str, source: Path | None = None, detail: str = "") -> None:
        super().__init__(message)
        self.source = source
        self.detail = detail


class MalformedOcrOutput(ParseError):
    pass


# Layout document edits


class DocumentInvariantError(ScanBatchError):
    """Edit rejected; the document is unchanged."""


class NodeNotFound(DocumentInvariantError):
    pass


class IndexOutOfRange(DocumentInvariantError):
    pass


class OutOfBounds(DocumentInvariantError):
    pass


class NotAdjacent(DocumentInvariantError):
    pass


class InvalidSplitPoint(DocumentInvariantError):
    pass


class NotAPermutation(DocumentInvariantError):
    pass


# Storage


class StorageError(ScanBatchError):
    """Cannot read or write an output path."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class DocumentLocked(StorageError):
    """Another session holds the document lease."""
