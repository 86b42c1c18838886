"""Domain models."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class PageStatus(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    ENCODING = "encoding"
    RECOGNIZING = "recognizing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (PageStatus.DONE, PageStatus.FAILED)


class BatchState(str, Enum):
    DISCOVERED = "discovered"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"


class Stage(str, Enum):
    VALIDATE = "validate"
    CODEC = "codec"
    OCR = "ocr"
    WRITE = "write"


@dataclass(frozen=True)
class RasterInfo:
    """Validated raster descriptor."""

    width: int
    height: int
    bit_depth: int
    color_model: str
    format: str = "TIFF"
    compression: str | None = None
    dpi: tuple[float, float] | None = None


@dataclass(frozen=True)
class StageFailure:
    """Why one stage of a page failed."""

    stage: Stage
    kind: str  # exception class name
    message: str
    exit_code: int | None = None
    stderr: str = ""

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "kind": self.kind,
            "message": self.message,
            "exit_code": self.exit_code,
            "stderr": self.stderr,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StageFailure":
        return cls(
            stage=Stage(data["stage"]),
            kind=data.get("kind", ""),
            message=data.get("message", ""),
            exit_code=data.get("exit_code"),
            stderr=data.get("stderr", ""),
        )

    def __str__(self) -> str:
        text = f"{self.stage.value}: {self.kind}: {self.message}"
        if self.exit_code is not None:
            text += f" (exit {self.exit_code})"
        return text


@dataclass
class PageTask:
    """One page of a WorkItem. Mutated only by the worker running it."""

    page_id: str
    source: Path
    codestreams: dict[str, Path]  # codec profile name -> output path
    document: Path
    text: Path
    status: PageStatus = PageStatus.PENDING
    failures: list[StageFailure] = field(default_factory=list)
    raster: RasterInfo | None = None

    @property
    def outputs(self) -> list[Path]:
        return [*self.codestreams.values(), self.document, self.text]

    @property
    def last_error(self) -> str | None:
        if not self.failures:
            return None
        return "; ".join(str(f) for f in self.failures)

    def fail(self, failure: StageFailure) -> None:
        self.failures.append(failure)
        self.status = PageStatus.FAILED


@dataclass
class WorkItem:
    """One batch directory and its pages in reading order."""

    name: str
    source_dir: Path
    output_dir: Path
    logs_dir: Path
    pages: tuple[PageTask, ...]
    state: BatchState = BatchState.DISCOVERED

    @property
    def done(self) -> list[PageTask]:
        return [p for p in self.pages if p.status == PageStatus.DONE]

    @property
    def failed(self) -> list[PageTask]:
        return [p for p in self.pages if p.status == PageStatus.FAILED]


@dataclass(frozen=True)
class ProgressRecord:
    """One line of a batch's progress log."""

    page_id: str
    status: PageStatus
    timestamp: datetime
    last_error: str | None = None
    failures: tuple[StageFailure, ...] = ()

    def to_dict(self) -> dict:
        return {
            "page_id": self.page_id,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "last_error": self.last_error,
            "failures": [f.to_dict() for f in self.failures],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProgressRecord":
        return cls(
            page_id=data["page_id"],
            status=PageStatus(data["status"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            last_error=data.get("last_error"),
            failures=tuple(StageFailure.from_dict(f) for f in data.get("failures", [])),
        )

    @classmethod
    def for_task(cls, task: PageTask) -> "ProgressRecord":
        return cls(
            page_id=task.page_id,
            status=task.status,
            timestamp=datetime.now(),
            last_error=task.last_error,
            failures=tuple(task.failures),
        )


@dataclass
class BatchResult:
    """Outcome of one WorkItem run."""

    name: str
    state: BatchState
    processed: int = 0
    skipped: int = 0
    failed: list[PageTask] = field(default_factory=list)
    manifest_path: Path | None = None

    @property
    def success(self) -> bool:
        return self.state == BatchState.COMPLETED


@dataclass
class RunResult:
    """Outcome of a whole run across WorkItems."""

    batches: list[BatchResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.cancelled and all(b.success for b in self.batches)

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return 130
        return 0 if self.success else 1


class CancelToken:
    """Cancellation flag, optionally chained to a parent token."""

    def __init__(self, parent: "CancelToken | None" = None) -> None:
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled()
