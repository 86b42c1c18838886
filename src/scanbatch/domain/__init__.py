"""Domain layer - core business logic."""

from .geometry import Axis, Box
from .layout import (
    MANUAL_CONFIDENCE,
    BoundsPolicy,
    LayoutDocument,
    TextBlock,
    TextLine,
    Word,
)
from .models import (
    BatchResult,
    BatchState,
    CancelToken,
    PageStatus,
    PageTask,
    ProgressRecord,
    RasterInfo,
    RunResult,
    Stage,
    StageFailure,
    WorkItem,
)

__all__ = [
    "Axis",
    "BatchResult",
    "BatchState",
    "BoundsPolicy",
    "Box",
    "CancelToken",
    "LayoutDocument",
    "MANUAL_CONFIDENCE",
    "PageStatus",
    "PageTask",
    "ProgressRecord",
    "RasterInfo",
    "RunResult",
    "Stage",
    "StageFailure",
    "TextBlock",
    "TextLine",
    "WorkItem",
    "Word",
]
