"""Page-space rectangles."""

from dataclasses import dataclass
from enum import Enum


class Axis(str, Enum):
    X = "x"
    Y = "y"


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle: origin (x, y) plus extent (width, height)."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Negative extent: {self.width}x{self.height}")
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Negative origin: ({self.x}, {self.y})")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def start(self, axis: Axis) -> float:
        return self.x if axis == Axis.X else self.y

    def end(self, axis: Axis) -> float:
        return self.right if axis == Axis.X else self.bottom

    def center(self, axis: Axis) -> float:
        return (self.start(axis) + self.end(axis)) / 2

    def contains(self, other: "Box", tolerance: float = 0.0) -> bool:
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.right <= self.right + tolerance
            and other.bottom <= self.bottom + tolerance
        )

    def clamp_into(self, parent: "Box") -> "Box":
        """Return the part of this box that lies inside parent.

        A box entirely outside collapses to a zero-extent box on the nearest
        parent edge.
        """
        x0 = min(max(self.x, parent.x), parent.right)
        y0 = min(max(self.y, parent.y), parent.bottom)
        x1 = max(min(self.right, parent.right), x0)
        y1 = max(min(self.bottom, parent.bottom), y0)
        return Box(x0, y0, x1 - x0, y1 - y0)

    def translate(self, dx: float, dy: float) -> "Box":
        return Box(max(self.x + dx, 0), max(self.y + dy, 0), self.width, self.height)

    def union(self, other: "Box") -> "Box":
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.right, other.right)
        y1 = max(self.bottom, other.bottom)
        return Box(x0, y0, x1 - x0, y1 - y0)

    def split(self, axis: Axis, at: float) -> tuple["Box", "Box"]:
        """Cut along axis at coordinate `at`. Caller checks strict interior."""
        if axis == Axis.X:
            return (
                Box(self.x, self.y, at - self.x, self.height),
                Box(at, self.y, self.right - at, self.height),
            )
        return (
            Box(self.x, self.y, self.width, at - self.y),
            Box(self.x, at, self.width, self.bottom - at),
        )

    def strictly_inside(self, axis: Axis, at: float) -> bool:
        return self.start(axis) < at < self.end(axis)

    def close_to(self, other: "Box", tolerance: float) -> bool:
        return (
            abs(self.x - other.x) <= tolerance
            and abs(self.y - other.y) <= tolerance
            and abs(self.width - other.width) <= tolerance
            and abs(self.height - other.height) <= tolerance
        )


def bounding(boxes: list[Box]) -> Box:
    """Smallest box containing all boxes."""
    if not boxes:
        raise ValueError("No boxes to bound")
    result = boxes[0]
    for box in boxes[1:]:
        result = result.union(box)
    return result
