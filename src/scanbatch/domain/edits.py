"""Edit transactions applied to a LayoutDocument.

A transaction is built from operator input, planned against the current
document (which validates it), and committed as a single Change. The
recorded Change's inverse is what undo replays.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .geometry import Axis, Box
from .layout import Change, LayoutDocument, Node, NodePath, Word, format_path


@dataclass(frozen=True)
class AppliedEdit:
    """A committed transaction with the change needed to redo or undo it."""

    transaction: "EditTransaction"
    change: Change
    result: object

    def undo(self, document: LayoutDocument) -> None:
        document.apply_change(self.change.inverse())

    def redo(self, document: LayoutDocument) -> None:
        document.apply_change(self.change)


class EditTransaction(ABC):
    """A single interactive mutation."""

    @abstractmethod
    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        """Validate against document and compute the change. No mutation."""

    @abstractmethod
    def describe(self) -> str:
        pass

    def apply(self, document: LayoutDocument) -> AppliedEdit:
        change, result = self.plan(document)
        document.apply_change(change)
        return AppliedEdit(self, change, result)


@dataclass(frozen=True)
class Insert(EditTransaction):
    parent: NodePath
    node: Node
    at_index: int

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_insert(self.parent, self.node, self.at_index)

    def describe(self) -> str:
        path = format_path(self.parent + (self.at_index,))
        return f"insert {type(self.node).__name__} at {path}"


@dataclass(frozen=True)
class Delete(EditTransaction):
    path: NodePath

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_delete(self.path)

    def describe(self) -> str:
        return f"delete {format_path(self.path)}"


@dataclass(frozen=True)
class Move(EditTransaction):
    """Move and/or resize a node."""

    path: NodePath
    box: Box

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_move(self.path, self.box)

    def describe(self) -> str:
        b = self.box
        return f"move {format_path(self.path)} to {b.x},{b.y} {b.width}x{b.height}"


@dataclass(frozen=True)
class Merge(EditTransaction):
    first: NodePath
    second: NodePath
    axis: Axis = Axis.X

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_merge(self.first, self.second)

    def describe(self) -> str:
        return f"merge {format_path(self.first)} + {format_path(self.second)}"

    def split_inverse(self, document: LayoutDocument) -> "Split":
        """The split that undoes this merge geometrically.

        Must be called before the merge is applied; the cut is placed midway
        between the two nodes and the text cut after the first word's text.
        """
        a, b = sorted([self.first, self.second])
        left = document.get(a)
        right = document.get(b)
        at = (left.box.end(self.axis) + right.box.start(self.axis)) / 2
        text_index = None
        if isinstance(left, Word):
            text_index = len(left.text)
        return Split(a, at, self.axis, text_index)


@dataclass(frozen=True)
class Split(EditTransaction):
    path: NodePath
    at: float
    axis: Axis = Axis.X
    text_index: int | None = None

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_split(self.path, self.at, self.axis, self.text_index)

    def describe(self) -> str:
        return f"split {format_path(self.path)} at {self.axis.value}={self.at}"

    def merge_inverse(self) -> Merge:
        """The merge that undoes this split."""
        return Merge(self.path, self.path[:-1] + (self.path[-1] + 1,), self.axis)


@dataclass(frozen=True)
class Reorder(EditTransaction):
    parent: NodePath
    new_order: tuple[int, ...]

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_reorder(self.parent, list(self.new_order))

    def describe(self) -> str:
        order = ",".join(str(i) for i in self.new_order)
        return f"reorder {format_path(self.parent)} as {order}"


@dataclass(frozen=True)
class SetText(EditTransaction):
    path: NodePath
    text: str

    def plan(self, document: LayoutDocument) -> tuple[Change, object]:
        return document.plan_set_text(self.path, self.text)

    def describe(self) -> str:
        return f"text {format_path(self.path)} = {self.text!r}"
