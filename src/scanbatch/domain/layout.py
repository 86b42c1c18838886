"""Layout document model: page -> blocks -> lines -> words.

Nodes are frozen dataclasses addressed by NodePath, a tuple of sibling
indices from the page root: (b,) is a block, (b, l) a line, (b, l, w) a word.
Nothing holds a parent pointer. Every edit is planned as a Change (Splice or
Permute) against the current tree, validated, and then committed as a pure
rewrite of the nodes along the path, so a rejected edit leaves the document
untouched and every committed change has an exact inverse.

Reading order is the position among siblings; each node also carries it as
``index``, renumbered whenever its sibling list is rebuilt.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union

from .errors import (
    DocumentInvariantError,
    IndexOutOfRange,
    InvalidSplitPoint,
    NodeNotFound,
    NotAdjacent,
    NotAPermutation,
    OutOfBounds,
)
from .geometry import Axis, Box, bounding

logger = logging.getLogger(__name__)

MANUAL_CONFIDENCE = 1.0  # confidence of operator-entered text
DEFAULT_TOLERANCE = 0.5

NodePath = tuple[int, ...]


class BoundsPolicy(str, Enum):
    """What to do with a child box that sticks out of its parent."""

    CLAMP = "clamp"
    REJECT = "reject"


@dataclass(frozen=True)
class Word:
    id: str
    box: Box
    text: str
    confidence: float = 0.0
    index: int = field(default=0, compare=False)

    @property
    def children(self) -> tuple:
        return ()


@dataclass(frozen=True)
class TextLine:
    id: str
    box: Box
    words: tuple[Word, ...] = ()
    index: int = field(default=0, compare=False)

    @property
    def children(self) -> tuple[Word, ...]:
        return self.words

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.words)


@dataclass(frozen=True)
class TextBlock:
    id: str
    box: Box
    lines: tuple[TextLine, ...] = ()
    index: int = field(default=0, compare=False)

    @property
    def children(self) -> tuple[TextLine, ...]:
        return self.lines

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


Node = Union[TextBlock, TextLine, Word]

# Node type expected at each depth below the page
LEVELS: tuple[type, ...] = (TextBlock, TextLine, Word)
ID_PREFIXES = {TextBlock: "block", TextLine: "line", Word: "string"}


def with_children(node: Node, children: tuple) -> Node:
    """Copy of node with children replaced and renumbered."""
    children = renumber(children)
    if isinstance(node, TextBlock):
        return replace(node, lines=children)
    if isinstance(node, TextLine):
        return replace(node, words=children)
    if children:
        raise DocumentInvariantError("Words cannot have children")
    return node


def renumber(nodes: tuple) -> tuple:
    return tuple(n if n.index == i else replace(n, index=i) for i, n in enumerate(nodes))


def iter_nodes(nodes: tuple, prefix: NodePath = ()):
    """Yield (path, node) depth-first in reading order."""
    for i, node in enumerate(nodes):
        path = prefix + (i,)
        yield path, node
        yield from iter_nodes(node.children, path)


@dataclass(frozen=True)
class Splice:
    """Replace children[start:start+len(removed)] of parent with inserted."""

    parent: NodePath
    start: int
    removed: tuple
    inserted: tuple

    def inverse(self) -> "Splice":
        return Splice(self.parent, self.start, self.inserted, self.removed)


@dataclass(frozen=True)
class Permute:
    """Reorder children of parent: new position i holds old child order[i]."""

    parent: NodePath
    order: tuple[int, ...]

    def inverse(self) -> "Permute":
        inverse = [0] * len(self.order)
        for new_pos, old_pos in enumerate(self.order):
            inverse[old_pos] = new_pos
        return Permute(self.parent, tuple(inverse))


Change = Union[Splice, Permute]


class LayoutDocument:
    """One page of recognized content."""

    def __init__(
        self,
        width: float,
        height: float,
        blocks: tuple[TextBlock, ...] = (),
        *,
        page_id: str = "page_0",
        physical_img_nr: int = 0,
        source_image: str = "",
        measurement_unit: str = "pixel",
        software: str = "",
        print_space: Box | None = None,
        bounds_policy: BoundsPolicy = BoundsPolicy.CLAMP,
        tolerance: float = DEFAULT_TOLERANCE,
        merge_separator: str = " ",
    ) -> None:
        self.width = width
        self.height = height
        self.page_id = page_id
        self.physical_img_nr = physical_img_nr
        self.source_image = source_image
        self.measurement_unit = measurement_unit
        self.software = software
        self.print_space = print_space
        self.bounds_policy = BoundsPolicy(bounds_policy)
        self.tolerance = tolerance
        self.merge_separator = merge_separator
        self._blocks: tuple[TextBlock, ...] = renumber(tuple(blocks))

    # Read access

    @property
    def blocks(self) -> tuple[TextBlock, ...]:
        return self._blocks

    @property
    def page_box(self) -> Box:
        return Box(0, 0, self.width, self.height)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LayoutDocument):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.page_id == other.page_id
            and self.physical_img_nr == other.physical_img_nr
            and self.source_image == other.source_image
            and self.measurement_unit == other.measurement_unit
            and self.software == other.software
            and self.print_space == other.print_space
            and self._blocks == other._blocks
        )

    def __repr__(self) -> str:
        return (
            f"LayoutDocument({self.width}x{self.height}, "
            f"{len(self._blocks)} blocks, {len(self.words())} words)"
        )

    def get(self, path: NodePath) -> Node:
        if not path:
            raise NodeNotFound("Empty path does not address a node")
        nodes = self._blocks
        node = None
        for depth, i in enumerate(path):
            if i < 0 or i >= len(nodes):
                raise NodeNotFound(f"No node at {format_path(path[: depth + 1])}")
            node = nodes[i]
            nodes = node.children
        return node

    def children_of(self, parent: NodePath) -> tuple:
        if not parent:
            return self._blocks
        if len(parent) >= len(LEVELS):
            raise NodeNotFound(f"{format_path(parent)} is a word and has no children")
        return self.get(parent).children

    def box_of(self, parent: NodePath) -> Box:
        return self.page_box if not parent else self.get(parent).box

    def walk(self):
        """Yield (path, node) for every node in reading order."""
        return iter_nodes(self._blocks)

    def words(self) -> list[Word]:
        return [node for _, node in self.walk() if isinstance(node, Word)]

    def find(self, node_id: str) -> NodePath:
        for path, node in self.walk():
            if node.id == node_id:
                return path
        raise NodeNotFound(f"No node with id {node_id!r}")

    def plain_text(self) -> str:
        return "\n\n".join(block.text for block in self._blocks if block.lines)

    def copy(self) -> "LayoutDocument":
        # Nodes are immutable, sharing them is safe
        return LayoutDocument(
            self.width,
            self.height,
            self._blocks,
            page_id=self.page_id,
            physical_img_nr=self.physical_img_nr,
            source_image=self.source_image,
            measurement_unit=self.measurement_unit,
            software=self.software,
            print_space=self.print_space,
            bounds_policy=self.bounds_policy,
            tolerance=self.tolerance,
            merge_separator=self.merge_separator,
        )

    def check_invariants(self) -> None:
        """Raise DocumentInvariantError if containment or ordering is broken."""
        self._check_level(self._blocks, self.page_box, (), 0)

    def normalize(self) -> bool:
        """Clamp every node into its parent regardless of policy.

        Used on freshly parsed documents. Returns True if anything moved.
        """
        fitted = renumber(
            tuple(self._fit(b, self.page_box, force_clamp=True) for b in self._blocks)
        )
        changed = fitted != self._blocks
        self._blocks = fitted
        return changed

    def _check_level(
        self, nodes: tuple, parent_box: Box, parent: NodePath, depth: int
    ) -> None:
        for i, node in enumerate(nodes):
            path = parent + (i,)
            if not isinstance(node, LEVELS[depth]):
                raise DocumentInvariantError(
                    f"{format_path(path)}: expected {LEVELS[depth].__name__}, "
                    f"got {type(node).__name__}"
                )
            if node.index != i:
                raise DocumentInvariantError(
                    f"{format_path(path)}: reading order {node.index} at position {i}"
                )
            if not parent_box.contains(node.box, self.tolerance):
                raise DocumentInvariantError(f"{format_path(path)}: outside parent bounds")
            if isinstance(node, Word) and not 0.0 <= node.confidence <= 1.0:
                raise DocumentInvariantError(
                    f"{format_path(path)}: confidence {node.confidence} outside [0, 1]"
                )
            self._check_level(node.children, node.box, path, depth + 1)

    # Commit

    def apply_change(self, change: Change) -> None:
        """Validate change against current state, then commit it."""
        siblings = self.children_of(change.parent)
        if isinstance(change, Splice):
            end = change.start + len(change.removed)
            if change.start < 0 or end > len(siblings):
                raise IndexOutOfRange(
                    f"Splice {change.start}:{end} outside {format_path(change.parent)} "
                    f"with {len(siblings)} children"
                )
            if siblings[change.start : end] != change.removed:
                raise DocumentInvariantError("Edit no longer matches the document")
            expected = LEVELS[len(change.parent)]
            for node in change.inserted:
                if not isinstance(node, expected):
                    raise DocumentInvariantError(
                        f"Cannot place {type(node).__name__} under "
                        f"{format_path(change.parent)}, expected {expected.__name__}"
                    )
            new_children = (
                siblings[: change.start] + tuple(change.inserted) + siblings[end:]
            )
        else:
            if sorted(change.order) != list(range(len(siblings))):
                raise NotAPermutation(
                    f"{list(change.order)} is not a permutation of 0..{len(siblings) - 1}"
                )
            new_children = tuple(siblings[i] for i in change.order)
        self._blocks = _rewrite(self._blocks, change.parent, new_children)

    # Planning (validate, compute the change, do not mutate)

    def plan_insert(
        self, parent: NodePath, node: Node, at_index: int
    ) -> tuple[Splice, Node]:
        siblings = self.children_of(parent)
        expected = LEVELS[len(parent)]
        if not isinstance(node, expected):
            raise DocumentInvariantError(
                f"Cannot insert {type(node).__name__} under {format_path(parent)}, "
                f"expected {expected.__name__}"
            )
        if at_index < 0 or at_index > len(siblings):
            raise IndexOutOfRange(
                f"Index {at_index} outside 0..{len(siblings)} for {format_path(parent)}"
            )
        placed = self._fit(self._assign_ids(node), self.box_of(parent))
        placed = replace(placed, index=at_index)
        return Splice(parent, at_index, (), (placed,)), placed

    def plan_delete(self, path: NodePath) -> tuple[Splice, Node]:
        node = self.get(path)
        return Splice(path[:-1], path[-1], (node,), ()), node

    def plan_move(self, path: NodePath, new_box: Box) -> tuple[Splice, Node]:
        node = self.get(path)
        dx = new_box.x - node.box.x
        dy = new_box.y - node.box.y
        moved = _translate_children(node, dx, dy)
        moved = replace(moved, box=new_box)
        moved = self._fit(moved, self.box_of(path[:-1]))
        return Splice(path[:-1], path[-1], (node,), (moved,)), moved

    def plan_merge(self, path_a: NodePath, path_b: NodePath) -> tuple[Splice, Node]:
        if not path_a or path_a[:-1] != path_b[:-1]:
            raise NotAdjacent(
                f"{format_path(path_a)} and {format_path(path_b)} do not share a parent"
            )
        if abs(path_a[-1] - path_b[-1]) != 1:
            raise NotAdjacent(
                f"{format_path(path_a)} and {format_path(path_b)} are not adjacent"
            )
        first_path, second_path = sorted([path_a, path_b])
        first = self.get(first_path)
        second = self.get(second_path)
        box = first.box.union(second.box)
        if isinstance(first, Word):
            if first.text and second.text:
                text = first.text + self.merge_separator + second.text
            else:
                text = first.text + second.text
            merged = replace(
                first,
                box=box,
                text=text,
                confidence=min(first.confidence, second.confidence),
            )
        else:
            children = first.children + second.children
            merged = with_children(replace(first, box=box), children)
        merged = self._fit(merged, self.box_of(first_path[:-1]))
        change = Splice(first_path[:-1], first_path[-1], (first, second), (merged,))
        return change, merged

    def plan_split(
        self,
        path: NodePath,
        at: float,
        axis: Axis = Axis.X,
        text_index: int | None = None,
    ) -> tuple[Splice, tuple[Node, Node]]:
        node = self.get(path)
        axis = Axis(axis)
        if not node.box.strictly_inside(axis, at):
            raise InvalidSplitPoint(
                f"{at} is not strictly inside {format_path(path)} "
                f"({node.box.start(axis)}..{node.box.end(axis)} on {axis.value})"
            )
        left_box, right_box = node.box.split(axis, at)
        right_id = self._unique_id(f"{node.id}_split")
        if isinstance(node, Word):
            left_text, right_text = self._split_text(node, axis, at, text_index)
            left = replace(node, box=left_box, text=left_text)
            right = replace(node, id=right_id, box=right_box, text=right_text)
        else:
            if text_index is not None:
                raise DocumentInvariantError("Text index applies to words only")
            before = tuple(c for c in node.children if c.box.center(axis) < at)
            after = tuple(c for c in node.children if c.box.center(axis) >= at)
            left = with_children(replace(node, box=left_box), before)
            right = with_children(replace(node, id=right_id, box=right_box), after)
            # Children straddling the cut are fitted into their side
            left = self._fit(left, left_box, force_clamp=True)
            right = self._fit(right, right_box, force_clamp=True)
        return Splice(path[:-1], path[-1], (node,), (left, right)), (left, right)

    def _split_text(
        self, word: Word, axis: Axis, at: float, text_index: int | None
    ) -> tuple[str, str]:
        text = word.text
        if text_index is None:
            extent = word.box.end(axis) - word.box.start(axis)
            ratio = (at - word.box.start(axis)) / extent
            text_index = round(len(text) * ratio)
        if text_index < 0 or text_index > len(text):
            raise InvalidSplitPoint(f"Text index {text_index} outside 0..{len(text)}")
        left, right = text[:text_index], text[text_index:]
        sep = self.merge_separator
        if sep and left.endswith(sep):
            left = left[: -len(sep)]
        elif sep and right.startswith(sep):
            right = right[len(sep) :]
        return left, right

    def plan_reorder(self, parent: NodePath, new_order: list[int]) -> tuple[Permute, tuple]:
        siblings = self.children_of(parent)
        order = tuple(new_order)
        if sorted(order) != list(range(len(siblings))):
            raise NotAPermutation(
                f"{list(order)} is not a permutation of 0..{len(siblings) - 1}"
            )
        return Permute(parent, order), renumber(tuple(siblings[i] for i in order))

    def plan_set_text(self, path: NodePath, text: str) -> tuple[Splice, Word]:
        node = self.get(path)
        if not isinstance(node, Word):
            raise DocumentInvariantError(f"{format_path(path)} is not a word")
        edited = replace(node, text=text, confidence=MANUAL_CONFIDENCE)
        return Splice(path[:-1], path[-1], (node,), (edited,)), edited

    # Operations (plan + commit)

    def insert(self, parent: NodePath, node: Node, at_index: int) -> Node:
        change, result = self.plan_insert(parent, node, at_index)
        self.apply_change(change)
        return result

    def delete(self, path: NodePath) -> Node:
        change, result = self.plan_delete(path)
        self.apply_change(change)
        return result

    def move(self, path: NodePath, new_box: Box) -> Node:
        change, result = self.plan_move(path, new_box)
        self.apply_change(change)
        return result

    def merge(self, path_a: NodePath, path_b: NodePath) -> Node:
        change, result = self.plan_merge(path_a, path_b)
        self.apply_change(change)
        return result

    def split(
        self,
        path: NodePath,
        at: float,
        axis: Axis = Axis.X,
        text_index: int | None = None,
    ) -> tuple[Node, Node]:
        change, result = self.plan_split(path, at, axis, text_index)
        self.apply_change(change)
        return result

    def reorder(self, parent: NodePath, new_order: list[int]) -> tuple:
        change, result = self.plan_reorder(parent, new_order)
        self.apply_change(change)
        return result

    def set_text(self, path: NodePath, text: str) -> Word:
        change, result = self.plan_set_text(path, text)
        self.apply_change(change)
        return result

    # Helpers

    def _fit(self, node: Node, parent_box: Box, force_clamp: bool = False) -> Node:
        """Make node and its descendants fit their parents under the policy."""
        box = node.box
        if not parent_box.contains(box, self.tolerance):
            if self.bounds_policy == BoundsPolicy.REJECT and not force_clamp:
                raise OutOfBounds(f"{node.id}: {box} does not fit inside {parent_box}")
            logger.debug(f"Clamping {node.id} into {parent_box}")
            box = box.clamp_into(parent_box)
        fitted = tuple(self._fit(c, box, force_clamp) for c in node.children)
        if box == node.box and fitted == node.children:
            return node
        return with_children(replace(node, box=box), fitted)

    def _assign_ids(self, node: Node) -> Node:
        taken = {n.id for _, n in self.walk()}
        return _assign_ids(node, taken)

    def _unique_id(self, base: str) -> str:
        taken = {n.id for _, n in self.walk()}
        return _unique(base, taken)


def _unique(base: str, taken: set[str]) -> str:
    candidate = base
    counter = 1
    while candidate in taken:
        candidate = f"{base}_{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


def _assign_ids(node: Node, taken: set[str]) -> Node:
    base = node.id or ID_PREFIXES[type(node)]
    new_id = _unique(base, taken)
    children = tuple(_assign_ids(c, taken) for c in node.children)
    return with_children(replace(node, id=new_id), children)


def _translate_children(node: Node, dx: float, dy: float) -> Node:
    if not node.children:
        return node
    moved = tuple(
        _translate_children(replace(c, box=c.box.translate(dx, dy)), dx, dy)
        for c in node.children
    )
    return with_children(node, moved)


def _rewrite(nodes: tuple, parent: NodePath, new_children: tuple) -> tuple:
    if not parent:
        return renumber(new_children)
    i = parent[0]
    node = nodes[i]
    rebuilt = with_children(node, _rewrite(node.children, parent[1:], new_children))
    return nodes[:i] + (rebuilt,) + nodes[i + 1 :]


def format_path(path: NodePath) -> str:
    return "/" + "/".join(str(i) for i in path)


def parse_path(text: str) -> NodePath:
    """Parse "/0/2/1" or "0.2.1" into a NodePath."""
    cleaned = text.strip().strip("/").replace(".", "/")
    if not cleaned:
        return ()
    try:
        return tuple(int(part) for part in cleaned.split("/"))
    except ValueError:
        raise NodeNotFound(f"Invalid node path: {text!r}") from None


def block_from_words(block_id: str, lines: list[tuple[str, list[Word]]]) -> TextBlock:
    """Build a block whose line and block boxes bound their words."""
    built = []
    for line_id, words in lines:
        box = bounding([w.box for w in words])
        built.append(TextLine(line_id, box, renumber(tuple(words))))
    box = bounding([line.box for line in built])
    return TextBlock(block_id, box, renumber(tuple(built)))
