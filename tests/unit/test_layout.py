"""Unit tests for the layout document model."""

import random

import pytest

from scanbatch.domain.errors import (
    DocumentInvariantError,
    IndexOutOfRange,
    InvalidSplitPoint,
    NodeNotFound,
    NotAdjacent,
    NotAPermutation,
    OutOfBounds,
)
from scanbatch.domain.geometry import Axis, Box
from scanbatch.domain.layout import (
    MANUAL_CONFIDENCE,
    BoundsPolicy,
    LayoutDocument,
    TextBlock,
    TextLine,
    Word,
    format_path,
    parse_path,
)


def assert_contiguous(doc: LayoutDocument) -> None:
    for parent in [()] + [path for path, node in doc.walk() if not isinstance(node, Word)]:
        children = doc.children_of(parent)
        assert [c.index for c in children] == list(range(len(children)))


class TestAccess:
    def test_get_by_path(self, sample_document: LayoutDocument) -> None:
        assert sample_document.get((0, 0, 1)).text == "world"
        assert sample_document.get((1,)).id == "block_1"

    def test_missing_path_raises(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(NodeNotFound):
            sample_document.get((0, 5))
        with pytest.raises(NodeNotFound):
            sample_document.get(())

    def test_find_by_id(self, sample_document: LayoutDocument) -> None:
        assert sample_document.find("w2") == (0, 1, 0)

    def test_plain_text(self, sample_document: LayoutDocument) -> None:
        assert sample_document.plain_text() == "Hello world\nagain\n\nOther"

    def test_sample_is_consistent(self, sample_document: LayoutDocument) -> None:
        sample_document.check_invariants()
        assert_contiguous(sample_document)


class TestPaths:
    def test_round_trip(self) -> None:
        assert parse_path(format_path((0, 2, 1))) == (0, 2, 1)

    def test_dotted_form(self) -> None:
        assert parse_path("0.2.1") == (0, 2, 1)

    def test_root(self) -> None:
        assert parse_path("/") == ()

    def test_garbage(self) -> None:
        with pytest.raises(NodeNotFound):
            parse_path("/a/b")


class TestInsert:
    def test_insert_word_renumbers_siblings(self, sample_document: LayoutDocument) -> None:
        placed = sample_document.insert((0, 0), Word("", Box(52, 10, 6, 20), "-"), 1)

        assert placed.index == 1
        assert placed.id == "string"
        assert sample_document.get((0, 0)).text == "Hello - world"
        assert_contiguous(sample_document)

    def test_insert_past_end_rejected(self, sample_document: LayoutDocument) -> None:
        before = sample_document.copy()
        with pytest.raises(IndexOutOfRange):
            sample_document.insert((0, 0), Word("", Box(10, 10, 1, 1), "x"), 3)
        assert sample_document == before

    def test_insert_at_end_allowed(self, sample_document: LayoutDocument) -> None:
        sample_document.insert((), TextBlock("", Box(10, 70, 50, 20)), 2)
        assert len(sample_document.blocks) == 3

    def test_out_of_bounds_clamped_by_default(
        self, sample_document: LayoutDocument
    ) -> None:
        placed = sample_document.insert((0, 1), Word("", Box(90, 40, 30, 20), "x"), 1)
        assert placed.box == Box(90, 40, 10, 20)
        sample_document.check_invariants()

    def test_out_of_bounds_rejected_under_reject_policy(
        self, sample_document: LayoutDocument
    ) -> None:
        sample_document.bounds_policy = BoundsPolicy.REJECT
        before = sample_document.copy()
        with pytest.raises(OutOfBounds):
            sample_document.insert((0, 1), Word("", Box(90, 40, 30, 20), "x"), 1)
        assert sample_document == before

    def test_within_tolerance_not_clamped(self, sample_document: LayoutDocument) -> None:
        sample_document.bounds_policy = BoundsPolicy.REJECT
        placed = sample_document.insert((0, 1), Word("", Box(90, 40, 10.3, 20), "x"), 1)
        assert placed.box.width == 10.3

    def test_wrong_level_rejected(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(DocumentInvariantError):
            sample_document.insert((), TextLine("", Box(0, 0, 1, 1)), 0)

    def test_ids_stay_unique(self, sample_document: LayoutDocument) -> None:
        sample_document.insert((1, 0), Word("w0", Box(125, 10, 5, 5), "x"), 0)
        ids = [node.id for _, node in sample_document.walk()]
        assert len(ids) == len(set(ids))


class TestDeleteAndMove:
    def test_delete_returns_node(self, sample_document: LayoutDocument) -> None:
        removed = sample_document.delete((0, 0, 0))
        assert removed.text == "Hello"
        assert sample_document.get((0, 0, 0)).text == "world"
        assert_contiguous(sample_document)

    def test_delete_missing(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(NodeNotFound):
            sample_document.delete((3,))

    def test_move_translates_descendants(self, sample_document: LayoutDocument) -> None:
        moved = sample_document.move((1,), Box(130, 20, 60, 20))
        assert moved.box == Box(130, 20, 60, 20)
        assert sample_document.get((1, 0, 0)).box == Box(130, 20, 60, 20)
        sample_document.check_invariants()

    def test_shrink_clamps_children(self, sample_document: LayoutDocument) -> None:
        sample_document.move((0, 0), Box(10, 10, 50, 20))
        assert sample_document.get((0, 0, 1)).box == Box(60, 10, 0, 20)
        sample_document.check_invariants()

    def test_move_outside_page_rejected(self, sample_document: LayoutDocument) -> None:
        sample_document.bounds_policy = BoundsPolicy.REJECT
        with pytest.raises(OutOfBounds):
            sample_document.move((1,), Box(180, 10, 60, 20))


class TestMerge:
    def test_merge_words(self, sample_document: LayoutDocument) -> None:
        merged = sample_document.merge((0, 0, 0), (0, 0, 1))

        assert merged.text == "Hello world"
        assert merged.confidence == 0.8
        assert merged.box == Box(10, 10, 90, 20)
        assert len(sample_document.get((0, 0)).words) == 1

    def test_merge_order_does_not_matter(self, sample_document: LayoutDocument) -> None:
        merged = sample_document.merge((0, 0, 1), (0, 0, 0))
        assert merged.text == "Hello world"

    def test_merge_lines_concatenates_words(self, sample_document: LayoutDocument) -> None:
        merged = sample_document.merge((0, 0), (0, 1))
        assert [w.text for w in merged.words] == ["Hello", "world", "again"]
        assert [w.index for w in merged.words] == [0, 1, 2]

    def test_different_parents_rejected(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(NotAdjacent):
            sample_document.merge((0, 0, 0), (0, 1, 0))

    def test_non_adjacent_rejected(self, sample_document: LayoutDocument) -> None:
        sample_document.insert((0, 0), Word("", Box(52, 10, 6, 20), "-"), 1)
        with pytest.raises(NotAdjacent):
            sample_document.merge((0, 0, 0), (0, 0, 2))


class TestSplit:
    def test_split_word_proportional_text(self, sample_document: LayoutDocument) -> None:
        left, right = sample_document.split((0, 0, 0), 34)
        assert left.box == Box(10, 10, 24, 20)
        assert right.box == Box(34, 10, 16, 20)
        assert (left.text, right.text) == ("Hel", "lo")

    def test_split_word_explicit_text_index(self, sample_document: LayoutDocument) -> None:
        left, right = sample_document.split((0, 0, 0), 20, text_index=1)
        assert (left.text, right.text) == ("H", "ello")
        assert left.confidence == right.confidence == 0.9

    def test_split_strips_separator(self, sample_document: LayoutDocument) -> None:
        merged = sample_document.merge((0, 0, 0), (0, 0, 1))
        left, right = sample_document.split((0, 0, 0), 55, text_index=len("Hello "))
        assert merged.text == "Hello world"
        assert (left.text, right.text) == ("Hello", "world")

    def test_split_on_edge_rejected(self, sample_document: LayoutDocument) -> None:
        before = sample_document.copy()
        with pytest.raises(InvalidSplitPoint):
            sample_document.split((0, 0, 0), 10)
        with pytest.raises(InvalidSplitPoint):
            sample_document.split((0, 0, 0), 50)
        assert sample_document == before

    def test_split_line_partitions_words(self, sample_document: LayoutDocument) -> None:
        left, right = sample_document.split((0, 0), 55)
        assert [w.text for w in left.words] == ["Hello"]
        assert [w.text for w in right.words] == ["world"]
        assert right.id != left.id
        sample_document.check_invariants()
        assert_contiguous(sample_document)

    def test_split_block_on_y(self, sample_document: LayoutDocument) -> None:
        top, bottom = sample_document.split((0,), 35, axis=Axis.Y)
        assert [line.id for line in top.lines] == ["line_0"]
        assert [line.id for line in bottom.lines] == ["line_1"]

    def test_text_index_on_line_rejected(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(DocumentInvariantError):
            sample_document.split((0, 0), 55, text_index=2)


class TestReorderAndText:
    def test_reorder_blocks(self, sample_document: LayoutDocument) -> None:
        sample_document.reorder((), [1, 0])
        assert [b.id for b in sample_document.blocks] == ["block_1", "block_0"]
        assert_contiguous(sample_document)

    def test_not_a_permutation(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(NotAPermutation):
            sample_document.reorder((), [0, 0])
        with pytest.raises(NotAPermutation):
            sample_document.reorder((0,), [0])

    def test_set_text_marks_manual(self, sample_document: LayoutDocument) -> None:
        word = sample_document.set_text((0, 1, 0), "again!")
        assert word.text == "again!"
        assert word.confidence == MANUAL_CONFIDENCE

    def test_set_text_on_line_rejected(self, sample_document: LayoutDocument) -> None:
        with pytest.raises(DocumentInvariantError):
            sample_document.set_text((0, 1), "x")


class TestNormalize:
    def test_clamps_children_sticking_out(self) -> None:
        word = Word("w", Box(0, 0, 300, 20), "wide")
        line = TextLine("l", Box(0, 0, 100, 20), (word,))
        doc = LayoutDocument(200, 100, (TextBlock("b", Box(0, 0, 100, 50), (line,)),))
        assert doc.normalize() is True
        assert doc.get((0, 0, 0)).box == Box(0, 0, 100, 20)
        doc.check_invariants()
        assert doc.normalize() is False


def test_random_edits_keep_indices_contiguous(sample_document: LayoutDocument) -> None:
    rng = random.Random(1234)
    doc = sample_document

    for _ in range(300):
        parents = [()] + [p for p, n in doc.walk() if not isinstance(n, Word)]
        parent = rng.choice(parents)
        children = doc.children_of(parent)
        action = rng.choice(["insert", "delete", "reorder"])
        try:
            if action == "insert":
                box = doc.box_of(parent)
                node_type = {0: TextBlock, 1: TextLine, 2: Word}[len(parent)]
                new_box = Box(box.x, box.y, box.width / 2, box.height / 2)
                if node_type is Word:
                    node = Word("", new_box, "x", rng.random())
                else:
                    node = node_type("", new_box)
                doc.insert(parent, node, rng.randint(0, len(children) + 1))
            elif action == "delete" and children:
                doc.delete(parent + (rng.randrange(len(children)),))
            elif action == "reorder" and children:
                order = list(range(len(children)))
                rng.shuffle(order)
                doc.reorder(parent, order)
        except IndexOutOfRange:
            pass
        assert_contiguous(doc)
        doc.check_invariants()
