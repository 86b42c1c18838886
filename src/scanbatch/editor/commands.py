"""Line-oriented command interpreter for the editor."""

import shlex
from dataclasses import dataclass
from pathlib import Path

from ..domain.edits import (
    Delete,
    EditTransaction,
    Insert,
    Merge,
    Move,
    Reorder,
    SetText,
    Split,
)
from ..domain.errors import DocumentInvariantError, StorageError
from ..domain.geometry import Axis, Box
from ..domain.layout import (
    LEVELS,
    MANUAL_CONFIDENCE,
    NodePath,
    TextBlock,
    TextLine,
    Word,
    format_path,
    parse_path,
)
from .render import crop_node, node_info, tree_lines
from .session import EditorSession

HELP = """\
show [PATH] [DEPTH]            list the tree (default: whole page)
info PATH                      details of one node
insert PARENT INDEX X Y W H [TEXT]
                               add a block (PARENT /), line or word
delete PATH                    remove a node and its children
move PATH X Y [W H]            move (and resize) a node
merge PATH PATH                merge two adjacent siblings
split PATH AT [x|y] [TEXTPOS]  split a node at a coordinate
reorder PARENT I,J,...         new reading order of PARENT's children
text PATH TEXT...              replace a word's text
undo | redo                    step through history
crop PATH [FILE]               save the node's image region
check                          verify containment and ordering
save | discard | quit | help

Paths look like /0/2/1 (block 0, line 2, word 1); / is the page."""


class CommandError(ValueError):
    """Command line could not be understood."""


@dataclass
class Reply:
    lines: list[str]
    quit: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def _number(value: str, name: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise CommandError(f"{name} must be a number, got {value!r}") from None
    return int(number) if number.is_integer() else number


def _index(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise CommandError(f"{name} must be an integer, got {value!r}") from None


def _box(args: list[str]) -> Box:
    x, y, w, h = (_number(v, n) for v, n in zip(args, ("X", "Y", "W", "H")))
    try:
        return Box(x, y, w, h)
    except ValueError as e:
        raise CommandError(str(e)) from None


def _new_node(parent: NodePath, box: Box, text: str):
    """Empty node of the type that belongs under parent."""
    level = LEVELS[len(parent)] if len(parent) < len(LEVELS) else None
    if level is TextBlock:
        return TextBlock("", box)
    if level is TextLine:
        return TextLine("", box)
    if level is Word:
        return Word("", box, text, MANUAL_CONFIDENCE)
    raise CommandError(f"{format_path(parent)} cannot have children")


def parse_transaction(
    command: str, args: list[str], session: EditorSession
) -> EditTransaction:
    """Build the transaction for an editing command."""
    document = session.document

    def need(count: int, usage: str) -> None:
        if len(args) < count:
            raise CommandError(f"usage: {command} {usage}")

    if command == "insert":
        need(6, "PARENT INDEX X Y W H [TEXT]")
        parent = parse_path(args[0])
        node = _new_node(parent, _box(args[2:6]), " ".join(args[6:]))
        return Insert(parent, node, _index(args[1], "INDEX"))
    if command == "delete":
        need(1, "PATH")
        return Delete(parse_path(args[0]))
    if command == "move":
        need(3, "PATH X Y [W H]")
        path = parse_path(args[0])
        if len(args) >= 5:
            box = _box(args[1:5])
        else:
            current = document.get(path).box
            box = _box([*args[1:3], str(current.width), str(current.height)])
        return Move(path, box)
    if command == "merge":
        need(2, "PATH PATH")
        return Merge(parse_path(args[0]), parse_path(args[1]))
    if command == "split":
        need(2, "PATH AT [x|y] [TEXTPOS]")
        axis = Axis.X
        if len(args) >= 3:
            try:
                axis = Axis(args[2].lower())
            except ValueError:
                raise CommandError(f"axis must be x or y, got {args[2]!r}") from None
        text_index = _index(args[3], "TEXTPOS") if len(args) >= 4 else None
        return Split(parse_path(args[0]), _number(args[1], "AT"), axis, text_index)
    if command == "reorder":
        need(2, "PARENT I,J,...")
        order = tuple(_index(v, "order") for v in args[1].split(",") if v.strip())
        return Reorder(parse_path(args[0]), order)
    if command == "text":
        need(1, "PATH TEXT...")
        return SetText(parse_path(args[0]), " ".join(args[1:]))
    raise CommandError(f"Unknown command: {command}")


EDIT_COMMANDS = {"insert", "delete", "move", "merge", "split", "reorder", "text"}


class CommandInterpreter:
    """Executes one command line at a time against a session."""

    def __init__(self, session: EditorSession, crop_dir: Path | None = None) -> None:
        self.session = session
        self.crop_dir = crop_dir or session.document_path.parent

    def execute(self, line: str) -> Reply:
        try:
            words = shlex.split(line)
        except ValueError as e:
            return Reply([f"error: {e}"])
        if not words:
            return Reply([])
        command, args = words[0].lower(), words[1:]

        try:
            return self._dispatch(command, args)
        except (CommandError, DocumentInvariantError) as e:
            return Reply([f"rejected: {e}"])
        except StorageError as e:
            return Reply([f"error: {e}"])

    def _dispatch(self, command: str, args: list[str]) -> Reply:
        session = self.session
        if command in EDIT_COMMANDS:
            applied = session.apply(parse_transaction(command, args, session))
            return Reply([f"ok: {applied.transaction.describe()}"])
        if command == "show":
            root = parse_path(args[0]) if args else ()
            depth = _index(args[1], "DEPTH") if len(args) > 1 else 3
            return Reply(tree_lines(session.document, root, depth))
        if command == "info":
            if not args:
                raise CommandError("usage: info PATH")
            return Reply(node_info(session.document, parse_path(args[0])))
        if command == "undo":
            edit = session.undo()
            if edit is None:
                return Reply(["nothing to undo"])
            return Reply([f"undone: {edit.transaction.describe()}"])
        if command == "redo":
            edit = session.redo()
            if edit is None:
                return Reply(["nothing to redo"])
            return Reply([f"redone: {edit.transaction.describe()}"])
        if command == "crop":
            return self._crop(args)
        if command == "check":
            session.check()
            return Reply(["ok: document is consistent"])
        if command == "save":
            path = session.commit()
            return Reply([f"saved: {path}"])
        if command == "discard":
            session.discard()
            return Reply(["changes discarded"])
        if command in ("quit", "exit"):
            return Reply([], quit=True)
        if command in ("help", "?"):
            return Reply(HELP.splitlines())
        raise CommandError(f"Unknown command: {command} (try help)")

    def _crop(self, args: list[str]) -> Reply:
        if not args:
            raise CommandError("usage: crop PATH [FILE]")
        if self.session.image_path is None:
            raise CommandError("no source image for this document")
        path = parse_path(args[0])
        name = "_".join(str(i) for i in path) or "page"
        dest = Path(args[1]) if len(args) > 1 else self.crop_dir / f"crop_{name}.png"
        try:
            crop_node(self.session.image_path, self.session.document, path, dest)
        except OSError as e:
            raise StorageError(f"Cannot crop: {e}", dest) from e
        return Reply([f"wrote {dest}"])
