"""Text listing of a document tree and image crops of its nodes."""

from pathlib import Path

from PIL import Image

from ..domain.geometry import Box
from ..domain.layout import (
    LayoutDocument,
    Node,
    NodePath,
    TextBlock,
    TextLine,
    Word,
    format_path,
)


def _box_label(box: Box) -> str:
    return f"[{box.x:g},{box.y:g} {box.width:g}x{box.height:g}]"


def describe_node(path: NodePath, node: Node) -> str:
    if isinstance(node, Word):
        return (
            f"{format_path(path)} word {node.id} {_box_label(node.box)} "
            f"{node.text!r} ({node.confidence:.2f})"
        )
    kind = "block" if isinstance(node, TextBlock) else "line"
    count = len(node.children)
    noun = "lines" if isinstance(node, TextBlock) else "words"
    return f"{format_path(path)} {kind} {node.id} {_box_label(node.box)} {count} {noun}"


def tree_lines(document: LayoutDocument, root: NodePath = (), depth: int = 3) -> list[str]:
    """Indented listing of the subtree at root, depth levels deep."""
    lines = []

    def visit(path: NodePath, node: Node, level: int) -> None:
        lines.append("  " * level + describe_node(path, node))
        if level < depth:
            for i, child in enumerate(node.children):
                visit(path + (i,), child, level + 1)

    if root:
        visit(root, document.get(root), 0)
    else:
        lines.append(
            f"/ page {document.page_id} {document.width:g}x{document.height:g} "
            f"{len(document.blocks)} blocks"
        )
        for i, block in enumerate(document.blocks):
            if depth > 0:
                visit((i,), block, 1)
    return lines


def node_info(document: LayoutDocument, path: NodePath) -> list[str]:
    node = document.get(path)
    info = [describe_node(path, node), f"  reading order: {node.index}"]
    if isinstance(node, (TextBlock, TextLine)):
        info.append(f"  text: {node.text!r}")
    return info


def crop_node(
    image_path: Path, document: LayoutDocument, path: NodePath, dest: Path, margin: int = 4
) -> Path:
    """Save the region of the source raster covered by a node.

    Document coordinates are scaled if the raster size differs from the
    page size recorded in the document.
    """
    box = document.get(path).box
    with Image.open(image_path) as img:
        sx = img.width / document.width if document.width else 1.0
        sy = img.height / document.height if document.height else 1.0
        left = max(0, int(box.x * sx) - margin)
        top = max(0, int(box.y * sy) - margin)
        right = min(img.width, int(round(box.right * sx)) + margin)
        bottom = min(img.height, int(round(box.bottom * sy)) + margin)
        region = img.crop((left, top, right, bottom))
        if region.mode not in ("1", "L", "RGB", "RGBA"):
            region = region.convert("RGB")
        dest.parent.mkdir(parents=True, exist_ok=True)
        region.save(dest)
    return dest
