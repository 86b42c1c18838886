"""ALTO XML reading and writing.

Reads ALTO v2, v3 and v4 (Tesseract writes v3). Writes a single namespace
chosen by version. SP elements are regenerated from word geometry on write
and ignored on read.
"""

import logging
from pathlib import Path
from xml.etree import ElementTree as ET

from ...domain.errors import MalformedOcrOutput
from ...domain.geometry import Box
from ...domain.layout import (
    DEFAULT_TOLERANCE,
    BoundsPolicy,
    LayoutDocument,
    TextBlock,
    TextLine,
    Word,
)

logger = logging.getLogger(__name__)

NS = {
    "2": "http://www.loc.gov/standards/alto/ns-v2#",
    "3": "http://www.loc.gov/standards/alto/ns-v3#",
    "4": "http://www.loc.gov/standards/alto/ns-v4#",
}
SCHEMAS = {
    "2": "http://www.loc.gov/standards/alto/alto-v2.0.xsd",
    "3": "http://www.loc.gov/alto/v3/alto-3-1.xsd",
    "4": "http://www.loc.gov/alto/v4/alto-4-4.xsd",
}
XSI = "http://www.w3.org/2001/XMLSchema-instance"


def namespace_for(version: str) -> str:
    """Namespace URI for "4", "4.4", "v3" etc."""
    major = str(version).lstrip("vV").split(".")[0]
    if major not in NS:
        raise ValueError(f"Unsupported ALTO version: {version}")
    return NS[major]


# Reading


def _split_tag(tag: str) -> tuple[str, str]:
    if tag.startswith("{"):
        uri, _, local = tag[1:].partition("}")
        return uri, local
    return "", tag


def _num(elem: ET.Element, attr: str, default: float | None = None) -> float:
    value = elem.get(attr)
    if value is None:
        if default is not None:
            return default
        raise MalformedOcrOutput(f"<{_split_tag(elem.tag)[1]}> missing {attr}")
    try:
        number = float(value)
    except ValueError:
        raise MalformedOcrOutput(
            f"<{_split_tag(elem.tag)[1]}> has non-numeric {attr}={value!r}"
        ) from None
    return int(number) if number.is_integer() else number


def _box(elem: ET.Element) -> Box:
    x, y = _num(elem, "HPOS"), _num(elem, "VPOS")
    width, height = _num(elem, "WIDTH"), _num(elem, "HEIGHT")
    # Skewed scans can yield origins just left of or above the page
    if x < 0 and width >= 0:
        x, width = 0, max(0, width + x)
    if y < 0 and height >= 0:
        y, height = 0, max(0, height + y)
    try:
        return Box(x, y, width, height)
    except ValueError as e:
        raise MalformedOcrOutput(f"Invalid geometry on {elem.get('ID', '?')}: {e}") from e


def _confidence(elem: ET.Element) -> float:
    value = elem.get("WC")
    if value is None:
        return 0.0
    try:
        wc = float(value)
    except ValueError:
        raise MalformedOcrOutput(
            f"Non-numeric WC={value!r} on {elem.get('ID', '?')}"
        ) from None
    return min(1.0, max(0.0, wc))


def parse_alto(
    data: bytes | str,
    *,
    bounds_policy: BoundsPolicy = BoundsPolicy.CLAMP,
    tolerance: float = DEFAULT_TOLERANCE,
    merge_separator: str = " ",
) -> LayoutDocument:
    """Parse ALTO content into a LayoutDocument.

    Boxes sticking out of their parent are clamped. Raises MalformedOcrOutput
    for anything that is not a usable ALTO page.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise MalformedOcrOutput(f"Not well-formed XML: {e}") from e

    ns, local = _split_tag(root.tag)
    if local != "alto":
        raise MalformedOcrOutput(f"Root element is <{local}>, expected <alto>")
    if ns and ns not in NS.values():
        logger.warning(f"Unknown ALTO namespace {ns}, reading anyway")

    def q(name: str) -> str:
        return f"{{{ns}}}{name}" if ns else name

    page = root.find(f"{q('Layout')}/{q('Page')}")
    if page is None:
        raise MalformedOcrOutput("ALTO has no Layout/Page")

    unit = root.findtext(f"{q('Description')}/{q('MeasurementUnit')}") or "pixel"
    source_image = (
        root.findtext(
            f"{q('Description')}/{q('sourceImageInformation')}/{q('fileName')}"
        )
        or ""
    )
    software = ""
    for proc in root.iter(q("processingSoftware")):
        name = proc.findtext(q("softwareName")) or ""
        version = proc.findtext(q("softwareVersion")) or ""
        software = f"{name} {version}".strip()
        break

    print_space = page.find(q("PrintSpace"))
    blocks = []
    for tb in page.iter(q("TextBlock")):
        lines = []
        for tl in tb.findall(q("TextLine")):
            words = [
                Word(
                    s.get("ID", ""),
                    _box(s),
                    s.get("CONTENT", ""),
                    _confidence(s),
                )
                for s in tl.findall(q("String"))
            ]
            lines.append(TextLine(tl.get("ID", ""), _box(tl), tuple(words)))
        blocks.append(TextBlock(tb.get("ID", ""), _box(tb), tuple(lines)))

    width, height = _num(page, "WIDTH"), _num(page, "HEIGHT")
    space = _box(print_space) if print_space is not None else None
    if space == Box(0, 0, width, height):
        space = None  # written back as the page box

    doc = LayoutDocument(
        width,
        height,
        tuple(blocks),
        page_id=page.get("ID", "page_0"),
        physical_img_nr=int(_num(page, "PHYSICAL_IMG_NR", 0)),
        source_image=source_image.strip(),
        measurement_unit=unit.strip(),
        software=software,
        print_space=space,
        bounds_policy=bounds_policy,
        tolerance=tolerance,
        merge_separator=merge_separator,
    )
    if doc.normalize():
        logger.info("Clamped nodes extending beyond their parent")
    return doc


def read_alto(path: Path, **options) -> LayoutDocument:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise MalformedOcrOutput(f"Cannot read {path}: {e}", path) from e
    try:
        return parse_alto(data, **options)
    except MalformedOcrOutput as e:
        raise MalformedOcrOutput(f"{path.name}: {e}", path, e.detail) from e


# Writing


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _set_box(elem: ET.Element, box: Box) -> None:
    elem.set("HPOS", _fmt(box.x))
    elem.set("VPOS", _fmt(box.y))
    elem.set("WIDTH", _fmt(box.width))
    elem.set("HEIGHT", _fmt(box.height))


def _add_words(line_elem: ET.Element, words: tuple[Word, ...]) -> None:
    previous = None
    for word in words:
        if previous is not None:
            sp = ET.SubElement(line_elem, "SP")
            sp.set("WIDTH", _fmt(max(0, word.box.x - previous.box.right)))
            sp.set("VPOS", _fmt(previous.box.y))
            sp.set("HPOS", _fmt(previous.box.right))
        s = ET.SubElement(line_elem, "String")
        s.set("ID", word.id)
        _set_box(s, word.box)
        s.set("WC", _fmt(word.confidence))
        s.set("CONTENT", word.text)
        previous = word


def build_alto(doc: LayoutDocument, version: str = "4.4") -> str:
    """Serialize a LayoutDocument to ALTO XML.

    The namespace is written as a plain xmlns attribute so concurrent
    writers never touch ElementTree's global prefix registry.
    """
    major = str(version).lstrip("vV").split(".")[0]
    root = ET.Element("alto")
    root.set("xmlns", namespace_for(version))
    root.set("xmlns:xsi", XSI)
    root.set("xsi:schemaLocation", f"{namespace_for(version)} {SCHEMAS[major]}")

    desc = ET.SubElement(root, "Description")
    ET.SubElement(desc, "MeasurementUnit").text = doc.measurement_unit
    if doc.source_image:
        info = ET.SubElement(desc, "sourceImageInformation")
        ET.SubElement(info, "fileName").text = doc.source_image
    if doc.software:
        proc = ET.SubElement(desc, "OCRProcessing", ID="OCR_0")
        step = ET.SubElement(proc, "ocrProcessingStep")
        sw = ET.SubElement(step, "processingSoftware")
        ET.SubElement(sw, "softwareName").text = doc.software

    layout = ET.SubElement(root, "Layout")
    page = ET.SubElement(layout, "Page")
    page.set("ID", doc.page_id)
    page.set("WIDTH", _fmt(doc.width))
    page.set("HEIGHT", _fmt(doc.height))
    page.set("PHYSICAL_IMG_NR", str(doc.physical_img_nr))

    ps = ET.SubElement(page, "PrintSpace")
    _set_box(ps, doc.print_space or doc.page_box)

    for block in doc.blocks:
        tb = ET.SubElement(ps, "TextBlock")
        tb.set("ID", block.id)
        _set_box(tb, block.box)
        for line in block.lines:
            tl = ET.SubElement(tb, "TextLine")
            tl.set("ID", line.id)
            _set_box(tl, line.box)
            _add_words(tl, line.words)

    ET.indent(root, space="  ")
    xml_str = ET.tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{xml_str}\n'
