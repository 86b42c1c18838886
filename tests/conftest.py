"""Shared test fixtures."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

from scanbatch.config import Settings
from scanbatch.domain.geometry import Box
from scanbatch.domain.layout import LayoutDocument, Word, block_from_words
from scanbatch.ports.codec import CodecPort
from scanbatch.ports.ocr import OCRPort
from scanbatch.ports.raster import RasterValidatorPort
from scanbatch.ports.storage import StoragePort

# What tesseract 5 writes for a small two-block page
TESSERACT_ALTO = """\
<?xml version="1.0" encoding="UTF-8"?>
<alto xmlns="http://www.loc.gov/standards/alto/ns-v3#" \
xmlns:xlink="http://www.w3.org/1999/xlink" \
xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" \
xsi:schemaLocation="http://www.loc.gov/standards/alto/ns-v3# \
http://www.loc.gov/alto/v3/alto-3-0.xsd">
  <Description>
    <MeasurementUnit>pixel</MeasurementUnit>
    <sourceImageInformation>
      <fileName>page.tif</fileName>
    </sourceImageInformation>
    <OCRProcessing ID="OCR_0">
      <ocrProcessingStep>
        <processingSoftware>
          <softwareName>tesseract 5.3.0</softwareName>
        </processingSoftware>
      </ocrProcessingStep>
    </OCRProcessing>
  </Description>
  <Layout>
    <Page WIDTH="200" HEIGHT="100" PHYSICAL_IMG_NR="0" ID="page_0">
      <PrintSpace HPOS="0" VPOS="0" WIDTH="200" HEIGHT="100">
        <ComposedBlock ID="cblock_0" HPOS="10" VPOS="10" WIDTH="180" HEIGHT="30">
          <TextBlock ID="block_0" HPOS="10" VPOS="10" WIDTH="180" HEIGHT="30">
            <TextLine ID="line_0" HPOS="10" VPOS="10" WIDTH="180" HEIGHT="30">
              <String ID="string_0" HPOS="10" VPOS="10" WIDTH="80" HEIGHT="30" WC="0.96" CONTENT="Hello"/>
              <SP WIDTH="20" VPOS="10" HPOS="90"/>
              <String ID="string_1" HPOS="110" VPOS="10" WIDTH="80" HEIGHT="30" WC="0.91" CONTENT="world"/>
            </TextLine>
          </TextBlock>
        </ComposedBlock>
        <TextBlock ID="block_1" HPOS="10" VPOS="50" WIDTH="180" HEIGHT="40">
          <TextLine ID="line_1" HPOS="10" VPOS="50" WIDTH="100" HEIGHT="40">
            <String ID="string_2" HPOS="10" VPOS="50" WIDTH="100" HEIGHT="40" WC="0.88" CONTENT="Second"/>
          </TextLine>
        </TextBlock>
      </PrintSpace>
    </Page>
  </Layout>
</alto>
"""

FAKE_GROK = """\
import os
import sys
import time

args = sys.argv[1:]
if args == ["-h"]:
    print("grk_compress usage")
    sys.exit(0)
src = args[args.index("-i") + 1]
out = args[args.index("-o") + 1]
name = os.path.basename(src)
if "slow" in name:
    time.sleep(30)
if "reject" in name:
    sys.stderr.write("grk_compress: unable to read input\\n")
    sys.exit(1)
with open(out, "wb") as f:
    if "garbage" in name:
        f.write(b"definitely not jpeg 2000")
    else:
        f.write(b"\\x00\\x00\\x00\\x0cjP  \\r\\n\\x87\\n" + bytes(64))
"""

FAKE_TESSERACT = """\
import os
import sys
import time

ALTO = {alto!r}

args = sys.argv[1:]
if args == ["--version"]:
    print("tesseract 5.3.0")
    sys.exit(0)
if args[0] == "--tessdata-dir":
    args = args[2:]
src, base = args[0], args[1]
name = os.path.basename(src)
rejected = os.environ.get("FAKE_TESSERACT_REJECT", "").split(",")
if "slow" in name:
    time.sleep(30)
if "reject" in name or os.path.splitext(name)[0] in rejected:
    sys.stderr.write("Error during processing.\\n")
    sys.exit(1)
with open(base + ".xml", "w", encoding="utf-8") as f:
    f.write("<alto><Layout>" if "garbled" in name else ALTO)
"""


def write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(0o755)
    return path


def make_tiff(path: Path, size: tuple[int, int] = (64, 48), mode: str = "L") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size).save(path, format="TIFF")
    return path


@pytest.fixture
def fake_tools(tmp_path: Path) -> dict[str, Path]:
    """Executable stand-ins for grk_compress and tesseract."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return {
        "grok": write_script(bin_dir / "grk_compress", FAKE_GROK),
        "tesseract": write_script(
            bin_dir / "tesseract", FAKE_TESSERACT.format(alto=TESSERACT_ALTO)
        ),
    }


@pytest.fixture
def tiff():
    """Factory writing a small uncompressed TIFF."""
    return make_tiff


@pytest.fixture
def tesseract_alto() -> str:
    return TESSERACT_ALTO


@pytest.fixture
def settings(tmp_path: Path, fake_tools: dict[str, Path]) -> Settings:
    """Settings pointing at tmp_path and the fake tools."""
    s = Settings()
    s.paths.input = tmp_path / "input"
    s.paths.output = tmp_path / "output"
    s.codec.executable = str(fake_tools["grok"])
    s.codec.timeout = 20
    s.ocr.executable = str(fake_tools["tesseract"])
    s.ocr.timeout = 20
    s.batch.workers = 2
    s.process.kill_grace = 1.0
    s.process.poll_interval = 0.05
    return s


@pytest.fixture
def sample_document() -> LayoutDocument:
    """Page 200x100: block 0 has two lines, block 1 has one."""
    block0 = block_from_words(
        "block_0",
        [
            (
                "line_0",
                [
                    Word("w0", Box(10, 10, 40, 20), "Hello", 0.9),
                    Word("w1", Box(60, 10, 40, 20), "world", 0.8),
                ],
            ),
            ("line_1", [Word("w2", Box(10, 40, 90, 20), "again", 0.7)]),
        ],
    )
    block1 = block_from_words(
        "block_1", [("line_2", [Word("w3", Box(120, 10, 60, 20), "Other", 0.95)])]
    )
    return LayoutDocument(200, 100, (block0, block1), source_image="page.tif")


@pytest.fixture
def mock_validator() -> MagicMock:
    return MagicMock(spec=RasterValidatorPort)


@pytest.fixture
def mock_codec() -> MagicMock:
    mock = MagicMock(spec=CodecPort)
    mock.profiles = {"master": ".jp2"}
    mock.encode.side_effect = lambda raster, output, profile, cancel=None: output
    return mock


@pytest.fixture
def mock_ocr() -> MagicMock:
    return MagicMock(spec=OCRPort)


@pytest.fixture
def mock_storage() -> MagicMock:
    mock = MagicMock(spec=StoragePort)
    mock.outputs_complete.return_value = True
    return mock
