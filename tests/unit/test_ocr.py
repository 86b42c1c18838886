"""Unit tests for the Tesseract OCR adapter."""

import os
from pathlib import Path

import pytest

from scanbatch.adapters.ocr import TesseractAdapter
from scanbatch.adapters.ocr.tesseract import alto_path
from scanbatch.adapters.process import ProcessRunner
from scanbatch.domain.errors import (
    MalformedOcrOutput,
    ParseError,
    RecognizerRejected,
    RecognizerUnavailable,
)

pytestmark = pytest.mark.skipif(os.name == "nt", reason="fake tools are shebang scripts")


@pytest.fixture
def ocr(fake_tools: dict[str, Path]) -> TesseractAdapter:
    return TesseractAdapter(
        str(fake_tools["tesseract"]),
        runner=ProcessRunner(kill_grace=1.0, poll_interval=0.05),
        timeout=20,
    )


def raster(tmp_path: Path, name: str = "0001.tif") -> Path:
    path = tmp_path / name
    path.write_bytes(b"II*\x00")
    return path


class TestRecognize:
    def test_reads_alto_output(self, ocr: TesseractAdapter, tmp_path: Path) -> None:
        page = ocr.recognize(raster(tmp_path), tmp_path / "0001", "eng")

        assert page.source == tmp_path / "0001.xml"
        assert page.engine == "tesseract 5.3.0"
        assert page.document.source_image == "0001.tif"
        assert [w.text for w in page.document.words()] == ["Hello", "world", "Second"]

    def test_dotted_output_base(self, ocr: TesseractAdapter, tmp_path: Path) -> None:
        page = ocr.recognize(raster(tmp_path), tmp_path / "vol.1", "eng")
        assert page.source == tmp_path / "vol.1.xml"

    def test_garbled_output_is_parse_error(
        self, ocr: TesseractAdapter, tmp_path: Path
    ) -> None:
        with pytest.raises(MalformedOcrOutput) as exc_info:
            ocr.recognize(raster(tmp_path, "garbled.tif"), tmp_path / "garbled", "eng")
        assert isinstance(exc_info.value, ParseError)

    def test_rejected_input(self, ocr: TesseractAdapter, tmp_path: Path) -> None:
        with pytest.raises(RecognizerRejected) as exc_info:
            ocr.recognize(raster(tmp_path, "reject.tif"), tmp_path / "reject", "eng")
        assert exc_info.value.exit_code == 1
        assert "Error during processing" in str(exc_info.value)

    def test_missing_executable(self, tmp_path: Path) -> None:
        ocr = TesseractAdapter(str(tmp_path / "tesseract"))
        with pytest.raises(RecognizerUnavailable):
            ocr.recognize(raster(tmp_path), tmp_path / "0001", "eng")

    def test_tessdata_dir_passed(self, fake_tools: dict[str, Path], tmp_path: Path) -> None:
        ocr = TesseractAdapter(str(fake_tools["tesseract"]), tessdata_dir=tmp_path / "tessdata")
        page = ocr.recognize(raster(tmp_path), tmp_path / "0001", "eng")
        assert page.document.words()


class TestCommand:
    def test_argument_order(self, tmp_path: Path) -> None:
        ocr = TesseractAdapter("tesseract", tessdata_dir=Path("/data"), extra_args=["--psm", "1"])
        cmd = ocr.command(Path("in.tif"), Path("out/0001"), "ces+deu")
        assert cmd == [
            "tesseract",
            "--tessdata-dir",
            "/data",
            "in.tif",
            "out/0001",
            "-l",
            "ces+deu",
            "--psm",
            "1",
            "alto",
        ]

    def test_alto_path_appends_extension(self) -> None:
        assert alto_path(Path("out/vol.1")) == Path("out/vol.1.xml")
