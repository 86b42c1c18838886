"""OCR adapter using the tesseract CLI with ALTO output."""

import logging
import tempfile
from pathlib import Path

from ...domain.errors import (
    MalformedOcrOutput,
    RecognizerRejected,
    RecognizerUnavailable,
)
from ...domain.layout import DEFAULT_TOLERANCE, BoundsPolicy
from ...domain.models import CancelToken
from ...ports.ocr import OCRPort, RecognizedPage
from ..layout.alto import read_alto
from ..process.runner import ProcessRunner
from ..transform import ExternalTransform

logger = logging.getLogger(__name__)


def alto_path(output_base: Path) -> Path:
    """Tesseract appends .xml to the output base, dots in the stem included."""
    return output_base.with_name(output_base.name + ".xml")


class TesseractAdapter(ExternalTransform, OCRPort):
    """OCR implementation using tesseract's alto config."""

    label = "recognizer"
    unavailable_error = RecognizerUnavailable
    rejected_error = RecognizerRejected

    def __init__(
        self,
        executable: str,
        runner: ProcessRunner | None = None,
        timeout: float | None = None,
        tessdata_dir: Path | None = None,
        extra_args: list[str] | None = None,
        bounds_policy: BoundsPolicy = BoundsPolicy.CLAMP,
        tolerance: float = DEFAULT_TOLERANCE,
        merge_separator: str = " ",
    ) -> None:
        super().__init__(executable, runner, timeout)
        self.tessdata_dir = tessdata_dir
        self.extra_args = list(extra_args or [])
        self.layout_options = {
            "bounds_policy": bounds_policy,
            "tolerance": tolerance,
            "merge_separator": merge_separator,
        }

    def _args(self, raster: Path, output_base: Path, language: str) -> list[str]:
        args = []
        if self.tessdata_dir:
            args += ["--tessdata-dir", str(self.tessdata_dir)]
        args += [str(raster), str(output_base), "-l", language, *self.extra_args, "alto"]
        return args

    def command(self, raster: Path, output_base: Path, language: str) -> list[str]:
        return [self.executable, *self._args(raster, output_base, language)]

    def recognize(
        self,
        raster: Path,
        output_base: Path,
        language: str,
        cancel: CancelToken | None = None,
    ) -> RecognizedPage:
        logger.info(f"Running OCR: {raster.name} ({language})")

        # tesseract drops temp files into its cwd
        with tempfile.TemporaryDirectory(prefix="scanbatch-ocr-") as scratch:
            result = self.invoke(
                self._args(raster.resolve(), output_base.resolve(), language),
                working_dir=Path(scratch),
                cancel=cancel,
            )

        xml_path = alto_path(output_base)
        if not xml_path.exists():
            raise MalformedOcrOutput(
                f"recognizer wrote no ALTO output for {raster.name}",
                xml_path,
                result.stderr_tail,
            )

        document = read_alto(xml_path, **self.layout_options)
        document.source_image = raster.name
        logger.info(f"OCR complete: {raster.name} ({len(document.words())} words)")
        return RecognizedPage(document, xml_path, document.software)
