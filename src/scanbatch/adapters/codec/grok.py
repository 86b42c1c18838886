"""Codec adapter using Grok (grk_compress) for JPEG 2000."""

import logging
import os
from pathlib import Path

from ...config import CodecProfile
from ...domain.errors import EncoderRejected, EncoderUnavailable
from ...domain.models import CancelToken
from ...ports.codec import CodecPort
from ..process.runner import ProcessRunner
from ..transform import ExternalTransform

logger = logging.getLogger(__name__)

JP2_SIGNATURE = b"\x00\x00\x00\x0cjP  \r\n\x87\n"
J2K_SOC_SIZ = b"\xff\x4f\xff\x51"


def is_codestream(path: Path) -> bool:
    """Check for a JP2 signature box or a raw J2K SOC+SIZ marker."""
    with open(path, "rb") as f:
        head = f.read(len(JP2_SIGNATURE))
    return head.startswith(JP2_SIGNATURE) or head.startswith(J2K_SOC_SIZ)


def partial_path(output: Path) -> Path:
    """Sibling path for in-progress output, keeping the codec's extension."""
    return output.with_suffix(".partial" + output.suffix)


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class GrokCodecAdapter(ExternalTransform, CodecPort):
    """Codec implementation invoking grk_compress once per profile."""

    label = "encoder"
    unavailable_error = EncoderUnavailable
    rejected_error = EncoderRejected

    def __init__(
        self,
        executable: str,
        profiles: dict[str, CodecProfile],
        enabled: list[str],
        runner: ProcessRunner | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(executable, runner, timeout)
        self._profiles = profiles
        self._enabled = list(enabled)

    @property
    def profiles(self) -> dict[str, str]:
        return {name: self._profiles[name].suffix for name in self._enabled}

    def _args(self, raster: Path, output: Path, profile: str) -> list[str]:
        try:
            template = self._profiles[profile].args
        except KeyError:
            raise EncoderUnavailable(
                f"Unknown codec profile: {profile}", self.executable
            ) from None
        return [arg.format(input=raster, output=output) for arg in template]

    def command(self, raster: Path, output: Path, profile: str) -> list[str]:
        return [self.executable, *self._args(raster, output, profile)]

    def encode(
        self,
        raster: Path,
        output: Path,
        profile: str,
        cancel: CancelToken | None = None,
    ) -> Path:
        logger.info(f"Encoding {raster.name} -> {output.name} ({profile})")
        partial = partial_path(output)
        _remove(partial)

        try:
            self.invoke(self._args(raster, partial, profile), cancel=cancel)

            if not partial.exists() or partial.stat().st_size == 0:
                raise EncoderRejected(
                    f"encoder produced no output for {raster.name}", self.executable, 0
                )
            if not is_codestream(partial):
                raise EncoderRejected(
                    f"encoder output for {raster.name} is not a JPEG 2000 codestream",
                    self.executable,
                    0,
                )
            os.replace(partial, output)
        except Exception:
            _remove(output)
            raise
        finally:
            _remove(partial)

        logger.debug(f"Encoded: {output.name} ({output.stat().st_size} bytes)")
        return output
