"""Configuration management using pydantic-settings."""

import os
import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.errors import ConfigurationError
from .domain.layout import DEFAULT_TOLERANCE, BoundsPolicy

DEFAULT_INPUT = "input"
DEFAULT_OUTPUT = "output"
DEFAULT_EXTENSIONS = [".tif", ".tiff"]
DEFAULT_LANGUAGE = "ces"
DEFAULT_ALTO_VERSION = "4.4"
DEFAULT_TIMEOUT = 600.0
CONFIG_PATH = Path("~/.config/scanbatch/config.toml").expanduser()

# Grok settings for the archival master: lossless, RPCL, 4096 tiles
MASTER_ARGS = [
    "-i", "{input}",
    "-o", "{output}",
    "-t", "4096,4096",
    "-p", "RPCL",
    "-n", "6",
    "-c", "[256,256],[256,256],[128,128],[128,128],[128,128],[128,128]",
    "-b", "64,64",
    "-X",
    "-M", "1",
    "-S",
    "-E",
    "-u", "R",
]

# Lossy access copy with a rate ladder
USER_ARGS = [
    "-i", "{input}",
    "-o", "{output}",
    "-r", "362,256,181,128,90,64,45,32,22,16,11,8",
    "-I",
    "-t", "1024,1024",
    "-p", "RPCL",
    "-n", "6",
    "-c", "[256,256],[256,256],[128,128],[128,128],[128,128],[128,128]",
    "-b", "64,64",
    "-X",
    "-M", "1",
    "-u", "R",
    "-H", "4",
]


def default_workers() -> int:
    return max(1, min(8, os.cpu_count() or 1))


class PageNaming(str, Enum):
    """How output basenames are derived."""

    SOURCE = "source"  # source file stem
    SEQUENCE = "sequence"  # zero-padded index running across batches


class CodecProfile(BaseModel):
    """Named argument set for the codec, with its output suffix."""

    suffix: str
    args: list[str]


class PathsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_PATHS_")

    input: Path = Path(DEFAULT_INPUT)
    output: Path = Path(DEFAULT_OUTPUT)

    @field_validator("input", "output", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()


class CodecConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_CODEC_")

    executable: str = "auto"
    timeout: float = DEFAULT_TIMEOUT
    profiles: dict[str, CodecProfile] = {
        "master": CodecProfile(suffix=".jp2", args=MASTER_ARGS),
        "user": CodecProfile(suffix=".uc.jp2", args=USER_ARGS),
    }
    enabled: list[str] = ["master"]

    @field_validator("enabled")
    @classmethod
    def known_profiles(cls, v: list[str], info: ValidationInfo) -> list[str]:
        profiles = info.data.get("profiles", {})
        unknown = [name for name in v if name not in profiles]
        if unknown:
            raise ValueError(f"Unknown codec profiles: {unknown}")
        return v


class OcrConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_OCR_")

    executable: str = "auto"
    language: str = DEFAULT_LANGUAGE
    alto_version: str = DEFAULT_ALTO_VERSION
    tessdata_dir: Path | None = None
    timeout: float = DEFAULT_TIMEOUT
    extra_args: list[str] = []


class RasterConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_RASTER_")

    formats: list[str] = ["TIFF"]
    color_models: list[str] = ["bilevel", "grayscale", "rgb"]
    rejected_compressions: list[str] = ["jpeg", "tiff_jpeg"]
    min_size: int = 16
    max_pixels: int = 1_000_000_000


class BatchConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_BATCH_")

    workers: int = default_workers()
    max_attempts: int = 2
    skip_failed: bool = False
    abort_page_on_stage_failure: bool = False
    concurrent_stages: bool = True
    extensions: list[str] = DEFAULT_EXTENSIONS
    naming: PageNaming = PageNaming.SOURCE
    start_index: int = 1
    digits: int = 4
    previews: bool = False
    preview_size: int = 1024

    @field_validator("workers", "max_attempts", "digits")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class LayoutConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_LAYOUT_")

    bounds_policy: BoundsPolicy = BoundsPolicy.CLAMP
    tolerance: float = DEFAULT_TOLERANCE
    merge_separator: str = " "


class ProcessConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_PROCESS_")

    kill_grace: float = 3.0
    poll_interval: float = 0.1


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCANBATCH_")

    paths: PathsConfig = PathsConfig()
    codec: CodecConfig = CodecConfig()
    ocr: OcrConfig = OcrConfig()
    raster: RasterConfig = RasterConfig()
    batch: BatchConfig = BatchConfig()
    layout: LayoutConfig = LayoutConfig()
    process: ProcessConfig = ProcessConfig()


SECTIONS = {
    "paths": PathsConfig,
    "codec": CodecConfig,
    "ocr": OcrConfig,
    "raster": RasterConfig,
    "batch": BatchConfig,
    "layout": LayoutConfig,
    "process": ProcessConfig,
}


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from TOML file, falling back to defaults."""
    path = config_path or CONFIG_PATH

    try:
        data = {}
        if path.exists():
            with open(path, "rb") as f:
                data = tomllib.load(f)

        # Sections are built here so their env overrides are read per call
        sections = {name: model(**data.get(name, {})) for name, model in SECTIONS.items()}
        return Settings(**sections)
    except (ValidationError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e
