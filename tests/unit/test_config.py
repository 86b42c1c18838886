"""Unit tests for configuration loading."""

from pathlib import Path

import pytest

from scanbatch.config import PageNaming, load_settings
from scanbatch.domain.errors import ConfigurationError
from scanbatch.domain.layout import BoundsPolicy


class TestDefaults:
    """Settings with no config file."""

    def test_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "missing.toml")

        assert settings.codec.enabled == ["master"]
        assert settings.codec.profiles["master"].suffix == ".jp2"
        assert settings.codec.profiles["user"].suffix == ".uc.jp2"
        assert settings.ocr.language == "ces"
        assert settings.ocr.alto_version == "4.4"
        assert settings.batch.naming == PageNaming.SOURCE
        assert settings.layout.bounds_policy == BoundsPolicy.CLAMP
        assert settings.batch.workers >= 1

    def test_environment_override(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SCANBATCH_OCR_LANGUAGE", "deu")
        monkeypatch.setenv("LANGUAGE", "en_US")
        assert load_settings(tmp_path / "missing.toml").ocr.language == "deu"


class TestFile:
    def write(self, tmp_path: Path, content: str) -> Path:
        path = tmp_path / "config.toml"
        path.write_text(content, encoding="utf-8")
        return path

    def test_sections_loaded(self, tmp_path: Path) -> None:
        path = self.write(
            tmp_path,
            """
[paths]
input = "~/scans"
output = "/srv/out"

[ocr]
language = "ces+deu"
alto_version = "3.1"

[batch]
workers = 3
naming = "sequence"
start_index = 100

[layout]
bounds_policy = "reject"
""",
        )

        settings = load_settings(path)

        assert settings.paths.input == Path("~/scans").expanduser()
        assert settings.paths.output == Path("/srv/out")
        assert settings.ocr.language == "ces+deu"
        assert settings.batch.workers == 3
        assert settings.batch.naming == PageNaming.SEQUENCE
        assert settings.layout.bounds_policy == BoundsPolicy.REJECT

    def test_custom_profile(self, tmp_path: Path) -> None:
        path = self.write(
            tmp_path,
            """
[codec]
enabled = ["access"]

[codec.profiles.access]
suffix = ".ac.jp2"
args = ["-i", "{input}", "-o", "{output}", "-r", "20"]
""",
        )
        settings = load_settings(path)
        assert settings.codec.profiles["access"].suffix == ".ac.jp2"

    @pytest.mark.parametrize(
        "content",
        [
            "[batch\nworkers = 2",
            "[batch]\nworkers = 0",
            '[codec]\nenabled = ["lossy"]',
            '[layout]\nbounds_policy = "stretch"',
        ],
        ids=["bad-toml", "zero-workers", "unknown-profile", "bad-policy"],
    )
    def test_invalid(self, tmp_path: Path, content: str) -> None:
        with pytest.raises(ConfigurationError):
            load_settings(self.write(tmp_path, content))
