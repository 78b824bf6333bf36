"""Tests for safe_load_settings."""

from pathlib import Path

import pytest


def write(path: Path, text: str) -> Path:
    _ = path.write_text(text)
    return path


class TestSafeLoadSettings:
    def test_success(self, tmp_path: Path) -> None:
        from huddle.config import safe_load_settings

        settings, error = safe_load_settings(settings_path=write(tmp_path / "s.toml", "port = 3333\n"))

        assert settings.port == 3333
        assert error is None

    def test_default_location_missing_is_fine(self) -> None:
        from huddle.config import safe_load_settings

        settings, error = safe_load_settings()

        assert settings.port == 3001
        assert error is None

    def test_lenient_returns_defaults_and_error(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        from huddle.config import safe_load_settings

        settings, error = safe_load_settings(settings_path=write(tmp_path / "s.toml", "port = ["))

        assert settings.port == 3001
        assert error is not None
        assert "Failed to parse TOML" in error
        assert "Warning" in capsys.readouterr().err

    def test_lenient_defaults_keep_env_overrides(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from huddle.config import safe_load_settings

        monkeypatch.setenv("HUDDLE_PORT", "4444")

        settings, error = safe_load_settings(settings_path=write(tmp_path / "s.toml", "port = 1"))

        assert error is not None
        assert settings.port == 4444

    def test_strict_mode_exits(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from huddle.config import safe_load_settings

        monkeypatch.setenv("HUDDLE_STRICT_CONFIG", "1")

        with pytest.raises(SystemExit) as exc_info:
            _ = safe_load_settings(settings_path=write(tmp_path / "s.toml", "port = ["))

        assert exc_info.value.code == 1

    def test_missing_explicit_file_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        from huddle.config import safe_load_settings

        with pytest.raises(SystemExit) as exc_info:
            _ = safe_load_settings(settings_path=tmp_path / "absent.toml")

        assert exc_info.value.code == 1
        assert "Settings file not found" in capsys.readouterr().err
