"""Tests for mcnotify.core.config."""

import tomllib
from pathlib import Path

import pytest

from mcnotify.core.config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_STATE_FILE,
    ConfigValidationError,
    Settings,
    generate_settings,
    get_config_dir,
    get_default_settings_path,
    load_settings,
    resolve_data_path,
)
from mcnotify.core.models import DEFAULT_INTERVAL_MS


class TestGetConfigDir:
    """Tests for get_config_dir function."""

    def test_uses_xdg_config_home_when_set(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """get_config_dir uses XDG_CONFIG_HOME when set."""
        # Arrange
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        # Act
        result = get_config_dir()

        # Assert
        assert result == tmp_path / "mcnotify"

    def test_uses_default_when_xdg_config_home_whitespace(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """get_config_dir ignores a blank XDG_CONFIG_HOME."""
        # Arrange
        monkeypatch.setenv("XDG_CONFIG_HOME", "   ")

        # Act
        result = get_config_dir()

        # Assert
        assert result == Path.home() / ".config" / "mcnotify"

    def test_default_settings_path(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """settings.toml lives in the config dir."""
        # Arrange
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        # Act & Assert
        assert get_default_settings_path() == tmp_path / "mcnotify" / "settings.toml"


class TestResolveDataPath:
    """Tests for resolve_data_path function."""

    def test_relative_path_uses_cwd(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Relative paths are resolved against the working directory."""
        # Arrange
        monkeypatch.chdir(tmp_path)

        # Act
        result = resolve_data_path(DEFAULT_STATE_FILE)

        # Assert
        assert result == tmp_path / "data" / "cfmrmod_notify_state.json"

    def test_absolute_path_unchanged(self, tmp_path: Path) -> None:
        """Absolute paths are returned unchanged."""
        # Arrange
        path = tmp_path / "state.json"

        # Act & Assert
        assert resolve_data_path(str(path)) == path


class TestLoadSettings:
    """Tests for load_settings function."""

    def test_missing_file_returns_defaults(self, tmp_path: Path) -> None:
        """A missing settings file yields defaults."""
        # Arrange & Act
        settings = load_settings(tmp_path / "missing.toml")

        # Assert
        assert settings == Settings()
        assert settings.enabled is False
        assert settings.interval == DEFAULT_INTERVAL_MS
        assert settings.config_file == DEFAULT_CONFIG_FILE
        assert settings.timeout_seconds == 15.0

    def test_reads_sections(self, tmp_path: Path) -> None:
        """notify, storage and curseforge sections are merged."""
        # Arrange
        path = tmp_path / "settings.toml"
        path.write_text(
            "[notify]\n"
            "enabled = true\n"
            "interval = 120000\n"
            "request_timeout = 5000\n"
            "admin_authority = 2\n"
            "[storage]\n"
            'config_file = "cfg.json"\n'
            'state_file = "st.json"\n'
            "[curseforge]\n"
            'api_key = "secret"\n'
        )

        # Act
        settings = load_settings(path)

        # Assert
        assert settings.enabled is True
        assert settings.interval == 120000
        assert settings.timeout_seconds == 5.0
        assert settings.admin_authority == 2
        assert settings.config_file == "cfg.json"
        assert settings.state_file == "st.json"
        assert settings.curseforge_api_key == "secret"

    def test_invalid_toml_raises(self, tmp_path: Path) -> None:
        """Malformed TOML raises ConfigValidationError."""
        # Arrange
        path = tmp_path / "settings.toml"
        path.write_text("[notify\n")

        # Act & Assert
        with pytest.raises(ConfigValidationError, match="Invalid TOML"):
            load_settings(path)

    def test_interval_below_minimum_raises(self, tmp_path: Path) -> None:
        """An interval below one minute is rejected with a field error."""
        # Arrange
        path = tmp_path / "settings.toml"
        path.write_text("[notify]\ninterval = 1000\n")

        # Act & Assert
        with pytest.raises(ConfigValidationError) as exc_info:
            load_settings(path)

        assert any(err.startswith("interval") for err in exc_info.value.errors)


class TestGenerateSettings:
    """Tests for generate_settings function."""

    def test_writes_loadable_file(self, tmp_path: Path) -> None:
        """Generated settings load back with the given values."""
        # Arrange
        path = tmp_path / "mcnotify" / "settings.toml"

        # Act
        result = generate_settings(path, interval_minutes=10, admin_authority=2)
        settings = load_settings(result)

        # Assert
        assert result == path
        assert settings.enabled is True
        assert settings.interval == 600_000
        assert settings.admin_authority == 2
        assert settings.curseforge_api_key is None

    def test_interval_floor(self, tmp_path: Path) -> None:
        """Intervals below one minute are written as one minute."""
        # Arrange
        path = tmp_path / "settings.toml"

        # Act
        generate_settings(path, interval_minutes=0)

        # Assert
        with open(path, "rb") as f:
            assert tomllib.load(f)["notify"]["interval"] == 60_000

    def test_existing_file_raises(self, tmp_path: Path) -> None:
        """An existing file is not overwritten without force."""
        # Arrange
        path = tmp_path / "settings.toml"
        path.write_text("")

        # Act & Assert
        with pytest.raises(FileExistsError):
            generate_settings(path)

    def test_force_overwrites(self, tmp_path: Path) -> None:
        """force overwrites an existing file."""
        # Arrange
        path = tmp_path / "settings.toml"
        path.write_text("junk")

        # Act
        generate_settings(path, force=True)

        # Assert
        assert load_settings(path).enabled is True
