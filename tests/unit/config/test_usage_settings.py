"""Tests for settings loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from usagebar.config.discovery import CONFIG_FILE_ENV, find_toml_config_file
from usagebar.config.settings import (
    ProviderSettings,
    RefreshSettings,
    Settings,
    load_settings,
)
from usagebar.exceptions import ConfigurationError
from usagebar.models.usage import ProviderKind


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's own environment and config out of these tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_FILE_ENV, raising=False)
    for name in (
        "USAGEBAR_REFRESH__INTERVAL_SECONDS",
        "USAGEBAR_PROVIDERS__ENABLED",
        "USAGEBAR_LOGGING__LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def _write_config(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


@pytest.mark.unit
class TestSettingsDefaults:
    """Tests for default values and validation."""

    def test_defaults(self) -> None:
        """Test every section falls back to its documented default."""
        settings = Settings()

        assert settings.refresh.interval_seconds == 300
        assert settings.refresh.timeout_seconds == 30.0
        assert settings.refresh.refresh_on_start is True
        assert settings.providers.enabled == [ProviderKind.CLAUDE, ProviderKind.CODEX]
        assert settings.providers.usage_bars_show_used is True
        assert settings.providers.merge_icons is False
        assert settings.logging.level == "INFO"
        assert settings.logging.json_logs is False
        assert settings.credentials.store_path.name == "credentials.json"

    def test_timeout_must_be_below_interval(self) -> None:
        """Test a timeout equal to the interval is rejected."""
        with pytest.raises(ValidationError):
            RefreshSettings(interval_seconds=30, timeout_seconds=30.0)

    def test_interval_lower_bound(self) -> None:
        """Test intervals below the minimum are rejected."""
        with pytest.raises(ValidationError):
            RefreshSettings(interval_seconds=5)

    def test_enabled_accepts_comma_string(self) -> None:
        """Test a comma list is normalized and de-duplicated."""
        settings = ProviderSettings(enabled="Synthetic, zai,synthetic")  # type: ignore[arg-type]

        assert settings.enabled == [ProviderKind.SYNTHETIC, ProviderKind.ZAI]

    def test_unknown_provider_rejected(self) -> None:
        """Test an unsupported provider name is a validation error."""
        with pytest.raises(ValidationError):
            ProviderSettings(enabled=["synthetic", "gemini"])  # type: ignore[list-item]

    def test_log_level_is_case_insensitive(self) -> None:
        """Test log levels are upper-cased."""
        settings = Settings(logging={"level": "debug"})

        assert settings.logging.level == "DEBUG"

    def test_nested_environment_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test double-underscore env vars reach nested sections."""
        monkeypatch.setenv("USAGEBAR_REFRESH__INTERVAL_SECONDS", "600")

        assert Settings().refresh.interval_seconds == 600

    def test_enabled_from_comma_environment_variable(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a comma list in the environment selects providers."""
        monkeypatch.setenv("USAGEBAR_PROVIDERS__ENABLED", "synthetic,zai")

        assert Settings().providers.enabled == [ProviderKind.SYNTHETIC, ProviderKind.ZAI]

    def test_enabled_from_json_environment_variable(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a JSON array in the environment selects providers."""
        monkeypatch.setenv("USAGEBAR_PROVIDERS__ENABLED", '["openrouter", "copilot"]')

        assert Settings().providers.enabled == [ProviderKind.OPENROUTER, ProviderKind.COPILOT]

    def test_enabled_malformed_json_rejected(self) -> None:
        """Test a broken JSON array is a validation error."""
        with pytest.raises(ValidationError):
            ProviderSettings(enabled='["synthetic"')  # type: ignore[arg-type]


@pytest.mark.unit
class TestLoadSettings:
    """Tests for TOML loading."""

    def test_explicit_toml_file(self, tmp_path: Path) -> None:
        """Test values are loaded from an explicit TOML file."""
        config = _write_config(
            tmp_path / "usagebar.toml",
            """
[refresh]
interval_seconds = 120
timeout_seconds = 10

[providers]
enabled = ["synthetic", "openrouter"]
reset_times_show_absolute = true

[providers.base_urls]
synthetic = "http://localhost:8080"
""",
        )

        settings = load_settings(config)

        assert settings.refresh.interval_seconds == 120
        assert settings.refresh.timeout_seconds == 10.0
        assert settings.providers.enabled == [ProviderKind.SYNTHETIC, ProviderKind.OPENROUTER]
        assert settings.providers.reset_times_show_absolute is True
        assert settings.providers.base_urls == {ProviderKind.SYNTHETIC: "http://localhost:8080"}

    def test_overrides_merge_with_file_sections(self, tmp_path: Path) -> None:
        """Test keyword overrides merge into sections read from the file."""
        config = _write_config(
            tmp_path / "usagebar.toml",
            "[refresh]\ninterval_seconds = 120\ntimeout_seconds = 10\n",
        )

        settings = load_settings(config, refresh={"interval_seconds": 900})

        assert settings.refresh.interval_seconds == 900
        assert settings.refresh.timeout_seconds == 10.0

    def test_discovered_from_environment_variable(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test USAGEBAR_CONFIG_FILE points discovery at a file."""
        config = _write_config(tmp_path / "elsewhere.toml", '[providers]\nenabled = ["zai"]\n')
        monkeypatch.setenv(CONFIG_FILE_ENV, str(config))

        assert find_toml_config_file() == config
        assert load_settings().providers.enabled == [ProviderKind.ZAI]

    def test_discovered_in_working_directory(self, tmp_path: Path) -> None:
        """Test .usagebar.toml in the working directory is found."""
        config = _write_config(tmp_path / ".usagebar.toml", "[providers]\nmerge_icons = true\n")

        assert find_toml_config_file() == config.resolve()
        assert load_settings().providers.merge_icons is True

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test an explicit path that does not exist raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "absent.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Test unparseable TOML raises ConfigurationError."""
        config = _write_config(tmp_path / "broken.toml", "[refresh\ninterval_seconds = ")

        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_settings(config)

    def test_non_toml_extension(self, tmp_path: Path) -> None:
        """Test non-TOML config files are refused."""
        config = _write_config(tmp_path / "config.yaml", "refresh: {}")

        with pytest.raises(ConfigurationError, match="Unsupported config file format"):
            load_settings(config)

    def test_invalid_values(self, tmp_path: Path) -> None:
        """Test out-of-range values in the file raise ConfigurationError."""
        config = _write_config(
            tmp_path / "usagebar.toml", "[refresh]\ninterval_seconds = 1\n"
        )

        with pytest.raises(ConfigurationError):
            load_settings(config)
