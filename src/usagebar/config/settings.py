"""Settings configuration for usagebar."""

import tomllib
from pathlib import Path
from typing import Annotated, Any, Literal

import orjson
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from usagebar.config.discovery import find_toml_config_file
from usagebar.core.system import default_credentials_path
from usagebar.exceptions import ConfigurationError
from usagebar.models.usage import ProviderKind


__all__ = [
    "Settings",
    "RefreshSettings",
    "ProviderSettings",
    "CredentialSettings",
    "LoggingSettings",
    "ConfigurationError",
    "load_settings",
]


def _coerce_settings(value: Any, settings_class: type) -> Any:
    """Coerce value to settings class instance.

    Handles: None → default, dict → instance, passthrough existing instances.
    """
    if value is None:
        return settings_class()
    if isinstance(value, settings_class):
        return value
    if isinstance(value, dict):
        return settings_class(**value)
    if hasattr(value, "model_dump"):
        return settings_class(**value.model_dump())
    return value


def _merge_sections(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge overrides into file config, combining nested section tables."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class RefreshSettings(BaseModel):
    """Background refresh cadence and per-fetch limits."""

    interval_seconds: int = Field(
        default=300,
        ge=30,
        le=86400,
        description="Seconds between background refreshes of all enabled providers",
    )

    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Upper bound in seconds for a single provider fetch",
    )

    max_concurrent_fetches: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum number of provider fetches running at once",
    )

    refresh_on_start: bool = Field(
        default=True,
        description="Refresh all enabled providers immediately when the engine starts",
    )

    @model_validator(mode="after")
    def timeout_below_interval(self) -> "RefreshSettings":
        if self.timeout_seconds >= self.interval_seconds:
            raise ValueError(
                f"timeout_seconds ({self.timeout_seconds}) must be lower than "
                f"interval_seconds ({self.interval_seconds})"
            )
        return self


class ProviderSettings(BaseModel):
    """Which providers are shown and how."""

    enabled: Annotated[list[ProviderKind], NoDecode] = Field(
        default_factory=lambda: [ProviderKind.CLAUDE, ProviderKind.CODEX],
        description="Enabled providers in display order",
    )

    merge_icons: bool = Field(
        default=False,
        description="Show one combined status item instead of one per provider",
    )

    usage_bars_show_used: bool = Field(
        default=True,
        description="Show consumed share instead of remaining share",
    )

    reset_times_show_absolute: bool = Field(
        default=False,
        description="Show reset clock times instead of countdowns",
    )

    base_urls: dict[ProviderKind, str] = Field(
        default_factory=dict,
        description="Per-provider API base URL overrides",
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def parse_enabled(cls, v: Any) -> Any:
        # Environment values arrive undecoded: a JSON array or a comma list
        if isinstance(v, str) and v.lstrip().startswith("["):
            try:
                v = orjson.loads(v)
            except orjson.JSONDecodeError as e:
                raise ValueError(f"Invalid provider list: {v}") from e
        if isinstance(v, str):
            return [item.strip().lower() for item in v.split(",") if item.strip()]
        return v

    @field_validator("enabled")
    @classmethod
    def dedupe_enabled(cls, v: list[ProviderKind]) -> list[ProviderKind]:
        return list(dict.fromkeys(v))


class CredentialSettings(BaseModel):
    """Where secrets and CLI session data are read from."""

    store_path: Path = Field(
        default_factory=default_credentials_path,
        description="JSON file holding API keys set via `usagebar auth set-key`",
    )

    codex_home: Path | None = Field(
        default=None,
        description="Codex CLI home directory (defaults to $CODEX_HOME or ~/.codex)",
    )

    claude_credentials_path: Path | None = Field(
        default=None,
        description="Claude CLI credentials file (defaults to ~/.claude/.credentials.json)",
    )


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level",
    )

    json_logs: bool = Field(
        default=False,
        description="Render log lines as JSON instead of console output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class Settings(BaseSettings):
    """
    Configuration settings for usagebar.

    Settings are loaded from environment variables (USAGEBAR_ prefix, nested
    sections separated by "__"), .env files, and TOML configuration files.
    TOML configuration files are looked up in the following order:
    1. $USAGEBAR_CONFIG_FILE
    2. .usagebar.toml in current directory
    3. .usagebar.toml in git repository root
    4. config.toml in user config directory/usagebar/ (platform-specific)
    """

    model_config = SettingsConfigDict(
        env_prefix="USAGEBAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    refresh: RefreshSettings = Field(
        default_factory=RefreshSettings,
        description="Refresh cadence settings",
    )

    providers: ProviderSettings = Field(
        default_factory=ProviderSettings,
        description="Provider enablement and display settings",
    )

    credentials: CredentialSettings = Field(
        default_factory=CredentialSettings,
        description="Credential source settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging settings",
    )

    @field_validator("refresh", mode="before")
    @classmethod
    def validate_refresh(cls, v: Any) -> Any:
        return _coerce_settings(v, RefreshSettings)

    @field_validator("providers", mode="before")
    @classmethod
    def validate_providers(cls, v: Any) -> Any:
        return _coerce_settings(v, ProviderSettings)

    @field_validator("credentials", mode="before")
    @classmethod
    def validate_credentials(cls, v: Any) -> Any:
        return _coerce_settings(v, CredentialSettings)

    @field_validator("logging", mode="before")
    @classmethod
    def validate_logging(cls, v: Any) -> Any:
        return _coerce_settings(v, LoggingSettings)

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Args:
            toml_path: Path to the TOML configuration file

        Returns:
            dict: Configuration data from the TOML file

        Raises:
            ValueError: If the TOML file is invalid or cannot be read
        """
        if toml_path.suffix.lower() != ".toml":
            raise ValueError(
                f"Unsupported config file format: {toml_path.suffix}. "
                "Only TOML (.toml) files are supported."
            )
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ValueError(f"Cannot read TOML config file {toml_path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings instance from configuration file.

        Args:
            config_path: Path to configuration file. Can be:
                - None: Auto-discover config file or use USAGEBAR_CONFIG_FILE
                - Path or str: Use this specific config file
            **kwargs: Additional keyword arguments to override config values

        Returns:
            Settings: Configured Settings instance
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path is not None:
            if not config_path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            config_data = cls.load_toml_config(config_path)

        merged_config = _merge_sections(config_data, kwargs)
        return cls(**merged_config)


def load_settings(config_path: Path | str | None = None, **overrides: Any) -> Settings:
    """Load settings, wrapping every failure in ConfigurationError.

    Args:
        config_path: Explicit config file, or None to auto-discover
        **overrides: Section overrides (e.g. ``providers={"enabled": [...]}``)

    Returns:
        Loaded settings

    Raises:
        ConfigurationError: If the file cannot be read or values are invalid
    """
    try:
        return Settings.from_config(
            config_path=config_path,
            **overrides,
        )
    except (OSError, ValueError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e
