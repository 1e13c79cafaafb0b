"""Shared helpers for CLI commands."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from usagebar.config.settings import ConfigurationError, Settings, load_settings
from usagebar.credentials.store import CredentialStore
from usagebar.models.usage import ProviderKind
from usagebar.providers.claude import default_credentials_path as claude_credentials_path
from usagebar.providers.codex import resolve_codex_home
from usagebar.providers.registry import ProviderDescriptor


console = Console(stderr=True)


def load_cli_settings(config: Path | None = None, **overrides: Any) -> Settings:
    """Load settings or exit with a readable error."""
    try:
        return load_settings(config, **overrides)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e


def parse_provider(value: str) -> ProviderKind:
    """Convert a provider id argument, exiting on unknown ids."""
    try:
        return ProviderKind(value.strip().lower())
    except ValueError as e:
        valid = ", ".join(kind.value for kind in ProviderKind)
        console.print(f"[red]Unknown provider '{value}'. Valid providers: {valid}[/red]")
        raise typer.Exit(2) from e


def credential_source(
    desc: ProviderDescriptor,
    store: CredentialStore,
    environ: Mapping[str, str],
    settings: Settings,
) -> str | None:
    """Describe where a provider's credential would be read from.

    Returns:
        "store", "env:NAME", "cli", or None when nothing is available
    """
    if store.get_api_key(desc.provider_id):
        return "store"
    for name in desc.api_key_env:
        if environ.get(name, "").strip():
            return f"env:{name}"

    if desc.kind == ProviderKind.CLAUDE:
        path = settings.credentials.claude_credentials_path or claude_credentials_path()
        return "cli" if path.exists() else None
    if desc.kind == ProviderKind.CODEX:
        home = resolve_codex_home(settings.credentials.codex_home, environ)
        return "cli" if (home / "sessions").is_dir() else None
    return None

