"""Credential management commands."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from usagebar.cli.helpers import load_cli_settings, parse_provider
from usagebar.credentials.store import FileCredentialStore
from usagebar.exceptions import CredentialsStorageError
from usagebar.providers.registry import descriptor


app = typer.Typer(name="auth", help="Store and remove provider API keys")

console = Console()


def get_store(config: Path | None) -> FileCredentialStore:
    settings = load_cli_settings(config)
    return FileCredentialStore(settings.credentials.store_path)


@app.command(name="set-key")
def set_key(
    provider: Annotated[str, typer.Argument(help="Provider id, e.g. synthetic")],
    api_key: Annotated[str, typer.Argument(help="API key or token to store")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a TOML configuration file"),
    ] = None,
) -> None:
    """Store an API key for a provider.

    Examples:
        usagebar auth set-key synthetic syn_abc123
        usagebar auth set-key copilot ghu_xyz
    """
    kind = parse_provider(provider)
    store = get_store(config)
    try:
        store.set_api_key(kind.value, api_key)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    except CredentialsStorageError as e:
        console.print(f"[red]Error saving key: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(
        f"[green]✓[/green] Stored key for {descriptor(kind).display_name} in "
        f"[dim]{store.file_path}[/dim]"
    )


@app.command(name="remove-key")
def remove_key(
    provider: Annotated[str, typer.Argument(help="Provider id, e.g. synthetic")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a TOML configuration file"),
    ] = None,
) -> None:
    """Remove a stored API key."""
    kind = parse_provider(provider)
    store = get_store(config)
    try:
        removed = store.delete_api_key(kind.value)
    except CredentialsStorageError as e:
        console.print(f"[red]Error removing key: {e}[/red]")
        raise typer.Exit(1) from e

    if removed:
        console.print(f"[green]✓[/green] Removed key for {descriptor(kind).display_name}")
    else:
        console.print(f"[yellow]No stored key for {descriptor(kind).display_name}[/yellow]")
        raise typer.Exit(1)
