"""usagebar command line interface."""

import asyncio
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

import orjson
import typer
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from structlog import get_logger

from usagebar import __version__
from usagebar.cli.commands.auth import app as auth_app
from usagebar.cli.helpers import credential_source, load_cli_settings, parse_provider
from usagebar.config.settings import Settings
from usagebar.core.logging import setup_logging
from usagebar.credentials.store import FileCredentialStore
from usagebar.engine import UsageEngine
from usagebar.models.usage import ProviderKind
from usagebar.presentation.card import ProviderCard
from usagebar.providers.registry import all_descriptors


app = typer.Typer(
    name="usagebar",
    help="Track AI provider quota usage and reset times",
    no_args_is_help=True,
)
app.add_typer(auth_app)

console = Console()
logger = get_logger(__name__)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to a TOML configuration file"),
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"usagebar {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """usagebar: quota usage for Claude, Codex, Copilot and API providers."""


def create_engine(settings: Settings) -> UsageEngine:
    """Build the engine used by one-shot and watch commands."""
    return UsageEngine(settings)


def _usage_table(cards: list[ProviderCard]) -> Table:
    table = Table(
        show_header=True,
        header_style="bold cyan",
        box=box.ROUNDED,
        title="Provider Usage",
        title_style="bold white",
    )
    table.add_column("Provider", style="cyan")
    table.add_column("Plan")
    table.add_column("Window")
    table.add_column("Usage", justify="right")
    table.add_column("Reset", style="dim")
    table.add_column("Status")

    for card in cards:
        if card.is_refreshing:
            status = "[blue]Refreshing[/blue]"
        elif card.error:
            status = f"[red]{card.error}[/red]"
        elif card.is_stale:
            status = "[yellow]Stale[/yellow]"
        else:
            status = "[green]OK[/green]"

        if not card.metrics:
            table.add_row(card.provider_name, card.plan or "-", "-", "-", "-", status)
            continue
        for index, metric in enumerate(card.metrics):
            first = index == 0
            table.add_row(
                card.provider_name if first else "",
                (card.plan or "-") if first else "",
                metric.title,
                metric.percent_label,
                metric.reset_text or "-",
                status if first else "",
            )
        if card.install_hint:
            table.add_row("", "", "", "", f"[yellow]{card.install_hint}[/yellow]", "")
    return table


def _hints(cards: list[ProviderCard]) -> list[str]:
    return [
        f"[yellow]{card.provider_name}:[/yellow] {card.install_hint}"
        for card in cards
        if card.install_hint and not card.metrics
    ]


def _cards(engine: UsageEngine, kinds: list[ProviderKind]) -> list[ProviderCard]:
    now = datetime.now(UTC)
    return [ProviderCard.from_cache(kind, engine.cache, engine.gate, now) for kind in kinds]


def _card_json(engine: UsageEngine, kind: ProviderKind) -> dict[str, Any]:
    state = engine.cache.get_state(kind)
    snapshot = state.last_snapshot
    return {
        "provider": kind.value,
        "snapshot": snapshot.model_dump(mode="json") if snapshot else None,
        "error": state.last_error,
        "error_kind": state.last_error_kind.value if state.last_error_kind else None,
        "is_stale": engine.cache.is_stale(kind),
    }


@app.command(name="providers")
def list_providers(config: ConfigOption = None) -> None:
    """List supported providers with enablement and credential status."""
    settings = load_cli_settings(config)
    store = FileCredentialStore(settings.credentials.store_path)
    enabled = settings.providers.enabled

    table = Table(
        show_header=True,
        header_style="bold cyan",
        box=box.ROUNDED,
        title="Providers",
        title_style="bold white",
    )
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Strategy")
    table.add_column("Enabled")
    table.add_column("Credential")

    for desc in all_descriptors():
        is_enabled = desc.kind in enabled
        source = credential_source(desc, store, os.environ, settings)
        table.add_row(
            desc.provider_id,
            desc.display_name,
            desc.fetch_strategy.value,
            "[green]yes[/green]" if is_enabled else "[dim]no[/dim]",
            f"[green]{source}[/green]" if source else "[red]missing[/red]",
        )
    console.print(table)


async def _run_status(
    settings: Settings, kinds: list[ProviderKind]
) -> tuple[list[ProviderCard], list[dict[str, Any]]]:
    async with create_engine(settings) as engine:
        await asyncio.gather(*(engine.refresh_provider(kind) for kind in kinds))
        return _cards(engine, kinds), [_card_json(engine, kind) for kind in kinds]


@app.command(name="status")
def status(
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Only refresh this provider"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print machine-readable JSON"),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Fetch current usage once and print it.

    Examples:
        usagebar status
        usagebar status --provider synthetic --json
    """
    settings = load_cli_settings(config)
    setup_logging(settings.logging.level, settings.logging.json_logs)

    kinds = [parse_provider(provider)] if provider else settings.providers.enabled
    if not kinds:
        console.print("[yellow]No providers enabled.[/yellow]")
        raise typer.Exit(1)

    cards, payload = asyncio.run(_run_status(settings, kinds))

    if as_json:
        typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
    else:
        console.print(_usage_table(cards))
        for hint in _hints(cards):
            console.print(hint)

    if all(card.error for card in cards):
        raise typer.Exit(1)


async def _run_watch(settings: Settings) -> None:
    engine = create_engine(settings)
    await engine.start()
    try:
        kinds = engine.enabled_providers()
        with Live(_usage_table(_cards(engine, kinds)), console=console, refresh_per_second=2) as live:
            while True:
                await asyncio.sleep(1)
                cards = _cards(engine, kinds)
                live.update(Group(_usage_table(cards), *_hints(cards)))
    finally:
        await engine.stop()


@app.command(name="watch")
def watch(
    interval: Annotated[
        int | None,
        typer.Option("--interval", "-i", help="Seconds between refreshes"),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Keep refreshing in the background and show a live table until Ctrl+C."""
    overrides: dict[str, Any] = {}
    if interval is not None:
        overrides["refresh"] = {"interval_seconds": interval}
    settings = load_cli_settings(config, **overrides)
    setup_logging(settings.logging.level, settings.logging.json_logs)

    try:
        asyncio.run(_run_watch(settings))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


def main() -> None:
    app()
