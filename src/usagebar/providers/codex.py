"""Codex CLI usage fetcher.

The Codex CLI records rate-limit state in its session logs
(``$CODEX_HOME/sessions/YYYY/MM/DD/rollout-*.jsonl``). Each ``token_count``
event carries the latest limits::

    {"timestamp": "2025-10-20T09:12:44.512Z", "type": "event_msg",
     "payload": {"type": "token_count", "rate_limits": {
        "primary": {"used_percent": 12.0, "window_minutes": 300, "resets_at": 1760962364},
        "secondary": {"used_percent": 40.0, "window_minutes": 10080, "resets_in_seconds": 86400}}}}

The newest event across the most recently modified logs wins.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import orjson
from structlog import get_logger

from usagebar.exceptions import ParseError, TransportError
from usagebar.models.usage import (
    FetchSource,
    LoginMethod,
    ProviderIdentity,
    ProviderKind,
    UsageSnapshot,
    UsageWindow,
)
from usagebar.providers.base import FetchContext, UsageFetcher
from usagebar.providers.normalize import as_float, finite_percent, parse_timestamp


logger = get_logger(__name__)

CODEX_HOME_ENV = "CODEX_HOME"
# Only the newest logs are scanned; older sessions cannot hold newer limits
MAX_SESSION_FILES = 20


def resolve_codex_home(codex_home: Path | None, environ: Mapping[str, str]) -> Path:
    """Return the configured Codex home, then $CODEX_HOME, then ~/.codex."""
    if codex_home is not None:
        return codex_home
    env_home = environ.get(CODEX_HOME_ENV, "").strip()
    return Path(env_home).expanduser() if env_home else Path.home() / ".codex"


@dataclass(frozen=True)
class RateLimitEvent:
    """A token_count event with its rate limits."""

    timestamp: datetime | None
    rate_limits: dict[str, Any]


def parse_rate_limit_event(raw_event: Any) -> RateLimitEvent | None:
    """Extract rate limits from one session log record, if it has any."""
    if not isinstance(raw_event, dict) or raw_event.get("type") != "event_msg":
        return None
    payload = raw_event.get("payload")
    if not isinstance(payload, dict) or payload.get("type") != "token_count":
        return None
    rate_limits = payload.get("rate_limits")
    if not isinstance(rate_limits, dict):
        return None
    return RateLimitEvent(
        timestamp=parse_timestamp(raw_event.get("timestamp")),
        rate_limits=rate_limits,
    )


def latest_event_in_file(session_log: Path) -> RateLimitEvent | None:
    latest: RateLimitEvent | None = None
    with session_log.open("rb") as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line:
                continue
            try:
                event = parse_rate_limit_event(orjson.loads(line))
            except orjson.JSONDecodeError:
                continue
            if event is None:
                continue
            # Later lines win ties and events without timestamps
            if (
                latest is None
                or event.timestamp is None
                or latest.timestamp is None
                or event.timestamp >= latest.timestamp
            ):
                latest = event
    return latest


def find_latest_event(sessions_dir: Path) -> RateLimitEvent | None:
    """Scan the newest session logs for the latest rate-limit event."""
    logs = sorted(
        sessions_dir.rglob("*.jsonl"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for session_log in logs[:MAX_SESSION_FILES]:
        try:
            event = latest_event_in_file(session_log)
        except OSError as e:
            logger.debug("codex_session_log_unreadable", path=str(session_log), error=str(e))
            continue
        if event is not None:
            return event
    return None


def _window(raw: Any, event_time: datetime | None) -> UsageWindow | None:
    if not isinstance(raw, dict):
        return None
    resets_at = parse_timestamp(raw.get("resets_at"))
    if resets_at is None and event_time is not None:
        resets_in = as_float(raw.get("resets_in_seconds"))
        if resets_in is not None:
            resets_at = event_time + timedelta(seconds=resets_in)
    window_minutes = as_float(raw.get("window_minutes"))
    return UsageWindow(
        used_percent=finite_percent(raw.get("used_percent")),
        window_minutes=int(window_minutes) if window_minutes else None,
        resets_at=resets_at,
    )


class CodexFetcher(UsageFetcher):
    kind = ProviderKind.CODEX

    def __init__(self, codex_home: Path | None = None) -> None:
        self.codex_home = codex_home

    def sessions_dir(self, context: FetchContext) -> Path:
        return resolve_codex_home(self.codex_home, context.environ) / "sessions"

    async def fetch(self, context: FetchContext) -> UsageSnapshot:
        sessions_dir = self.sessions_dir(context)
        if not sessions_dir.is_dir():
            raise self.missing_credential(
                f"Codex CLI sessions not found in {sessions_dir}. {self.descriptor.install_hint}"
            )

        try:
            event = await asyncio.to_thread(find_latest_event, sessions_dir)
        except OSError as e:
            raise TransportError(f"cannot read Codex sessions: {e}") from e

        if event is None:
            raise ParseError("no rate limit events in Codex session logs yet")

        plan = event.rate_limits.get("plan_type")
        return UsageSnapshot(
            primary=_window(event.rate_limits.get("primary"), event.timestamp),
            secondary=_window(event.rate_limits.get("secondary"), event.timestamp),
            identity=ProviderIdentity(
                provider=self.kind,
                plan_name=str(plan).title() if plan else None,
                login_method=LoginMethod.CLI_SESSION,
            ),
            fetch_source=FetchSource.LOCAL_FILE,
            updated_at=context.now(),
        )
