"""Claude subscription usage fetcher.

Reads the OAuth usage endpoint used by Claude Code::

    {"five_hour": {"utilization": 12.0, "resets_at": "2025-11-04T04:59:59.943648+00:00"},
     "seven_day": {"utilization": 35.0, "resets_at": "2025-11-06T03:59:59.943679+00:00"},
     "seven_day_opus": null}

The access token comes from the credential store, ``CLAUDE_CODE_OAUTH_TOKEN``,
or the Claude CLI's ``~/.claude/.credentials.json``, in that order.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

import orjson
from structlog import get_logger

from usagebar.credentials.store import resolve_secret
from usagebar.exceptions import ParseError
from usagebar.models.usage import (
    FetchSource,
    LoginMethod,
    ProviderIdentity,
    ProviderKind,
    UsageSnapshot,
    UsageWindow,
)
from usagebar.providers.base import FetchContext, HttpUsageFetcher, parse_guarded, request_json
from usagebar.providers.normalize import finite_percent, parse_timestamp


logger = get_logger(__name__)

API_BASE_URL = "https://api.anthropic.com"
USAGE_ENDPOINT = "/api/oauth/usage"
ANTHROPIC_BETA = "oauth-2025-04-20"

FIVE_HOUR_MINUTES = 300
SEVEN_DAY_MINUTES = 7 * 24 * 60


def default_credentials_path() -> Path:
    return Path.home() / ".claude" / ".credentials.json"


def _oauth_section(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    oauth = data.get("claudeAiOauth")
    return oauth if isinstance(oauth, dict) else data


def _window(payload: dict[str, Any], key: str, window_minutes: int) -> UsageWindow | None:
    raw = payload.get(key)
    if not isinstance(raw, dict):
        return None
    return UsageWindow(
        used_percent=finite_percent(raw.get("utilization")),
        window_minutes=window_minutes,
        resets_at=parse_timestamp(raw.get("resets_at")),
    )


class ClaudeFetcher(HttpUsageFetcher):
    kind = ProviderKind.CLAUDE
    default_base_url = API_BASE_URL
    endpoint = USAGE_ENDPOINT
    auth_failure_message = "OAuth token rejected, run `claude login`"

    def __init__(self, base_url: str | None = None, credentials_path: Path | None = None) -> None:
        super().__init__(base_url)
        self.credentials_path = credentials_path or default_credentials_path()

    def _read_cli_credentials(self) -> dict[str, Any]:
        """Read the Claude CLI OAuth section, or an empty dict if unavailable."""
        if not self.credentials_path.exists():
            return {}
        try:
            return _oauth_section(orjson.loads(self.credentials_path.read_bytes()))
        except orjson.JSONDecodeError:
            logger.warning("claude_credentials_json_decode_error", path=str(self.credentials_path))
            return {}
        except OSError as e:
            logger.warning(
                "claude_credentials_read_error",
                path=str(self.credentials_path),
                error=str(e),
            )
            return {}

    def _resolve(self, context: FetchContext) -> tuple[str, str | None]:
        desc = self.descriptor
        secret = resolve_secret(
            context.credentials, desc.provider_id, desc.api_key_env, context.environ
        )
        if secret:
            # Stored secrets may be a raw token or a full credentials JSON blob
            if secret.lstrip().startswith("{"):
                try:
                    oauth = _oauth_section(orjson.loads(secret))
                except orjson.JSONDecodeError:
                    oauth = {}
                token = oauth.get("accessToken") or oauth.get("access_token")
                if isinstance(token, str) and token:
                    return token, oauth.get("subscriptionType")
            return secret, None

        oauth = self._read_cli_credentials()
        token = oauth.get("accessToken")
        if isinstance(token, str) and token:
            return token, oauth.get("subscriptionType")

        raise self.missing_credential(
            "No Claude OAuth token found, run `claude login` or set CLAUDE_CODE_OAUTH_TOKEN"
        )

    def resolve_credential(self, context: FetchContext) -> str:
        return self._resolve(context)[0]

    def build_headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "anthropic-beta": ANTHROPIC_BETA,
            "Accept": "application/json",
            "User-Agent": "usagebar",
        }

    async def fetch(self, context: FetchContext) -> UsageSnapshot:
        token, subscription_type = self._resolve(context)
        payload = await request_json(
            context.http,
            self.url,
            headers=self.build_headers(token),
            provider=self.kind,
            auth_failure_message=self.auth_failure_message,
        )
        snapshot = parse_guarded(self.parse, payload, context.now())
        if subscription_type and snapshot.identity is not None:
            identity = snapshot.identity.model_copy(
                update={"plan_name": str(subscription_type).title()}
            )
            snapshot = snapshot.model_copy(update={"identity": identity})
        return snapshot

    def parse(self, payload: Any, now: datetime) -> UsageSnapshot:
        if not isinstance(payload, dict):
            raise ParseError("usage response is not a JSON object")
        return UsageSnapshot(
            primary=_window(payload, "five_hour", FIVE_HOUR_MINUTES),
            secondary=_window(payload, "seven_day", SEVEN_DAY_MINUTES),
            tertiary=_window(payload, "seven_day_opus", SEVEN_DAY_MINUTES),
            identity=ProviderIdentity(provider=self.kind, login_method=LoginMethod.OAUTH),
            fetch_source=FetchSource.API,
            updated_at=now,
        )
