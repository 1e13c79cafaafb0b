"""GitHub Copilot quota fetcher.

``GET /copilot_internal/user`` with a GitHub token returns quota snapshots::

    {"login": "octocat", "copilot_plan": "individual", "quota_reset_date": "2025-02-01",
     "quota_snapshots": {
        "premium_interactions": {"entitlement": 300, "remaining": 240, "unlimited": false},
        "chat": {"entitlement": 0, "remaining": 0, "unlimited": true}}}
"""

from datetime import datetime
from typing import Any

from usagebar.exceptions import ParseError
from usagebar.models.usage import (
    FetchSource,
    LoginMethod,
    ProviderIdentity,
    ProviderKind,
    UsageSnapshot,
    UsageWindow,
)
from usagebar.providers.base import HttpUsageFetcher
from usagebar.providers.normalize import (
    as_float,
    parse_timestamp,
    percent_used,
)


API_BASE_URL = "https://api.github.com"
USER_ENDPOINT = "/copilot_internal/user"

EDITOR_VERSION = "vscode/1.96.2"
EDITOR_PLUGIN_VERSION = "copilot-chat/0.26.7"


def _quota_window(quota: Any, resets_at: datetime | None) -> UsageWindow | None:
    if not isinstance(quota, dict):
        return None
    if quota.get("unlimited"):
        used_percent = 0.0
    else:
        entitlement = as_float(quota.get("entitlement"))
        remaining = as_float(quota.get("remaining"))
        percent_remaining = as_float(quota.get("percent_remaining"))
        if entitlement is not None and remaining is not None:
            used_percent = percent_used(entitlement - remaining, entitlement)
        elif percent_remaining is not None:
            used_percent = 100.0 - percent_remaining
        else:
            used_percent = 0.0
    return UsageWindow(used_percent=used_percent, resets_at=resets_at)


class CopilotFetcher(HttpUsageFetcher):
    kind = ProviderKind.COPILOT
    default_base_url = API_BASE_URL
    endpoint = USER_ENDPOINT
    auth_failure_message = "GitHub token rejected"

    def build_headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"token {credential}",
            "Accept": "application/json",
            "Editor-Version": EDITOR_VERSION,
            "Editor-Plugin-Version": EDITOR_PLUGIN_VERSION,
            "X-Github-Api-Version": "2025-04-01",
        }

    def parse(self, payload: Any, now: datetime) -> UsageSnapshot:
        if not isinstance(payload, dict):
            raise ParseError("user response is not a JSON object")
        snapshots = payload.get("quota_snapshots")
        if not isinstance(snapshots, dict):
            raise ParseError("missing quota_snapshots")

        resets_at = parse_timestamp(payload.get("quota_reset_date"))
        plan = payload.get("copilot_plan")
        return UsageSnapshot(
            primary=_quota_window(snapshots.get("premium_interactions"), resets_at),
            secondary=_quota_window(snapshots.get("chat"), resets_at),
            identity=ProviderIdentity(
                provider=self.kind,
                account_email=payload.get("login"),
                plan_name=str(plan).replace("_", " ").title() if plan else None,
                login_method=LoginMethod.GITHUB_TOKEN,
            ),
            fetch_source=FetchSource.API,
            updated_at=now,
        )
