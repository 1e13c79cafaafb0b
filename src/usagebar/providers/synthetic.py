"""Synthetic.new quota fetcher.

Calls ``GET /v2/quotas`` with a bearer API key. Example response::

    {
      "subscription": {"limit": 135, "requests": 50.0, "renewsAt": "2026-01-16T19:52:56.048Z"},
      "search": {"hourly": {"limit": 250, "requests": 0, "renewsAt": "2026-01-16T17:17:14.049Z"}}
    }
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
from usagebar.providers.normalize import as_float, parse_timestamp, percent_used


API_BASE_URL = "https://api.synthetic.new"
QUOTA_ENDPOINT = "/v2/quotas"

# Subscription quotas renew roughly monthly
SUBSCRIPTION_WINDOW_MINUTES = 43200
SEARCH_WINDOW_MINUTES = 60


def _format_count(value: float) -> str:
    return str(int(value)) if value.is_integer() else str(value)


def _quota_window(quota: dict[str, Any], window_minutes: int) -> UsageWindow:
    limit = as_float(quota.get("limit"))
    requests = as_float(quota.get("requests")) or 0.0
    return UsageWindow(
        used_percent=percent_used(requests, limit),
        window_minutes=window_minutes,
        resets_at=parse_timestamp(quota.get("renewsAt")),
    )


class SyntheticFetcher(HttpUsageFetcher):
    kind = ProviderKind.SYNTHETIC
    default_base_url = API_BASE_URL
    endpoint = QUOTA_ENDPOINT
    auth_failure_message = "API key rejected"

    def parse(self, payload: Any, now: datetime) -> UsageSnapshot:
        if not isinstance(payload, dict):
            raise ParseError("quota response is not a JSON object")

        primary = None
        identity = None
        subscription = payload.get("subscription")
        if isinstance(subscription, dict):
            primary = _quota_window(subscription, SUBSCRIPTION_WINDOW_MINUTES)
            limit = as_float(subscription.get("limit"))
            identity = ProviderIdentity(
                provider=self.kind,
                plan_name=f"{_format_count(limit)} requests/period" if limit is not None else None,
                login_method=LoginMethod.API_KEY,
            )

        search = None
        search_info = payload.get("search")
        if isinstance(search_info, dict) and isinstance(search_info.get("hourly"), dict):
            search = _quota_window(search_info["hourly"], SEARCH_WINDOW_MINUTES)

        return UsageSnapshot(
            primary=primary,
            search=search,
            identity=identity,
            fetch_source=FetchSource.API,
            updated_at=now,
        )
