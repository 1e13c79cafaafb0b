"""OpenRouter credit usage fetcher.

``GET /api/v1/key`` describes the calling key::

    {"data": {"label": "sk-or-v1-abc...", "usage": 12.5, "limit": 50,
              "limit_remaining": 37.5, "limit_reset": "monthly", "is_free_tier": false}}

A null ``limit`` means the key is unlimited.
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
from usagebar.providers.normalize import as_float, percent_used


API_BASE_URL = "https://openrouter.ai"
KEY_ENDPOINT = "/api/v1/key"


class OpenRouterFetcher(HttpUsageFetcher):
    kind = ProviderKind.OPENROUTER
    default_base_url = API_BASE_URL
    endpoint = KEY_ENDPOINT
    auth_failure_message = "API key rejected"

    def parse(self, payload: Any, now: datetime) -> UsageSnapshot:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ParseError("missing data object")

        usage = as_float(data.get("usage")) or 0.0
        limit = as_float(data.get("limit"))
        remaining = as_float(data.get("limit_remaining"))
        # limit_remaining accounts for periodic resets, usage is lifetime spend
        if limit is not None and remaining is not None:
            usage = limit - remaining

        if limit is None:
            plan_name = "Free tier" if data.get("is_free_tier") else "Unlimited"
        else:
            plan_name = f"${limit:.2f} limit"

        reset = data.get("limit_reset")
        return UsageSnapshot(
            primary=UsageWindow(
                used_percent=percent_used(usage, limit),
                reset_description=str(reset) if reset else None,
            ),
            identity=ProviderIdentity(
                provider=self.kind,
                plan_name=plan_name,
                login_method=LoginMethod.API_KEY,
            ),
            fetch_source=FetchSource.API,
            updated_at=now,
        )
