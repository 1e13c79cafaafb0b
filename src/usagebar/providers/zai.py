"""z.ai (Zhipu GLM coding plan) quota fetcher.

The quota endpoint wraps its data in an envelope::

    {"code": 200, "success": true, "data": {"limits": [
        {"type": "TOKENS_LIMIT", "usage": 800000, "currentValue": 200000,
         "percentage": 25, "nextResetTime": 1737000000000},
        {"type": "TIME_LIMIT", "usage": 100, "currentValue": 10, "percentage": 10}
    ]}}

``usage`` is the quota size and ``currentValue`` the consumed amount.
"""

from datetime import datetime
from typing import Any

from usagebar.exceptions import ApiError, AuthenticationFailedError, ParseError
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
    finite_percent,
    parse_timestamp,
    percent_used,
)


API_BASE_URL = "https://api.z.ai"
QUOTA_ENDPOINT = "/api/monitor/usage/quota/limit"

TOKENS_LIMIT = "TOKENS_LIMIT"
TIME_LIMIT = "TIME_LIMIT"


def _limit_window(limit: dict[str, Any]) -> UsageWindow:
    total = as_float(limit.get("usage"))
    used = as_float(limit.get("currentValue"))
    if total is not None and used is not None:
        used_percent = percent_used(used, total)
    else:
        used_percent = finite_percent(limit.get("percentage"))
    return UsageWindow(
        used_percent=used_percent,
        resets_at=parse_timestamp(limit.get("nextResetTime")),
    )


class ZaiFetcher(HttpUsageFetcher):
    kind = ProviderKind.ZAI
    default_base_url = API_BASE_URL
    endpoint = QUOTA_ENDPOINT
    auth_failure_message = "API key rejected"

    def parse(self, payload: Any, now: datetime) -> UsageSnapshot:
        if not isinstance(payload, dict):
            raise ParseError("quota response is not a JSON object")

        # Errors can arrive as HTTP 200 with a failure envelope
        code = payload.get("code")
        if payload.get("success") is False or (isinstance(code, int) and code != 200):
            message = str(payload.get("msg") or "request failed")
            if code in (401, 403):
                raise AuthenticationFailedError(message, status_code=code)
            raise ApiError(code if isinstance(code, int) else 200, message)

        data = payload.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("limits"), list):
            raise ParseError("missing data.limits")

        windows: dict[str, UsageWindow] = {}
        for limit in data["limits"]:
            if not isinstance(limit, dict):
                continue
            limit_type = limit.get("type")
            if limit_type == TOKENS_LIMIT:
                windows["primary"] = _limit_window(limit)
            elif limit_type == TIME_LIMIT:
                windows["secondary"] = _limit_window(limit)

        plan = data.get("planName") or data.get("plan")
        return UsageSnapshot(
            primary=windows.get("primary"),
            secondary=windows.get("secondary"),
            identity=ProviderIdentity(
                provider=self.kind,
                plan_name=str(plan) if plan else None,
                login_method=LoginMethod.API_KEY,
            ),
            fetch_source=FetchSource.API,
            updated_at=now,
        )
