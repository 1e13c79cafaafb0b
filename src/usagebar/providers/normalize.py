"""Helpers that turn raw provider quota fields into UsageWindow values."""

import math
from datetime import UTC, datetime
from typing import Any

from dateutil import parser as dateutil_parser
from structlog import get_logger


logger = get_logger(__name__)

# Epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 10_000_000_000


def percent_used(used: float | None, limit: float | None) -> float:
    """Compute the consumed share of a quota as a percentage.

    Args:
        used: Amount consumed
        limit: Quota size

    Returns:
        used / limit * 100, or 0.0 when the limit is missing or not positive
        or the result is not a finite number

    """
    if used is None or limit is None or limit <= 0:
        return 0.0
    result = float(used) / float(limit) * 100.0
    if not math.isfinite(result):
        return 0.0
    return result


def finite_percent(value: Any) -> float:
    """Coerce a provider-reported percentage, mapping junk to 0.0."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a reset timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings (with or without offset) and epoch numbers in
    seconds or milliseconds. Naive values are assumed to be UTC.

    Args:
        value: Raw timestamp from a provider response

    Returns:
        UTC datetime, or None when the value is missing or unparseable

    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int | float):
        if not math.isfinite(value):
            return None
        seconds = value / 1000 if abs(value) > _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.debug("timestamp_out_of_range", value=value)
            return None

    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.isdigit():
        return parse_timestamp(int(text))

    try:
        parsed = dateutil_parser.parse(text)
    except (ValueError, OverflowError):
        logger.debug("timestamp_parse_failed", value=text)
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def as_float(value: Any) -> float | None:
    """Read a numeric field, returning None for missing or non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None
