"""Parsing helpers for analytics API rows.

All defaulting rules for the untyped payload live here so the rest of the
pipeline only sees :class:`MetricSet` values.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import pendulum

from videosync.ingest.models import MetricSet, RawRow


# Leading integer, so "12.5" reads as 12 and "120 views" as 120.
_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")


def _finite_decimal(text: str) -> Decimal | None:
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    # NaN and Infinity are valid JSON to the client but never a metric.
    return number if number.is_finite() else None


def parse_cents(value: Any, *, default: int | None = None) -> int | None:
    if isinstance(value, dict):
        value = value.get("amount")
    if value in (None, "") or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value * 100
    number = _finite_decimal(str(value).replace("$", "").replace(",", "").strip())
    if number is None:
        return default
    return round(number * 100)


def parse_integer(value: Any, *, default: int | None = None) -> int | None:
    if value in (None, "") or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return round(value) if math.isfinite(value) else default
    match = _LEADING_INTEGER.match(str(value).replace(",", ""))
    if match is None:
        return default
    return int(match.group(1))


def parse_percentage(value: Any) -> Decimal | None:
    """Normalize a rate to percentage points: ``"3.5%"`` and ``0.035`` both give 3.5."""
    if value in (None, "") or isinstance(value, bool):
        return None
    text = str(value)
    number = _finite_decimal(text.replace("%", "").strip())
    if number is None:
        return None
    if number < 1 and "%" not in text:
        return number * 100
    return number


def parse_post_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = pendulum.parse(value.strip().replace(" ", "T"), tz="UTC")
    except ValueError:
        return None
    if not isinstance(parsed, pendulum.DateTime):
        return None
    return datetime.fromtimestamp(parsed.timestamp(), tz=timezone.utc)


def parse_hash_tags(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(tag) for tag in value]
    return []


def parse_metrics(row: RawRow) -> MetricSet:
    return MetricSet(
        gmv_cents=parse_cents(row.get("gmv"), default=0),
        views=parse_integer(row.get("views"), default=0),
        items_sold=parse_integer(row.get("items_sold"), default=0),
        gpm_cents=parse_cents(row.get("gpm")),
        ctr=parse_percentage(row.get("click_through_rate")),
        duration=parse_integer(row.get("duration")),
        posted_at=parse_post_time(row.get("video_post_time")),
        hash_tags=parse_hash_tags(row.get("hash_tags")),
    )


def clean_string(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
