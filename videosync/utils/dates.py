"""Datetime helpers. Sync runs are pinned to UTC."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pendulum


def utc_now() -> datetime:
    return datetime.fromtimestamp(pendulum.now("UTC").timestamp(), tz=timezone.utc)


def parse_timestamp(value: str) -> datetime:
    parsed = pendulum.parse(value, tz="UTC")
    return datetime.fromtimestamp(parsed.timestamp(), tz=timezone.utc)


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def window_bounds(window_days: int, as_of: date) -> tuple[str, str]:
    """Inclusive start and exclusive end dates for a trailing window."""
    start = as_of - timedelta(days=window_days)
    end = as_of + timedelta(days=1)
    return format_date(start), format_date(end)
