"""Cross-run rate-limit cooldown and backoff."""

from __future__ import annotations

from datetime import datetime


def cooldown_remaining(last_rate_limited_at: datetime | None, now: datetime, cooldown_seconds: int) -> int:
    """Seconds left in the cooldown window, or 0 when a run may proceed."""
    if last_rate_limited_at is None:
        return 0
    elapsed = int((now - last_rate_limited_at).total_seconds())
    if elapsed < cooldown_seconds:
        return cooldown_seconds - elapsed
    return 0


def backoff_seconds(streak: int, *, initial: int, maximum: int) -> int:
    # 1 -> initial, 2 -> 2x, 3 -> 4x, 4+ -> 8x, always capped.
    multiplier = 2 ** min(max(streak, 1) - 1, 3)
    return min(initial * multiplier, maximum)
