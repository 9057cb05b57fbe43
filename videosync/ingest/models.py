"""Ingestion data models."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

RawRow = Mapping[str, Any]


@dataclass(slots=True)
class Brand:
    id: int
    name: str
    shop_cipher: str | None = None


@dataclass(slots=True)
class MetricSet:
    gmv_cents: int | None = None
    views: int | None = None
    items_sold: int | None = None
    gpm_cents: int | None = None
    ctr: Decimal | None = None
    duration: int | None = None
    posted_at: datetime | None = None
    hash_tags: list[str] | None = None

    def completeness(self) -> int:
        return sum(1 for f in fields(self) if getattr(self, f.name) is not None)


@dataclass(slots=True)
class MetricCandidate:
    video_id: str | None
    username: str | None
    raw: RawRow
    metrics: MetricSet
    first_seen_index: int
    score: tuple = ()


# A candidate that won its group is the canonical row for that video id.
CanonicalRow = MetricCandidate


@dataclass(slots=True)
class DedupeStats:
    total_rows: int = 0
    canonical_rows: int = 0
    duplicate_rows: int = 0
    duplicate_video_count: int = 0
    conflict_video_count: int = 0
    max_gmv_discrepancy_cents: int = 0


@dataclass(slots=True)
class DedupeResult:
    canonical_rows: list[CanonicalRow]
    stats: DedupeStats


@dataclass(slots=True)
class Creator:
    id: int
    username: str
    previous_usernames: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ResolvedCreator:
    creator: Creator
    status: str  # "matched" | "created"


@dataclass(slots=True)
class UpsertStats:
    videos_synced: int = 0
    creators_created: int = 0
    creators_matched: int = 0
    missing_required_fields: int = 0
    row_errors: int = 0


@dataclass(slots=True)
class SnapshotStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass(slots=True)
class SyncStats:
    brand_id: int
    source_run_id: str
    snapshot_date: date
    videos_synced: int = 0
    creators_created: int = 0
    creators_matched: int = 0
    missing_required_fields: int = 0
    row_errors: int = 0
    snapshot_stats: dict[int, SnapshotStats] = field(default_factory=dict)
    dedupe_stats: dict[int, DedupeStats] = field(default_factory=dict)
    duplicate_rows: int = 0
    conflict_video_count: int = 0
    max_conflict_gmv_cents: int = 0

    @property
    def partial(self) -> bool:
        return self.row_errors > 0


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


@dataclass(frozen=True, slots=True)
class SyncTuning:
    page_size: int = 100
    page_retry_base_delay_ms: int = 500
    max_page_attempts: int = 3
    requests_per_second: float = 2.0
    cooldown_seconds: int = 600
    backoff_initial_seconds: int = 900
    backoff_max_seconds: int = 7200
    windows: tuple[int, ...] = (90, 30)

    @classmethod
    def from_env(cls) -> "SyncTuning":
        windows = os.environ.get("VIDEO_SYNC_WINDOWS", "90,30")
        return cls(
            page_size=_env_int("VIDEO_SYNC_PAGE_SIZE", 100),
            page_retry_base_delay_ms=_env_int("VIDEO_SYNC_PAGE_RETRY_BASE_DELAY_MS", 500),
            max_page_attempts=_env_int("VIDEO_SYNC_MAX_PAGE_ATTEMPTS", 3),
            requests_per_second=_env_float("VIDEO_SYNC_REQUESTS_PER_SECOND", 2.0),
            cooldown_seconds=_env_int("VIDEO_SYNC_COOLDOWN_SECONDS", 600),
            backoff_initial_seconds=_env_int("VIDEO_SYNC_BACKOFF_INITIAL_SECONDS", 900),
            backoff_max_seconds=_env_int("VIDEO_SYNC_BACKOFF_MAX_SECONDS", 7200),
            windows=tuple(int(w) for w in windows.split(",") if w.strip()),
        )
