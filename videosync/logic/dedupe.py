"""Deterministic dedupe of analytics rows that share a video id.

The analytics API returns the same video on several pages with different
numbers. One canonical row per video is picked by preferring, in order:

1. highest GMV
2. highest views
3. highest items sold
4. most complete metric payload
5. earliest appearance in the input
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Literal, Sequence

from videosync.ingest.models import (
    CanonicalRow,
    DedupeResult,
    DedupeStats,
    MetricCandidate,
    MetricSet,
    RawRow,
)
from videosync.ingest.parsers import clean_string, parse_metrics

Comparison = Literal["gt", "lt", "eq"]


def quality_key(metrics: MetricSet) -> tuple[int, int, int, int]:
    return (
        metrics.gmv_cents or 0,
        metrics.views or 0,
        metrics.items_sold or 0,
        metrics.completeness(),
    )


def compare_quality(left: MetricSet, right: MetricSet) -> Comparison:
    left_key = quality_key(left)
    right_key = quality_key(right)
    if left_key > right_key:
        return "gt"
    if left_key < right_key:
        return "lt"
    return "eq"


def build_candidate(row: RawRow, index: int) -> MetricCandidate:
    metrics = parse_metrics(row)
    return MetricCandidate(
        video_id=clean_string(row.get("id")),
        username=clean_string(row.get("username")),
        raw=row,
        metrics=metrics,
        first_seen_index=index,
        score=(*quality_key(metrics), -index),
    )


def _group_key(candidate: MetricCandidate) -> str | tuple[str, int]:
    # Rows without an id carry no identity, so each stays on its own.
    if candidate.video_id is None:
        return ("__missing_video_id__", candidate.first_seen_index)
    return candidate.video_id


def _conflict(group: Sequence[MetricCandidate]) -> tuple[bool, int]:
    gmv = [c.metrics.gmv_cents or 0 for c in group]
    views = [c.metrics.views or 0 for c in group]
    items = [c.metrics.items_sold or 0 for c in group]
    discrepancy = max(gmv) - min(gmv)
    conflicting = discrepancy > 0 or max(views) != min(views) or max(items) != min(items)
    return conflicting, discrepancy


def dedupe_rows(rows: Sequence[RawRow]) -> DedupeResult:
    grouped: dict[str | tuple[str, int], list[MetricCandidate]] = defaultdict(list)
    for index, row in enumerate(rows):
        candidate = build_candidate(row, index)
        grouped[_group_key(candidate)].append(candidate)

    stats = DedupeStats(total_rows=len(rows))
    canonical: list[CanonicalRow] = []
    for group in grouped.values():
        canonical.append(max(group, key=lambda c: c.score))
        if len(group) < 2:
            continue
        stats.duplicate_rows += len(group) - 1
        stats.duplicate_video_count += 1
        conflicting, discrepancy = _conflict(group)
        if conflicting:
            stats.conflict_video_count += 1
            stats.max_gmv_discrepancy_cents = max(stats.max_gmv_discrepancy_cents, discrepancy)

    canonical.sort(key=lambda c: c.first_seen_index)
    stats.canonical_rows = len(canonical)
    return DedupeResult(canonical_rows=canonical, stats=stats)


def merge_window_rows(per_window: Iterable[Sequence[CanonicalRow]]) -> DedupeResult:
    """Re-dedupe the union of each window's winners into one all-time pick per video."""
    merged = [row.raw for rows in per_window for row in rows]
    return dedupe_rows(merged)


def summarize(stats: Iterable[DedupeStats]) -> tuple[int, int, int]:
    """Totals across windows: duplicate rows, conflicting videos, max GMV discrepancy."""
    duplicate_rows = conflict_videos = max_gmv = 0
    for item in stats:
        duplicate_rows += item.duplicate_rows
        conflict_videos += item.conflict_video_count
        max_gmv = max(max_gmv, item.max_gmv_discrepancy_cents)
    return duplicate_rows, conflict_videos, max_gmv
