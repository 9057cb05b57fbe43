"""Per-window snapshot persistence with quality-based overwrite decisions."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Literal, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError

from videosync.db.snapshots import SnapshotStore
from videosync.db.videos import VideoStore
from videosync.ingest.models import CanonicalRow, MetricSet, SnapshotStats
from videosync.logic.dedupe import compare_quality
from videosync.utils.events import EventPublisher

logger = logging.getLogger(__name__)

Decision = Literal["insert", "update", "skip"]


def snapshot_metrics(row: Mapping[str, Any]) -> MetricSet:
    return MetricSet(
        gmv_cents=row.get("gmv_cents"),
        views=row.get("views"),
        items_sold=row.get("items_sold"),
        gpm_cents=row.get("gpm_cents"),
        ctr=row.get("ctr"),
    )


def decide(candidate: Mapping[str, Any], existing: Mapping[str, Any] | None) -> Decision:
    if existing is None:
        return "insert"
    comparison = compare_quality(snapshot_metrics(candidate), snapshot_metrics(existing))
    if comparison == "gt":
        return "update"
    if comparison == "eq":
        # Equal metrics still win when the write fills in a missing video link.
        if existing.get("creator_video_id") is None and candidate.get("creator_video_id") is not None:
            return "update"
    return "skip"


class SnapshotPersister:
    def __init__(self, snapshots: SnapshotStore, videos: VideoStore, events: EventPublisher | None = None) -> None:
        self.snapshots = snapshots
        self.videos = videos
        self.events = events

    def persist_window(
        self,
        brand_id: int,
        window_days: int,
        canonical_rows: Sequence[CanonicalRow],
        video_lookup: Mapping[str, int],
        snapshot_date: date,
        source_run_id: str,
    ) -> SnapshotStats:
        stats = SnapshotStats()
        candidates: list[dict[str, Any]] = []
        for row in canonical_rows:
            if row.video_id is None:
                stats.skipped += 1
                continue
            try:
                candidate = self._build_row(brand_id, window_days, row, video_lookup, snapshot_date, source_run_id)
            except SQLAlchemyError as exc:
                stats.failed += 1
                logger.warning(
                    "Failed to look up video for snapshot (id=%s, window=%s): %s",
                    row.video_id,
                    window_days,
                    exc,
                )
                continue
            candidates.append(candidate)

        existing = self.snapshots.list_by_keys(
            brand_id,
            snapshot_date,
            window_days,
            sorted({row["external_video_id"] for row in candidates}),
        )
        to_write: list[tuple[Decision, dict[str, Any]]] = []
        for candidate in candidates:
            decision = decide(candidate, existing.get(candidate["external_video_id"]))
            if decision == "skip":
                stats.skipped += 1
            else:
                to_write.append((decision, candidate))
        self._write(to_write, stats)

        logger.info(
            "Video snapshot sync brand=%s window=%s date=%s inserted=%s updated=%s skipped=%s",
            brand_id,
            window_days,
            snapshot_date,
            stats.inserted,
            stats.updated,
            stats.skipped,
        )
        if self.events is not None:
            self.events.publish(
                brand_id,
                "snapshots",
                {
                    "window_days": window_days,
                    "snapshot_date": snapshot_date.isoformat(),
                    "inserted": stats.inserted,
                    "updated": stats.updated,
                    "skipped": stats.skipped,
                },
            )
        return stats

    def _write(self, rows: list[tuple[Decision, dict[str, Any]]], stats: SnapshotStats) -> None:
        try:
            self.snapshots.upsert_many([row for _, row in rows])
        except SQLAlchemyError as exc:
            logger.warning("Bulk snapshot upsert failed, retrying %s rows one by one: %s", len(rows), exc)
        else:
            for decision, _ in rows:
                _count(stats, decision)
            return
        for decision, row in rows:
            try:
                self.snapshots.upsert_many([row])
            except SQLAlchemyError as exc:
                stats.failed += 1
                logger.warning(
                    "Failed to persist snapshot (id=%s, window=%s): %s",
                    row["external_video_id"],
                    row["window_days"],
                    exc,
                )
                continue
            _count(stats, decision)

    def _build_row(
        self,
        brand_id: int,
        window_days: int,
        row: CanonicalRow,
        video_lookup: Mapping[str, int],
        snapshot_date: date,
        source_run_id: str,
    ) -> dict[str, Any]:
        creator_video_id = video_lookup.get(row.video_id)
        if creator_video_id is None:
            creator_video_id = self.videos.get_video_id(brand_id, row.video_id)
        metrics = row.metrics
        return {
            "brand_id": brand_id,
            "creator_video_id": creator_video_id,
            "external_video_id": row.video_id,
            "window_days": window_days,
            "snapshot_date": snapshot_date,
            "gmv_cents": metrics.gmv_cents or 0,
            "views": metrics.views or 0,
            "items_sold": metrics.items_sold or 0,
            "gpm_cents": metrics.gpm_cents,
            "ctr": metrics.ctr,
            "source_run_id": source_run_id,
            "raw_payload": dict(row.raw),
        }


def _count(stats: SnapshotStats, decision: Decision) -> None:
    if decision == "insert":
        stats.inserted += 1
    else:
        stats.updated += 1
