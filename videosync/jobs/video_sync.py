"""Video performance sync job orchestration."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from videosync.db.catalog import CatalogStore
from videosync.db.creators import CreatorStore
from videosync.db.session import create_engine_from_env
from videosync.db.settings import SettingsStore
from videosync.db.snapshots import SnapshotStore
from videosync.db.videos import VideoStore
from videosync.ingest import load_brands
from videosync.ingest.analytics import AnalyticsClient
from videosync.ingest.creators import CreatorResolver
from videosync.ingest.errors import FetchError, RateLimited, Snoozed, SyncError
from videosync.ingest.models import Brand, CanonicalRow, SyncStats, SyncTuning
from videosync.ingest.snapshots import SnapshotPersister
from videosync.ingest.videos import CanonicalVideoUpserter, ProductLinker
from videosync.logic.backoff import backoff_seconds, cooldown_remaining
from videosync.logic.dedupe import dedupe_rows, summarize
from videosync.utils.dates import utc_now, window_bounds
from videosync.utils.events import EventPublisher, publisher_from_env

logger = logging.getLogger(__name__)


class VideoSync:
    def __init__(
        self,
        engine: Engine,
        client: AnalyticsClient,
        *,
        tuning: SyncTuning | None = None,
        settings: SettingsStore | None = None,
        events: EventPublisher | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.engine = engine
        self.client = client
        self.tuning = tuning or client.tuning
        self.clock = clock
        self.settings = settings or SettingsStore(engine, clock=clock)
        self.events = events or EventPublisher()

    async def run_sync(
        self,
        brand: Brand,
        windows: Sequence[int] | None = None,
        *,
        snapshot_date: date | None = None,
        source_run_id: str | None = None,
    ) -> SyncStats:
        """Fetch, reconcile and persist every window for one brand.

        Raises ``Snoozed`` when the brand is cooling down or was rate limited,
        and ``SyncError`` when the fetch cannot be trusted or the database
        fails. Fetch failures and snoozes write nothing.
        """
        now = self.clock()
        windows = tuple(windows or self.tuning.windows)
        snapshot_date = snapshot_date or now.date()
        source_run_id = source_run_id or f"manual-{int(now.timestamp())}"

        try:
            last_rate_limited_at = self.settings.get_last_rate_limited_at(brand.id)
        except SQLAlchemyError as exc:
            raise self._fail(brand, exc) from exc
        remaining = cooldown_remaining(last_rate_limited_at, now, self.tuning.cooldown_seconds)
        if remaining:
            logger.info("Brand %s is cooling down after a rate limit; skipping for %ss", brand.id, remaining)
            self.events.publish(brand.id, "snoozed", {"reason": "cooldown", "seconds": remaining})
            raise Snoozed(remaining, "cooldown")

        self.events.publish(
            brand.id,
            "started",
            {"windows": list(windows), "snapshot_date": snapshot_date.isoformat(), "source_run_id": source_run_id},
        )
        stats = SyncStats(brand_id=brand.id, source_run_id=source_run_id, snapshot_date=snapshot_date)

        per_window: dict[int, list[CanonicalRow]] = {}
        try:
            for window_days in windows:
                start_date, end_date = window_bounds(window_days, snapshot_date)
                rows = await self.client.fetch_window(brand, start_date, end_date)
                result = dedupe_rows(rows)
                per_window[window_days] = result.canonical_rows
                stats.dedupe_stats[window_days] = result.stats
                logger.info(
                    "Video dedupe brand=%s window=%s fetched=%s canonical=%s duplicates=%s conflicts=%s "
                    "max_gmv_discrepancy_cents=%s",
                    brand.id,
                    window_days,
                    result.stats.total_rows,
                    result.stats.canonical_rows,
                    result.stats.duplicate_rows,
                    result.stats.conflict_video_count,
                    result.stats.max_gmv_discrepancy_cents,
                )
        except RateLimited as exc:
            try:
                streak = self.settings.record_rate_limit(brand.id)
            except SQLAlchemyError as db_exc:
                raise self._fail(brand, db_exc) from db_exc
            delay = backoff_seconds(
                streak,
                initial=self.tuning.backoff_initial_seconds,
                maximum=self.tuning.backoff_max_seconds,
            )
            logger.warning("Brand %s rate limited (streak=%s); snoozing for %ss", brand.id, streak, delay)
            self.events.publish(
                brand.id, "snoozed", {"reason": "rate_limited", "seconds": delay, "streak": streak}
            )
            raise Snoozed(delay, "rate_limited") from exc
        except FetchError as exc:
            raise self._fail(brand, exc) from exc

        try:
            self._persist(brand, per_window, stats)
            self.settings.reset_rate_limit_streak(brand.id)
            self.settings.update_videos_last_import_at(brand.id)
        except SQLAlchemyError as exc:
            raise self._fail(brand, exc) from exc

        logger.info(
            "Video sync complete brand=%s run=%s videos=%s created=%s matched=%s skipped=%s errors=%s",
            brand.id,
            source_run_id,
            stats.videos_synced,
            stats.creators_created,
            stats.creators_matched,
            stats.missing_required_fields,
            stats.row_errors,
        )
        self.events.publish(brand.id, "completed", stats_payload(stats))
        return stats

    def _fail(self, brand: Brand, exc: Exception) -> SyncError:
        logger.error("Video sync failed for brand %s: %s", brand.id, exc)
        self.events.publish(brand.id, "failed", {"reason": str(exc), "error": type(exc).__name__})
        return SyncError(exc)

    def _persist(self, brand: Brand, per_window: dict[int, list[CanonicalRow]], stats: SyncStats) -> None:
        videos = VideoStore(self.engine)
        upserter = CanonicalVideoUpserter(
            videos,
            CreatorResolver(CreatorStore(self.engine)),
            ProductLinker(CatalogStore(self.engine), videos),
        )
        persister = SnapshotPersister(SnapshotStore(self.engine), videos, self.events)

        upserted, lookup = upserter.upsert_all_time(brand.id, per_window)
        stats.videos_synced = upserted.videos_synced
        stats.creators_created = upserted.creators_created
        stats.creators_matched = upserted.creators_matched
        stats.missing_required_fields = upserted.missing_required_fields
        stats.row_errors = upserted.row_errors

        for window_days, rows in per_window.items():
            stats.snapshot_stats[window_days] = persister.persist_window(
                brand.id, window_days, rows, lookup, stats.snapshot_date, stats.source_run_id
            )
        stats.row_errors += sum(s.failed for s in stats.snapshot_stats.values())
        stats.duplicate_rows, stats.conflict_video_count, stats.max_conflict_gmv_cents = summarize(
            stats.dedupe_stats.values()
        )


def stats_payload(stats: SyncStats) -> dict[str, Any]:
    payload = asdict(stats)
    payload["snapshot_date"] = stats.snapshot_date.isoformat()
    payload["partial"] = stats.partial
    return payload


async def run_sync(
    brand: Brand,
    windows: Sequence[int] | None = None,
    *,
    engine: Engine | None = None,
    snapshot_date: date | None = None,
    source_run_id: str | None = None,
) -> SyncStats:
    """Run one brand's sync with clients and stores built from the environment."""
    load_dotenv()
    engine = engine or create_engine_from_env()
    tuning = SyncTuning.from_env()
    client = AnalyticsClient(tuning=tuning)
    try:
        job = VideoSync(engine, client, tuning=tuning, events=publisher_from_env())
        return await job.run_sync(
            brand, windows, snapshot_date=snapshot_date, source_run_id=source_run_id
        )
    finally:
        await client.close()


async def run_all() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    for brand in load_brands():
        try:
            await run_sync(brand, engine=engine)
        except Snoozed as exc:
            logger.warning("Skipping %s: %s", brand.name, exc)
        except SyncError as exc:
            logger.warning("Video sync failed for %s: %s", brand.name, exc)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_all())
