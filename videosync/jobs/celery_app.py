"""Celery wiring for brand video syncs."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from celery import Celery

from videosync.ingest import load_brands
from videosync.ingest.errors import Snoozed, SyncError
from videosync.ingest.models import Brand

logger = logging.getLogger(__name__)

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("videosync", broker=broker_url, backend=backend_url)
celery_app.conf.timezone = "UTC"


def find_brand(brand_id: int) -> Brand:
    for brand in load_brands():
        if brand.id == brand_id:
            return brand
    raise LookupError(f"unknown brand {brand_id}")


def run_task(task: Any, brand_id: int, runner: Any = None) -> dict[str, Any]:
    """Run one sync for ``task`` and map the outcome onto Celery semantics.

    A snooze re-enqueues the task after the requested delay without using up
    retries; fatal sync errors go through ``task.retry``.
    """
    if runner is None:
        from videosync.jobs.video_sync import run_sync as runner

    brand = find_brand(brand_id)
    try:
        stats = asyncio.run(runner(brand, source_run_id=f"celery-{task.request.id}"))
    except Snoozed as exc:
        logger.info("Re-enqueueing video sync for brand %s in %ss (%s)", brand_id, exc.seconds, exc.reason)
        task.apply_async(args=(brand_id,), countdown=exc.seconds)
        return {"status": "snoozed", "reason": exc.reason, "seconds": exc.seconds}
    except SyncError as exc:
        raise task.retry(exc=exc)
    return {
        "status": "partial" if stats.partial else "completed",
        "videos_synced": stats.videos_synced,
        "row_errors": stats.row_errors,
    }


@celery_app.task(bind=True, name="videosync.jobs.sync_brand_videos", max_retries=3, default_retry_delay=300)
def sync_brand_videos(self, brand_id: int):  # pragma: no cover - executed by worker
    return run_task(self, brand_id)
