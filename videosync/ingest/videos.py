"""All-time canonical video upserts and product links."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError

from videosync.db.catalog import CatalogStore
from videosync.db.videos import VideoStore
from videosync.ingest.creators import CREATED, CreatorResolver
from videosync.ingest.errors import CreatorResolutionError, RowValidationError
from videosync.ingest.models import CanonicalRow, UpsertStats
from videosync.ingest.parsers import clean_string, parse_integer
from videosync.logic.dedupe import merge_window_rows
from videosync.utils.log_sampling import SampledLogger

logger = logging.getLogger(__name__)


def video_url(username: str, video_id: str) -> str:
    return f"https://www.tiktok.com/@{username}/video/{video_id}"


def build_video_attrs(creator_id: int, row: CanonicalRow) -> dict[str, Any]:
    raw = row.raw
    metrics = row.metrics
    return {
        "creator_id": creator_id,
        "title": raw.get("title"),
        "video_url": video_url(row.username, row.video_id),
        "posted_at": metrics.posted_at,
        "gmv_cents": metrics.gmv_cents,
        "gpm_cents": metrics.gpm_cents,
        "items_sold": metrics.items_sold,
        "impressions": metrics.views,
        "ctr": metrics.ctr,
        "duration": metrics.duration,
        "hash_tags": metrics.hash_tags,
        "likes": parse_integer(raw.get("likes"), default=0),
        "comments": parse_integer(raw.get("comments"), default=0),
        "shares": parse_integer(raw.get("shares"), default=0),
        "affiliate_orders": parse_integer(raw.get("affiliate_orders"), default=0),
    }


def validate_row(row: CanonicalRow) -> None:
    missing = []
    if row.username is None:
        missing.append("username")
    if row.video_id is None:
        missing.append("video_id")
    if missing:
        raise RowValidationError(missing)


class ProductLinker:
    def __init__(self, catalog: CatalogStore, videos: VideoStore) -> None:
        self.catalog = catalog
        self.videos = videos

    def link_products(self, brand_id: int, creator_video_id: int, products: Any) -> int:
        """Best-effort: record every referenced product, resolved locally when possible."""
        if not isinstance(products, list):
            return 0
        linked = 0
        for product in products:
            external_id = clean_string(product.get("id")) if isinstance(product, Mapping) else None
            if external_id is None:
                continue
            try:
                product_id = self.catalog.find_product_by_external_id(brand_id, external_id)
                self.videos.add_product_to_video(creator_video_id, product_id, external_id)
            except SQLAlchemyError as exc:
                logger.warning(
                    "Failed to link product %s to video %s: %s", external_id, creator_video_id, exc
                )
                continue
            linked += 1
        return linked


class CanonicalVideoUpserter:
    def __init__(
        self,
        videos: VideoStore,
        resolver: CreatorResolver,
        linker: ProductLinker,
    ) -> None:
        self.videos = videos
        self.resolver = resolver
        self.linker = linker
        self._invalid = SampledLogger(logger)

    def upsert_all_time(
        self, brand_id: int, per_window: Mapping[int, Sequence[CanonicalRow]]
    ) -> tuple[UpsertStats, dict[str, int]]:
        """Upsert the best observation of every video across all windows.

        Returns the counters and a lookup of external video id to
        ``creator_videos.id`` for the rows written in this run.
        """
        # Windows keep their configured order so first-seen tie-breaks are reproducible.
        merged = merge_window_rows(per_window.values())
        stats = UpsertStats()
        lookup: dict[str, int] = {}
        for row in merged.canonical_rows:
            try:
                validate_row(row)
            except RowValidationError as exc:
                stats.missing_required_fields += 1
                self._invalid.warning(
                    "Skipping video row (id=%s, username=%s): %s", row.video_id, row.username, exc
                )
                continue
            try:
                resolved = self.resolver.resolve_or_create(brand_id, row.username)
                creator_video_id = self.videos.upsert_video(
                    brand_id, row.video_id, build_video_attrs(resolved.creator.id, row)
                )
            except (SQLAlchemyError, CreatorResolutionError) as exc:
                stats.row_errors += 1
                logger.warning(
                    "Failed to process canonical video (id=%s, username=%s): %s",
                    row.video_id,
                    row.username,
                    exc,
                )
                continue
            self.linker.link_products(brand_id, creator_video_id, row.raw.get("products"))
            lookup[row.video_id] = creator_video_id
            stats.videos_synced += 1
            if resolved.status == CREATED:
                stats.creators_created += 1
            else:
                stats.creators_matched += 1
        return stats, lookup
