"""Canonical creator video rows and their product links."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from videosync.db.session import json_placeholder, json_value

VIDEO_FIELDS = (
    "creator_id",
    "title",
    "video_url",
    "posted_at",
    "gmv_cents",
    "gpm_cents",
    "items_sold",
    "impressions",
    "ctr",
    "duration",
    "hash_tags",
    "likes",
    "comments",
    "shares",
    "affiliate_orders",
)


def numeric_value(value: Decimal | float | None) -> float | None:
    return float(value) if value is not None else None


class VideoStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def upsert_video(self, brand_id: int, external_video_id: str, attrs: Mapping[str, Any]) -> int:
        """Insert or fully overwrite the tracked fields for ``(brand_id, external_video_id)``."""
        params = {name: attrs.get(name) for name in VIDEO_FIELDS}
        params["ctr"] = numeric_value(params["ctr"])
        params["hash_tags"] = json_value(params["hash_tags"])
        params["brand_id"] = brand_id
        params["external_video_id"] = external_video_id
        with self.engine.begin() as conn:
            placeholders = ", ".join(
                json_placeholder(conn, name) if name == "hash_tags" else f":{name}" for name in VIDEO_FIELDS
            )
            updates = ",\n".join(f"{name} = EXCLUDED.{name}" for name in VIDEO_FIELDS)
            video_id = conn.execute(
                text(
                    f"""
                    INSERT INTO creator_videos (brand_id, external_video_id, {", ".join(VIDEO_FIELDS)})
                    VALUES (:brand_id, :external_video_id, {placeholders})
                    ON CONFLICT (brand_id, external_video_id) DO UPDATE SET
                    {updates}
                    RETURNING id
                    """
                ),
                params,
            ).scalar_one()
        return int(video_id)

    def get_video_id(self, brand_id: int, external_video_id: str) -> int | None:
        with self.engine.connect() as conn:
            video_id = conn.execute(
                text(
                    """
                    SELECT id FROM creator_videos
                    WHERE brand_id = :brand_id AND external_video_id = :external_video_id
                    """
                ),
                {"brand_id": brand_id, "external_video_id": external_video_id},
            ).scalar_one_or_none()
        return int(video_id) if video_id is not None else None

    def add_product_to_video(
        self, creator_video_id: int, product_id: int | None, external_product_id: str
    ) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO creator_video_products (creator_video_id, product_id, external_product_id)
                    VALUES (:creator_video_id, :product_id, :external_product_id)
                    ON CONFLICT (creator_video_id, external_product_id) DO UPDATE SET
                      product_id = COALESCE(EXCLUDED.product_id, creator_video_products.product_id)
                    """
                ),
                {
                    "creator_video_id": creator_video_id,
                    "product_id": product_id,
                    "external_product_id": external_product_id,
                },
            )
