"""Per-window daily video metric snapshots."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Sequence

from sqlalchemy import bindparam
from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from videosync.db.session import json_placeholder, json_value
from videosync.db.videos import numeric_value

SNAPSHOT_FIELDS = (
    "brand_id",
    "creator_video_id",
    "external_video_id",
    "window_days",
    "snapshot_date",
    "gmv_cents",
    "views",
    "items_sold",
    "gpm_cents",
    "ctr",
    "source_run_id",
    "raw_payload",
)
KEY_FIELDS = ("brand_id", "external_video_id", "window_days", "snapshot_date")


class SnapshotStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def list_by_keys(
        self, brand_id: int, snapshot_date: date, window_days: int, external_video_ids: Sequence[str]
    ) -> dict[str, dict[str, Any]]:
        """Existing snapshots for one brand/window/day, keyed by external video id."""
        if not external_video_ids:
            return {}
        query = text(
            """
            SELECT external_video_id, creator_video_id, gmv_cents, views, items_sold, gpm_cents, ctr
            FROM video_metric_snapshots
            WHERE brand_id = :brand_id
              AND snapshot_date = :snapshot_date
              AND window_days = :window_days
              AND external_video_id IN :external_video_ids
            """
        ).bindparams(bindparam("external_video_ids", expanding=True))
        with self.engine.connect() as conn:
            result = conn.execute(
                query,
                {
                    "brand_id": brand_id,
                    "snapshot_date": snapshot_date,
                    "window_days": window_days,
                    "external_video_ids": list(external_video_ids),
                },
            )
            return {row["external_video_id"]: dict(row) for row in result.mappings()}

    def upsert_many(self, rows: Sequence[Mapping[str, Any]]) -> int:
        if not rows:
            return 0
        params = [
            {
                **{name: row.get(name) for name in SNAPSHOT_FIELDS},
                "ctr": numeric_value(row.get("ctr")),
                "raw_payload": json_value(row.get("raw_payload")),
            }
            for row in rows
        ]
        with self.engine.begin() as conn:
            placeholders = ", ".join(
                json_placeholder(conn, name) if name == "raw_payload" else f":{name}"
                for name in SNAPSHOT_FIELDS
            )
            updates = ",\n".join(
                f"{name} = EXCLUDED.{name}" for name in SNAPSHOT_FIELDS if name not in KEY_FIELDS
            )
            conn.execute(
                text(
                    f"""
                    INSERT INTO video_metric_snapshots ({", ".join(SNAPSHOT_FIELDS)})
                    VALUES ({placeholders})
                    ON CONFLICT ({", ".join(KEY_FIELDS)}) DO UPDATE SET
                    {updates}
                    """
                ),
                params,
            )
        return len(params)
