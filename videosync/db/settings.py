"""Per-brand settings rows: rate-limit cooldown state and last import time."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import text

from videosync.utils.dates import parse_timestamp, utc_now

LAST_RATE_LIMITED_AT = "videos_last_rate_limited_at"
RATE_LIMIT_STREAK = "videos_rate_limit_streak"
LAST_IMPORT_AT = "videos_last_import_at"


class SettingsStore:
    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.engine = engine
        self.clock = clock

    def get_last_rate_limited_at(self, brand_id: int) -> datetime | None:
        return self._get_datetime(brand_id, LAST_RATE_LIMITED_AT)

    def get_rate_limit_streak(self, brand_id: int) -> int:
        with self.engine.connect() as conn:
            value = self._get(conn, brand_id, RATE_LIMIT_STREAK)
        return int(value) if value else 0

    def record_rate_limit(self, brand_id: int) -> int:
        """Stamp the rate limit and bump the consecutive streak, returning the new streak."""
        now = self.clock()
        with self.engine.begin() as conn:
            current = self._get(conn, brand_id, RATE_LIMIT_STREAK)
            streak = (int(current) if current else 0) + 1
            self._put(conn, brand_id, LAST_RATE_LIMITED_AT, now.isoformat())
            self._put(conn, brand_id, RATE_LIMIT_STREAK, str(streak))
        return streak

    def reset_rate_limit_streak(self, brand_id: int) -> None:
        with self.engine.begin() as conn:
            self._put(conn, brand_id, RATE_LIMIT_STREAK, "0")

    def get_videos_last_import_at(self, brand_id: int) -> datetime | None:
        return self._get_datetime(brand_id, LAST_IMPORT_AT)

    def update_videos_last_import_at(self, brand_id: int) -> None:
        with self.engine.begin() as conn:
            self._put(conn, brand_id, LAST_IMPORT_AT, self.clock().isoformat())

    def _get_datetime(self, brand_id: int, key: str) -> datetime | None:
        with self.engine.connect() as conn:
            value = self._get(conn, brand_id, key)
        return parse_timestamp(value) if value else None

    @staticmethod
    def _get(conn: Connection, brand_id: int, key: str) -> str | None:
        return conn.execute(
            text("SELECT value FROM system_settings WHERE brand_id = :brand_id AND key = :key"),
            {"brand_id": brand_id, "key": key},
        ).scalar_one_or_none()

    @staticmethod
    def _put(conn: Connection, brand_id: int, key: str, value: str) -> None:
        conn.execute(
            text(
                """
                INSERT INTO system_settings (brand_id, key, value)
                VALUES (:brand_id, :key, :value)
                ON CONFLICT (brand_id, key) DO UPDATE SET value = EXCLUDED.value
                """
            ),
            {"brand_id": brand_id, "key": key, "value": value},
        )
