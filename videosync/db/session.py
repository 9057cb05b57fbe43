"""Database engine helpers."""

from __future__ import annotations

import json
import os
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine


DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/videosync"


def create_engine_from_env() -> Engine:
    """Create an engine using the DATABASE_URL environment variable."""
    url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    return create_engine(url, pool_pre_ping=True, future=True)


def json_placeholder(conn: Connection, name: str) -> str:
    if conn.dialect.name == "sqlite":
        return f":{name}"
    return f"CAST(:{name} AS JSONB)"


def json_value(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str)
