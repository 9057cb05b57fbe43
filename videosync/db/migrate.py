"""Apply schema.sql to the configured database."""

from __future__ import annotations

import logging
import pathlib
import sys
from typing import Iterable

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from videosync.db.session import create_engine_from_env

logger = logging.getLogger(__name__)

SCHEMA_PATH = pathlib.Path(__file__).with_name("schema.sql")


def run_migrations(engine: Engine, schema: str | None = None) -> int:
    """Run every statement in one transaction; returns how many were applied."""
    statements = list(split_statements(SCHEMA_PATH.read_text() if schema is None else schema))
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))
    logger.info("Applied %s schema statements", len(statements))
    return len(statements)


def split_statements(sql: str) -> Iterable[str]:
    # Statements never embed ';' in literals, so a plain split is enough.
    body = "\n".join(
        line for line in sql.splitlines() if line.strip() and not line.lstrip().startswith("--")
    )
    for chunk in body.split(";"):
        if chunk.strip():
            yield chunk.strip() + ";"


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    engine = create_engine_from_env()
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        logger.error("Migration failed: %s", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
