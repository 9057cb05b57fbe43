"""Creator store backed by the shared creators tables."""

from __future__ import annotations

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import text

from videosync.ingest.errors import CreatorConflict
from videosync.ingest.models import Creator


class CreatorStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_creator_by_any_username(self, username: str) -> Creator | None:
        """Case-insensitive match on the current username, then on past usernames."""
        needle = username.strip().lower()
        if not needle:
            return None
        with self.engine.connect() as conn:
            creator_id = conn.execute(
                text("SELECT id FROM creators WHERE LOWER(username) = :username ORDER BY id LIMIT 1"),
                {"username": needle},
            ).scalar_one_or_none()
            if creator_id is None:
                creator_id = conn.execute(
                    text(
                        """
                        SELECT creator_id FROM creator_previous_usernames
                        WHERE LOWER(username) = :username
                        ORDER BY creator_id
                        LIMIT 1
                        """
                    ),
                    {"username": needle},
                ).scalar_one_or_none()
            if creator_id is None:
                return None
            return self._load(conn, int(creator_id))

    def create_creator(self, username: str) -> Creator:
        try:
            with self.engine.begin() as conn:
                creator_id = conn.execute(
                    text("INSERT INTO creators (username) VALUES (:username) RETURNING id"),
                    {"username": username},
                ).scalar_one()
        except IntegrityError as exc:
            raise CreatorConflict(f"creator {username!r} already exists") from exc
        return Creator(id=int(creator_id), username=username)

    def ensure_brand_membership(self, creator_id: int, brand_id: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO brand_creators (brand_id, creator_id)
                    VALUES (:brand_id, :creator_id)
                    ON CONFLICT (brand_id, creator_id) DO NOTHING
                    """
                ),
                {"brand_id": brand_id, "creator_id": creator_id},
            )

    def _load(self, conn: Connection, creator_id: int) -> Creator | None:
        username = conn.execute(
            text("SELECT username FROM creators WHERE id = :id"), {"id": creator_id}
        ).scalar_one_or_none()
        if username is None:
            return None
        previous = conn.execute(
            text(
                "SELECT username FROM creator_previous_usernames WHERE creator_id = :id ORDER BY username"
            ),
            {"id": creator_id},
        ).scalars()
        return Creator(id=creator_id, username=username, previous_usernames=list(previous))
