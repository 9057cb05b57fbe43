"""Resolve analytics usernames to stored creators."""

from __future__ import annotations

import logging

from videosync.db.creators import CreatorStore
from videosync.ingest.errors import CreatorConflict, CreatorResolutionError
from videosync.ingest.models import ResolvedCreator

logger = logging.getLogger(__name__)

MATCHED = "matched"
CREATED = "created"


class CreatorResolver:
    def __init__(self, store: CreatorStore) -> None:
        self.store = store

    def resolve_or_create(self, brand_id: int, username: str) -> ResolvedCreator:
        """Match on current or past usernames, creating the creator on a genuine miss.

        The creator is always added to ``brand_id``; membership is never removed here.
        """
        if not username or not username.strip():
            raise ValueError("username must not be blank")
        creator = self.store.find_creator_by_any_username(username)
        status = MATCHED
        if creator is None:
            try:
                creator = self.store.create_creator(username.strip().lower())
                status = CREATED
            except CreatorConflict:
                # Another writer created it between our lookup and insert.
                creator = self.store.find_creator_by_any_username(username)
                if creator is None:
                    raise CreatorResolutionError(
                        f"creator {username!r} conflicted on create but was not found"
                    ) from None
                logger.info("Creator %s created concurrently; using existing id=%s", username, creator.id)
        self.store.ensure_brand_membership(creator.id, brand_id)
        return ResolvedCreator(creator=creator, status=status)
