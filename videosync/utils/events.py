"""Lifecycle notifications for sync runs."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Mapping

import redis

logger = logging.getLogger(__name__)


def channel_for(brand_id: int) -> str:
    return f"video:sync:{brand_id}"


class EventPublisher:
    """Writes events to the log; subclasses forward them elsewhere."""

    def publish(self, brand_id: int, event: str, payload: Mapping[str, Any] | None = None) -> None:
        logger.info("event %s %s %s", channel_for(brand_id), event, dict(payload or {}))


class RedisEventPublisher(EventPublisher):
    def __init__(self, url: str | None = None, *, client: redis.Redis | None = None) -> None:
        self.client = client or redis.Redis.from_url(
            url or os.environ.get("REDIS_URL", "redis://redis:6379/0")
        )

    def publish(self, brand_id: int, event: str, payload: Mapping[str, Any] | None = None) -> None:
        message = json.dumps({"event": event, **dict(payload or {})}, default=str)
        try:
            self.client.publish(channel_for(brand_id), message)
        except redis.RedisError as exc:
            # Observers are optional; a dead channel must not fail the sync.
            logger.warning("Failed to publish %s for brand %s: %s", event, brand_id, exc)


def publisher_from_env() -> EventPublisher:
    if os.environ.get("EVENT_PUBLISHER", "log") == "redis":
        return RedisEventPublisher()
    return EventPublisher()
