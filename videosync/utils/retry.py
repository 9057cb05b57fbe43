"""Retry helpers for bounded, exponentially backed-off calls."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_EXCEPTIONS: tuple[type[BaseException], ...] = (OSError, asyncio.TimeoutError)


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay before retrying after failed ``attempt`` (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def retry_async(
    func: Callable[..., Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = RETRY_EXCEPTIONS,
    label: str | None = None,
) -> Callable[..., Awaitable[T]]:
    name = label or getattr(func, "__name__", "call")

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> T:
        attempt = 1
        while True:
            try:
                return await func(*args, **kwargs)
            except retry_on as exc:
                if attempt >= attempts:
                    raise
                delay = backoff_delay(base_delay, attempt)
                logger.warning(
                    "Retrying %s in %.3fs attempt=%s reason=%r", name, delay, attempt, exc
                )
                await asyncio.sleep(delay)
                attempt += 1

    return wrapper
