"""Request pacing for a single rate-limited API."""

from __future__ import annotations

import asyncio
import time


class RequestPacer:
    """Keeps consecutive requests at least ``1 / rate`` seconds apart.

    A rate of zero or less disables pacing.
    """

    def __init__(self, *, rate: float = 2.0) -> None:
        self.rate = rate
        self._lock = asyncio.Lock()
        self._last_request = 0.0

    async def wait(self) -> None:
        if self.rate <= 0:
            return
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            min_interval = 1.0 / self.rate
            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)
            self._last_request = time.monotonic()
