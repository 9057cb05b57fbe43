"""Bounded logging for events that can repeat thousands of times per run."""

from __future__ import annotations

import logging


class SampledLogger:
    """Logs the first ``head`` occurrences, then every ``every``-th one."""

    def __init__(self, logger: logging.Logger, *, head: int = 5, every: int = 50) -> None:
        self.logger = logger
        self.head = head
        self.every = every
        self.count = 0

    def warning(self, msg: str, *args: object) -> bool:
        self.count += 1
        if self.count <= self.head or self.count % self.every == 0:
            self.logger.warning(msg + " (occurrence %s)", *args, self.count)
            return True
        return False
