"""Error taxonomy for the video sync pipeline."""

from __future__ import annotations

from typing import Any, Sequence


class FetchError(RuntimeError):
    """Raised when the analytics fetch cannot produce a trustworthy row set."""


class RateLimited(FetchError):
    def __init__(self, message: str = "analytics API rate limited") -> None:
        super().__init__(message)


class ServerError(FetchError):
    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or f"analytics API server error {code}")


class TransientNetworkError(FetchError):
    pass


class ClientError(FetchError):
    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or f"analytics API rejected request ({code})")


class UnexpectedResponseShape(FetchError):
    def __init__(self, payload: Any, *, limit: int = 200) -> None:
        self.sample = repr(payload)[:limit]
        super().__init__(f"unexpected analytics response: {self.sample}")


class RowValidationError(ValueError):
    def __init__(self, missing_fields: Sequence[str]) -> None:
        self.missing_fields = tuple(missing_fields)
        super().__init__(f"missing required fields: {', '.join(self.missing_fields)}")


class CreatorConflict(RuntimeError):
    """A creator with the same username was written concurrently."""


class CreatorResolutionError(RuntimeError):
    pass


class SyncError(RuntimeError):
    def __init__(self, reason: BaseException | str) -> None:
        self.reason = reason
        super().__init__(f"video sync failed: {reason}")


class Snoozed(Exception):
    """The run was deferred; the caller should retry after ``seconds``."""

    def __init__(self, seconds: int, reason: str) -> None:
        self.seconds = seconds
        self.reason = reason
        super().__init__(f"video sync snoozed for {seconds}s ({reason})")
