"""Exception hierarchy for tilesync.

All tilesync exceptions inherit from :class:`TileSyncError`, so callers can
catch any library error with a single ``except`` clause while still handling
specific failure modes.
"""

from __future__ import annotations


class TileSyncError(Exception):
    """Base exception for all tilesync errors."""


class ConfigError(TileSyncError):
    """Configuration loading or validation failure."""


class RemoteServiceError(TileSyncError):
    """Remote sync service call failed (transport, non-2xx status, or malformed body)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResultSetTooLargeError(RemoteServiceError):
    """Incremental delta exceeds the server threshold; the tile must be exported instead."""

    def __init__(self, message: str = "result set too large", *, status_code: int | None = 303) -> None:
        super().__init__(message, status_code=status_code)


class NegotiationError(TileSyncError):
    """Sync strategies could not be determined; the whole cycle is aborted."""


class IntegrityError(TileSyncError):
    """Downloaded snapshot does not match its manifest entry."""

    def __init__(self, message: str, *, expected: str, actual: str) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class StoreError(TileSyncError):
    """Local tile store operation failure."""
