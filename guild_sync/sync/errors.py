"""Error taxonomy for the sync pipeline.

Only UpstreamError, AuthError and DatabaseError ever reach a sync step;
ThrottledError and NotFoundError are consumed inside the gateway.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for sync pipeline errors."""


class AuthError(SyncError):
    """Raised when the client-credentials exchange fails."""


class UpstreamError(SyncError):
    """Raised when the Battle.net API returns an error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Battle.net API error {status_code}: {message}")


class ThrottledError(UpstreamError):
    """Raised on a 429 response (for internal use)."""

    def __init__(self, message: str = "Too Many Requests") -> None:
        super().__init__(429, message)


class NotFoundError(UpstreamError):
    """Raised on a 404 response (for internal use)."""

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(404, message)


class DatabaseError(SyncError):
    """Raised when a persistence call fails during a sync step."""


class ReconciliationInvariantViolation(SyncError):
    """Raised when a roster diff produces overlapping outputs."""
