"""Error taxonomy for the unified calendar.

Window and filter problems are detected before any storage I/O and surface as
``ValidationError``. A request that reaches the core without an attached actor
raises ``AuthContextMissing``; it indicates an auth-middleware misconfiguration
and always fails closed. Storage failures in any source abort the whole
aggregation as ``SourceFetchFailure`` so partial timelines are never returned.
"""

from __future__ import annotations


class CalendarError(Exception):
    """Base class for unified-calendar errors."""


class ValidationError(CalendarError):
    """Raised for a malformed/inverted window or an unparseable filter value.

    ``field`` names the offending query parameter. The message never echoes
    the raw input back.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class AuthContextMissing(CalendarError):
    """Raised when no actor was attached to the request.

    Should never happen behind a correctly configured auth layer.
    """

    def __init__(self) -> None:
        super().__init__("Authentication required")


class SourceFetchFailure(CalendarError):
    """Raised when one of the three source fetches fails."""

    def __init__(
        self,
        source: str,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.source = source
        self.cause = cause
        super().__init__(message or f"Failed to fetch {source} records")


class AggregationTimeout(SourceFetchFailure):
    """Raised when the concurrent fetches do not finish within the timeout."""

    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__("all", message=f"Timeline aggregation timed out after {timeout_s:g}s")
