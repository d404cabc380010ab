"""
Error types raised by the caching and aggregation core.

Cache misses and unknown type ids are never errors; these exceptions cover
the cases a caller has to report.
"""
from typing import Optional


class FixtureDeskError(Exception):
    """Base class for application errors."""


class UpstreamError(FixtureDeskError):
    """A SportMonks request failed (network error or non-2xx response)."""

    def __init__(self, endpoint: str, detail: str, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.detail = detail
        self.status_code = status_code
        status = f" [{status_code}]" if status_code else ""
        super().__init__(f"SportMonks request to {endpoint} failed{status}: {detail}")


class SeasonNotFoundError(FixtureDeskError):
    """The requested season does not exist upstream."""

    def __init__(self, season_id: int):
        self.season_id = season_id
        super().__init__(f"Season {season_id} not found")


class LiveFeedError(FixtureDeskError):
    """One of the live feeds could not be fetched; the overlay was abandoned."""

    def __init__(self, feed: str, cause: Exception):
        self.feed = feed
        self.cause = cause
        super().__init__(f"Live feed '{feed}' unavailable: {cause}")


class ResyncError(FixtureDeskError):
    """Reference type resync aborted; the previous snapshot is still in use."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Type resync failed during {stage}: {cause}")
