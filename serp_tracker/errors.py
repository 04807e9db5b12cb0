"""
Exception types raised by the SERP rank-tracking engine.

Fatal errors (RequestValidationError, InitializationError) propagate out of
SessionOrchestrator.run(). Everything else is caught per keyword and
recorded in the session's error log.
"""

from typing import Optional


class SerpTrackerError(Exception):
    """Base class for all rank-tracker errors."""


class RequestValidationError(SerpTrackerError, ValueError):
    """Tracking request failed validation. Raised before any browser launch."""


class InitializationError(SerpTrackerError):
    """Browser launch or mandatory proxy acquisition failed irrecoverably."""


class NavigationError(SerpTrackerError):
    """Navigation to a search URL failed."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} (url: {url})")
        self.url = url


class NavigationTimeoutError(NavigationError):
    """Navigation did not complete within the navigation timeout."""

    def __init__(self, url: str, reason: Optional[str] = None):
        message = "Navigation timed out"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(url, message)
        self.reason = reason


class BlockedResponseError(NavigationError):
    """Search engine answered with a non-OK status (rate limit, block page)."""

    def __init__(self, url: str, status: Optional[int]):
        super().__init__(url, f"Search engine returned status {status if status is not None else 'unknown'}")
        self.status = status


class PageNotInitializedError(SerpTrackerError):
    """A keyword was attempted without a live browser page."""


class ExtractionError(SerpTrackerError):
    """No organic results could be extracted from a loaded SERP."""
