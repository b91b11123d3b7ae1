"""Custom exceptions for the portfolio tracker.

Provider errors are raised inside the market data layer and converted to
degraded (synthetic) results before they reach analysis callers.
"""


class TrackerError(Exception):
    """Base exception for all tracker errors."""


class ProviderError(TrackerError):
    """Raised when the market-data provider returns an unusable response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitedError(ProviderError):
    """Raised on HTTP 429 from the provider."""


class AssetNotFoundError(ProviderError):
    """Raised on HTTP 404 (unknown asset id)."""


class MalformedPayloadError(ProviderError):
    """Raised when a 200 response cannot be parsed into the expected shape."""


class RateGateDenied(TrackerError):
    """Raised when the rate gate refuses a call (intensive lock or cancellation)."""
