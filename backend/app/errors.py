"""Exception types raised across the trading core."""

from __future__ import annotations


class TradingError(Exception):
    """Base class for trading-core failures."""


class UpstreamUnavailableError(TradingError):
    """Raised when an exchange, resolution, or AI upstream cannot be reached."""


class InvalidSignalError(TradingError):
    """Raised when a signal falls outside price or size bounds."""


class RateLimitedError(UpstreamUnavailableError):
    """Raised when an upstream answers with HTTP 429."""


class AnalysisParseError(TradingError):
    """Raised when an AI payload cannot be interpreted at all."""


class OrderSubmissionError(TradingError):
    """Raised when the exchange rejects or fails to acknowledge an order."""


class UnknownStrategyError(LookupError):
    """Raised when the configured strategy name is not registered."""


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return True when ``exc`` represents an upstream rate-limit response."""

    if isinstance(exc, RateLimitedError):
        return True
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    if status == 429 or getattr(exc, "code", None) == 429:
        return True
    message = str(exc).lower()
    return "429" in message or "rate limit" in message


__all__ = [
    "AnalysisParseError",
    "InvalidSignalError",
    "OrderSubmissionError",
    "RateLimitedError",
    "TradingError",
    "UnknownStrategyError",
    "UpstreamUnavailableError",
    "is_rate_limit_error",
]
