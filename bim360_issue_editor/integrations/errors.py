"""
Errors raised by the BIM360 integration.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx


class BIM360Error(Exception):
    """Base class for failures talking to the remote service."""


class BIM360APIError(BIM360Error):
    """
    Raised when the remote service answers with a non-success status.

    Attributes:
        status_code: HTTP status returned by the service
        message: Human-readable error description
        response: Decoded response body, when there was one
    """

    def __init__(self, status_code: int, message: str, response: Any = None):
        self.status_code = status_code
        self.message = message
        self.response = response
        super().__init__(f"{status_code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        data: Dict[str, Any] = {"message": self.message, "status": self.status_code}
        if self.response is not None:
            data["response"] = self.response
        return data


class RateLimitedError(BIM360APIError):
    """HTTP 429 with the delay the service asked for."""

    def __init__(self, retry_after: float, message: str = "Too Many Requests", response: Any = None):
        self.retry_after = retry_after
        super().__init__(429, message, response)


def parse_retry_after(value: Optional[str], default: float = 1.0) -> float:
    """Seconds to wait from a ``Retry-After`` header value."""
    if value is None:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


def describe_error(exc: BaseException) -> Dict[str, Any]:
    """JSON-safe description of an exception for result ledgers."""
    if isinstance(exc, BIM360APIError):
        return exc.to_dict()
    if isinstance(exc, httpx.HTTPError):
        return {"message": f"{exc.__class__.__name__}: {exc}"}
    return {"message": str(exc) or exc.__class__.__name__}
