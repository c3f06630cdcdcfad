"""Errors raised by the platform API client."""
from typing import Optional


class PlatformError(Exception):
    """Base class for platform API failures."""


class PlatformRequestError(PlatformError):
    """Request never got a response (connect error, timeout, reset)."""


class PlatformResponseError(PlatformError):
    """Platform answered with a non-2xx status."""

    def __init__(self, method: str, path: str, status_code: int, body: str = ""):
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"{method} {path} returned {status_code}: {body[:200]}")


class PlatformParseError(PlatformError):
    """Response body is not the JSON shape we expect."""

    def __init__(self, path: str, detail: str, body: Optional[str] = None):
        self.path = path
        self.body = body
        super().__init__(f"Unexpected response from {path}: {detail}")
