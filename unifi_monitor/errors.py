"""Exception types raised by the monitor."""

from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base class for all monitor errors."""


class ConfigError(MonitorError):
    """Raised when required configuration (the webhook URL) is missing."""


class FetchError(MonitorError):
    """Raised when an HTTP request fails or returns an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseFormatError(MonitorError):
    """Upstream answered, but not with something we can read."""


class ParseError(ResponseFormatError):
    """Raised when the storefront homepage carries no build id."""


class DecodeError(ResponseFormatError):
    """Raised when a category listing has an unexpected JSON shape."""


class PersistError(MonitorError):
    """Raised when the known-products file cannot be read back or written."""


class NotifyError(MonitorError):
    """Raised when the webhook sink rejects or never accepts a notification."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "MonitorError",
    "ConfigError",
    "FetchError",
    "ResponseFormatError",
    "ParseError",
    "DecodeError",
    "PersistError",
    "NotifyError",
]
