"""Exception taxonomy for fatal capture failures."""

from __future__ import annotations

from typing import Any


class CaptureError(RuntimeError):
    """Fatal error that aborts a capture request."""

    default_details = "Check the capture service logs for more info"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.details = details if details is not None else self.default_details


class BrowserLaunchError(CaptureError):
    """Chromium could not be started."""


class NavigationError(CaptureError):
    """The target URL failed to load (timeout, DNS, TLS, HTTP error)."""

    def __init__(self, url: str, message: str, *, status: int | None = None) -> None:
        super().__init__(f"Navigation to {url} failed: {message}", details={"url": url, "status": status})
        self.url = url
        self.status = status


class ViewportValidationError(ValueError):
    """Malformed viewport payload received at the HTTP or CLI boundary."""
