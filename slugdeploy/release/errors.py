"""Failures raised by the GitHub and Heroku release steps."""

from __future__ import annotations


class ReleaseError(Exception):
    """A release API call or the curl fallback failed.

    Args:
        message: Human-readable description of the failed step
        status_code: HTTP status code, when a response was received
        body: Truncated response body (or curl output) for diagnostics
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.body:
            parts.append(f"body={self.body}")
        return " | ".join(parts)
