"""Shared HTTPX plumbing for the release clients.

Provides client construction, header redaction for logs, and status checks
that turn failed responses into ``ReleaseError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from .. import __version__
from .errors import ReleaseError

logger = logging.getLogger(__name__)

USER_AGENT = f"slugdeploy/{__version__}"
DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=300.0, write=300.0)
REDACTED_HEADERS = ("authorization", "proxy-authorization")
BODY_SNIPPET_LIMIT = 2048


def build_client(
    base_url: str = "",
    *,
    headers: Mapping[str, str] | None = None,
    auth: httpx.Auth | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create a synchronous client; ``transport`` is the test seam."""
    return httpx.Client(
        base_url=base_url,
        headers={"User-Agent": USER_AGENT, **(headers or {})},
        auth=auth,
        timeout=DEFAULT_TIMEOUT,
        transport=transport,
    )


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy ``headers`` with credential values replaced for logging."""
    return {
        name: ("***REDACTED***" if name.lower() in REDACTED_HEADERS else value)
        for name, value in headers.items()
    }


def safe_snippet(content: bytes, limit: int = BODY_SNIPPET_LIMIT) -> str:
    if not content:
        return ""
    return content[:limit].decode("utf-8", errors="replace")


def check_response(response: httpx.Response, action: str) -> httpx.Response:
    """Return ``response`` unchanged, or raise ``ReleaseError`` for status >= 400."""
    logger.debug("%s returned %s", action, response.status_code)
    if response.status_code >= 400:
        raise ReleaseError(
            f"{action} failed with {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            body=safe_snippet(response.content),
        )
    return response


def response_json(response: httpx.Response, action: str) -> dict[str, object]:
    """Decode a JSON object body, raising ``ReleaseError`` on anything else."""
    try:
        data = response.json()
    except ValueError as exc:
        raise ReleaseError(f"{action} returned invalid JSON", body=safe_snippet(response.content)) from exc
    if not isinstance(data, dict):
        raise ReleaseError(f"{action} returned {type(data).__name__}, expected an object")
    return data
