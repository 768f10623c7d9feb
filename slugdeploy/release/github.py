"""GitHub release creation and asset upload.

Creates a draft prerelease for a commitish, then attaches build artifacts.
A failed native upload is retried once through curl.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import httpx

from . import curl
from .errors import ReleaseError
from .http import build_client, check_response, redact_headers, response_json, safe_snippet

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GTAR_CONTENT_TYPE = "application/x-gtar"
_URI_TEMPLATE_RE = re.compile(r"\{\?[^}]*\}$")


@dataclass(frozen=True)
class GithubReleaseSettings:
    repo: str
    token: str
    release_name: str
    description: str = ""
    commitish: str = ""


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"token {token}"}


def create_release(client: httpx.Client, settings: GithubReleaseSettings) -> str:
    """Create a draft prerelease and return its asset upload URL.

    The URI template suffix GitHub appends (``{?name,label}``) is removed;
    ``upload_asset`` passes the asset name as a query parameter instead.
    """
    payload = {
        "tag_name": settings.release_name,
        "target_commitish": settings.commitish,
        "name": settings.release_name,
        "body": settings.description,
        "draft": True,
        "prerelease": True,
    }
    logger.info("[github] Creating release %s on %s", settings.release_name, settings.repo)
    response = client.post(
        f"/repos/{settings.repo}/releases",
        json=payload,
        headers=_auth_headers(settings.token),
    )
    data = response_json(check_response(response, "GitHub release"), "GitHub release")
    upload_url = data.get("upload_url")
    if not isinstance(upload_url, str) or not upload_url:
        raise ReleaseError("GitHub release response has no upload_url")
    return _URI_TEMPLATE_RE.sub("", upload_url)


def upload_asset(client: httpx.Client, upload_url: str, path: str | Path, token: str) -> None:
    """Attach the file at ``path`` to a release, named after its base name."""
    path = Path(path)
    headers = {
        **_auth_headers(token),
        "Content-Type": GTAR_CONTENT_TYPE,
        "Content-Length": str(path.stat().st_size),
    }
    logger.info("[github] Uploading %s", path.name)
    with path.open("rb") as body:
        response = client.post(upload_url, params={"name": path.name}, headers=headers, content=body)
    if response.status_code < 400:
        return

    logger.warning(
        "[github] Asset upload returned %s with response:\n%s",
        response.status_code,
        safe_snippet(response.content),
    )
    logger.info("[github] Trying again with curl")
    logger.debug("[github] upload headers: %s", redact_headers(headers))
    fallback_headers = {name: value for name, value in headers.items() if name != "Content-Length"}
    argv = curl.build_command("POST", str(response.request.url), fallback_headers, path)
    curl.run(argv)


def release(
    settings: GithubReleaseSettings,
    attachments: Iterable[str | Path],
    *,
    transport: httpx.BaseTransport | None = None,
) -> None:
    """Create the release and upload every attachment to it."""
    with build_client(
        GITHUB_API_URL,
        headers={"Accept": "application/vnd.github+json"},
        transport=transport,
    ) as client:
        upload_url = create_release(client, settings)
        for attachment in attachments:
            upload_asset(client, upload_url, attachment, settings.token)
    logger.info("[github] Done")
