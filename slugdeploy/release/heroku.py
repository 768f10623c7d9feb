"""Heroku Platform API slug deployment.

Creates a slug record, uploads the archive to the slug's blob URL, and
releases the slug to the app.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .errors import ReleaseError
from .http import build_client, check_response, response_json, safe_snippet

logger = logging.getLogger(__name__)

HEROKU_API_URL = "https://api.heroku.com"
HEROKU_ACCEPT = "application/vnd.heroku+json; version=3"


@dataclass(frozen=True)
class HerokuReleaseSettings:
    app: str
    email: str
    api_key: str
    process_types: Mapping[str, str] = field(default_factory=dict)
    commitish: str = ""


@dataclass(frozen=True)
class Slug:
    id: str
    blob_method: str
    blob_url: str


def api_client(settings: HerokuReleaseSettings, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    return build_client(
        HEROKU_API_URL,
        headers={"Accept": HEROKU_ACCEPT},
        auth=httpx.BasicAuth(settings.email, settings.api_key),
        transport=transport,
    )


def create_slug(client: httpx.Client, app: str, process_types: Mapping[str, str], commit: str = "") -> Slug:
    payload: dict[str, object] = {"process_types": dict(process_types)}
    if commit:
        payload["commit"] = commit
    logger.info("[heroku] Creating release slug")
    response = client.post(f"/apps/{app}/slugs", json=payload)
    data = response_json(check_response(response, "Heroku slug create"), "Heroku slug create")
    blob = data.get("blob")
    slug_id = data.get("id")
    if not isinstance(blob, dict) or not isinstance(slug_id, str):
        raise ReleaseError("Heroku slug response has no id or blob")
    method = blob.get("method")
    url = blob.get("url")
    if not isinstance(method, str) or not isinstance(url, str):
        raise ReleaseError("Heroku slug blob is missing method or url")
    return Slug(id=slug_id, blob_method=method.upper(), blob_url=url)


def upload_slug(client: httpx.Client, slug: Slug, build_path: str | Path) -> None:
    """Send the archive to the slug's presigned blob URL.

    The blob store rejects any Content-Type, so the body is streamed with
    an explicit Content-Length and no Content-Type header at all.
    """
    build_path = Path(build_path)
    logger.info("[heroku] Uploading build")
    with build_path.open("rb") as body:
        request = client.build_request(
            slug.blob_method,
            slug.blob_url,
            content=body,
            headers={"Content-Length": str(build_path.stat().st_size)},
        )
        request.headers.pop("Content-Type", None)
        response = client.send(request)
    check_response(response, "Heroku slug upload")
    if "<error>" in response.text.lower():
        raise ReleaseError("Heroku slug upload was rejected", body=safe_snippet(response.content))


def release_slug(client: httpx.Client, app: str, slug_id: str) -> str:
    """Publish ``slug_id`` as the app's current release; return the release id."""
    logger.info("[heroku] Publishing release")
    response = client.post(f"/apps/{app}/releases", json={"slug": slug_id})
    data = response_json(check_response(response, "Heroku release"), "Heroku release")
    release_id = data.get("id")
    return release_id if isinstance(release_id, str) else ""


def release(
    settings: HerokuReleaseSettings,
    build_path: str | Path,
    *,
    transport: httpx.BaseTransport | None = None,
) -> str:
    """Create, upload, and release a slug built from ``build_path``."""
    with api_client(settings, transport) as api:
        slug = create_slug(api, settings.app, settings.process_types, settings.commitish)
        # The blob URL is presigned; it must not receive the API credentials.
        with build_client(transport=transport) as blob_client:
            upload_slug(blob_client, slug, build_path)
        release_id = release_slug(api, settings.app, slug.id)
    logger.info("[heroku] Done")
    return release_id
