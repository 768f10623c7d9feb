"""End-to-end deploy run: build the slug, then publish it.

The archive is always complete before any upload starts; the GitHub and
Heroku releases then run side by side on worker threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import httpx

from .archive import ArchiveRequest, create_archive_from_request
from .release import github, heroku
from .release.github import GithubReleaseSettings
from .release.heroku import HerokuReleaseSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeployRequest:
    """Explicit parameters for one deploy run."""

    archive: ArchiveRequest
    github: GithubReleaseSettings | None = None
    heroku: HerokuReleaseSettings | None = None


def _release_jobs(
    request: DeployRequest,
    build: Path,
    transport: httpx.BaseTransport | None,
) -> list[tuple[str, Callable[[], object]]]:
    jobs: list[tuple[str, Callable[[], object]]] = []
    if request.github is not None:
        settings = request.github
        jobs.append(("github", lambda: github.release(settings, [build], transport=transport)))
    if request.heroku is not None:
        heroku_settings = request.heroku
        jobs.append(("heroku", lambda: heroku.release(heroku_settings, build, transport=transport)))
    return jobs


def run_deploy(request: DeployRequest, *, transport: httpx.BaseTransport | None = None) -> Path:
    """Build the archive and run every configured release.

    All release jobs run to completion; the first failure in submission
    order is re-raised afterwards.
    """
    build = create_archive_from_request(request.archive)
    jobs = _release_jobs(request, build, transport)
    if not jobs:
        logger.info("No release targets configured; built %s", build)
        return build

    errors: list[Exception] = []
    with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="slugdeploy-release") as executor:
        futures = [(name, executor.submit(job)) for name, job in jobs]
        for name, future in futures:
            try:
                future.result()
            except Exception as exc:
                logger.error("[%s] release failed: %s", name, exc)
                errors.append(exc)
    if errors:
        raise errors[0]
    return build
