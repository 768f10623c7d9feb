"""Release targets for a built slug: GitHub releases and Heroku."""

from __future__ import annotations

from .errors import ReleaseError
from .github import GithubReleaseSettings
from .heroku import HerokuReleaseSettings

__all__ = ["GithubReleaseSettings", "HerokuReleaseSettings", "ReleaseError"]
