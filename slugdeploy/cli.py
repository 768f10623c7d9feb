"""Command-line front door for slugdeploy.

Parses CLI options over the persisted config and environment secrets, builds
an explicit ``DeployRequest``, and dispatches into ``run_deploy``.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

import httpx

from . import config
from .archive import ArchiveError, ArchiveIOError, ArchiveRequest
from .archive.types import DEFAULT_TOP_LEVEL_FOLDER
from .deploy import DeployRequest, run_deploy
from .release import GithubReleaseSettings, HerokuReleaseSettings, ReleaseError

DEFAULT_TARBALL_NAME = "release.tar.gz"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def _process_type(value: str) -> tuple[str, str]:
    """argparse type for ``TYPE=COMMAND`` process definitions."""
    name, sep, command = value.partition("=")
    if not sep or not name.strip() or not command.strip():
        raise argparse.ArgumentTypeError(f"expected TYPE=COMMAND, got {value!r}")
    return name.strip(), command.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slugdeploy",
        description="Package files into a slug tarball and release it to GitHub and/or Heroku.",
    )
    parser.add_argument("paths", nargs="+", help="Files and directories to put in the slug.")
    parser.add_argument(
        "--tarball-name",
        default=None,
        help=f"The release tarball file to write and upload (default: {DEFAULT_TARBALL_NAME}).",
    )
    parser.add_argument(
        "--top-level-folder",
        default=None,
        help=f"Folder every slug entry is placed under (default: {DEFAULT_TOP_LEVEL_FOLDER}).",
    )
    parser.add_argument("--app", default=None, help="Your heroku app's name.")
    parser.add_argument("--github-repo", default=None, help="Your github repo, in user/repo form.")
    parser.add_argument(
        "--github-token",
        default=None,
        help=f"Your github token for pushing a release (default: ${config.ENV_GITHUB_TOKEN}).",
    )
    parser.add_argument("--github-commitish", default=None, help="The commitish that you're creating a github release of.")
    parser.add_argument("--github-release-name", default=None, help="The name to use when creating a release on github.")
    parser.add_argument("--github-release-desc", default=None, help="A description of this release for uploading to github.")
    parser.add_argument(
        "--heroku-email",
        default=None,
        help=f"The email address for logging in to heroku (default: ${config.ENV_HEROKU_EMAIL}).",
    )
    parser.add_argument(
        "--heroku-password",
        default=None,
        help=f"The password or access key for heroku (default: ${config.ENV_HEROKU_API_KEY}).",
    )
    parser.add_argument(
        "--process",
        dest="processes",
        metavar="TYPE=COMMAND",
        type=_process_type,
        action="append",
        default=[],
        help="Process type for the heroku slug; repeatable.",
    )
    parser.add_argument(
        "--keep-on-failure",
        action="store_true",
        help="Leave a partially written tarball in place when archiving fails.",
    )
    parser.add_argument(
        "--save-defaults",
        action="store_true",
        help="Store the resolved non-secret settings as defaults for later runs.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every archive entry and HTTP status.")
    return parser


def _pick(flag: str | None, *fallbacks: str | None) -> str | None:
    for value in (flag, *fallbacks):
        if value:
            return value
    return None


def _github_settings(
    args: argparse.Namespace,
    cfg: Mapping[str, object],
    environ: Mapping[str, str],
) -> GithubReleaseSettings | None:
    repo = _pick(args.github_repo, config.config_str(cfg, "github_repo"))
    if repo is None:
        return None
    token = _pick(args.github_token, config.env_value(config.ENV_GITHUB_TOKEN, environ))
    if token is None:
        raise SystemExit(f"--github-repo requires --github-token or ${config.ENV_GITHUB_TOKEN}.")
    release_name = _pick(args.github_release_name, config.config_str(cfg, "github_release_name"))
    if release_name is None:
        raise SystemExit("--github-repo requires --github-release-name.")
    return GithubReleaseSettings(
        repo=repo,
        token=token,
        release_name=release_name,
        description=_pick(args.github_release_desc, config.config_str(cfg, "github_release_desc")) or "",
        commitish=_pick(args.github_commitish, config.config_str(cfg, "github_commitish")) or "",
    )


def _heroku_settings(
    args: argparse.Namespace,
    cfg: Mapping[str, object],
    environ: Mapping[str, str],
) -> HerokuReleaseSettings | None:
    app = _pick(args.app, config.config_str(cfg, "app"))
    if app is None:
        return None
    email = _pick(
        args.heroku_email,
        config.env_value(config.ENV_HEROKU_EMAIL, environ),
        config.config_str(cfg, "heroku_email"),
    )
    api_key = _pick(args.heroku_password, config.env_value(config.ENV_HEROKU_API_KEY, environ))
    if email is None or api_key is None:
        raise SystemExit(
            f"--app requires heroku credentials (--heroku-email/${config.ENV_HEROKU_EMAIL} "
            f"and --heroku-password/${config.ENV_HEROKU_API_KEY})."
        )
    process_types = config.config_process_types(cfg)
    process_types.update(dict(args.processes))
    return HerokuReleaseSettings(
        app=app,
        email=email,
        api_key=api_key,
        process_types=process_types,
        commitish=_pick(args.github_commitish, config.config_str(cfg, "github_commitish")) or "",
    )


def build_request(
    args: argparse.Namespace,
    cfg: Mapping[str, object],
    environ: Mapping[str, str],
) -> DeployRequest:
    """Resolve flags > environment > config file > defaults into a request."""
    tarball = _pick(args.tarball_name, config.config_str(cfg, "tarball_name")) or DEFAULT_TARBALL_NAME
    top_level_folder = (
        _pick(args.top_level_folder, config.config_str(cfg, "top_level_folder")) or DEFAULT_TOP_LEVEL_FOLDER
    )
    archive = ArchiveRequest(
        output_path=Path(tarball),
        top_level_folder=top_level_folder,
        source_paths=tuple(args.paths),
    )
    return DeployRequest(
        archive=archive,
        github=_github_settings(args, cfg, environ),
        heroku=_heroku_settings(args, cfg, environ),
    )


def defaults_from_request(request: DeployRequest) -> dict[str, object]:
    """Non-secret settings of ``request`` keyed like the config file."""
    defaults: dict[str, object] = {
        "tarball_name": str(request.archive.output_path),
        "top_level_folder": request.archive.top_level_folder,
    }
    if request.github is not None:
        defaults["github_repo"] = request.github.repo
        defaults["github_release_name"] = request.github.release_name
        if request.github.description:
            defaults["github_release_desc"] = request.github.description
        if request.github.commitish:
            defaults["github_commitish"] = request.github.commitish
    if request.heroku is not None:
        defaults["app"] = request.heroku.app
        defaults["heroku_email"] = request.heroku.email
        if request.heroku.process_types:
            defaults["process_types"] = dict(request.heroku.process_types)
    return defaults


def _output_was_opened(exc: ArchiveError) -> bool:
    # A failed open never truncated the output, so whatever is there is not ours.
    return not (isinstance(exc, ArchiveIOError) and exc.stage == "open")


def main(argv: Sequence[str] | None = None) -> None:
    """Parse CLI arguments, build the slug, and run the configured releases.

    Failures exit with a message. A failed archive run removes the partial
    tarball unless ``--keep-on-failure`` is given.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    request = build_request(args, config.load_config(), os.environ)
    if args.save_defaults:
        saved = config.save_defaults(defaults_from_request(request))
        if saved is not None:
            logger.info("Saved defaults to %s", saved)
    try:
        run_deploy(request)
    except ArchiveError as exc:
        if not args.keep_on_failure and _output_was_opened(exc):
            with contextlib.suppress(OSError):
                request.archive.output_path.unlink()
        raise SystemExit(f"Archive failed: {exc}") from exc
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    except ReleaseError as exc:
        raise SystemExit(f"Release failed: {exc}") from exc
    except httpx.HTTPError as exc:
        raise SystemExit(f"Release failed: {exc}") from exc


if __name__ == "__main__":
    main()
