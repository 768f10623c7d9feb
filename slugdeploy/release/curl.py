"""curl fallback for uploads the native HTTP client fails to deliver.

Commands are argv lists run without a shell.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Mapping
from pathlib import Path

from .errors import ReleaseError
from .http import REDACTED_HEADERS, safe_snippet

logger = logging.getLogger(__name__)

CURL = "curl"
DEFAULT_TIMEOUT_SECONDS = 600.0


def build_command(
    method: str,
    url: str,
    headers: Mapping[str, str],
    body_path: str | Path | None = None,
    *extra_args: str,
) -> list[str]:
    """Build the curl argv reproducing one request.

    ``extra_args`` are appended after the request headers, so they can
    override them (``"-H", "Content-Type:"`` removes a header).
    """
    argv = [CURL, "--silent", "--show-error", "--fail", "-X", method.upper()]
    for name, value in headers.items():
        argv += ["-H", f"{name}: {value}"]
    argv += list(extra_args)
    if body_path is not None:
        argv += ["--data-binary", f"@{body_path}"]
    argv.append(url)
    return argv


def format_command(argv: list[str]) -> str:
    """Render ``argv`` for logs with credential headers masked."""
    shown: list[str] = []
    for arg in argv:
        name, sep, _value = arg.partition(":")
        if sep and name.strip().lower() in REDACTED_HEADERS:
            arg = f"{name}: ***REDACTED***"
        shown.append(arg)
    return shlex.join(shown)


def run(argv: list[str], timeout: float = DEFAULT_TIMEOUT_SECONDS) -> str:
    """Run a curl command and return its stdout; raise ``ReleaseError`` on failure."""
    logger.info("Created curl command: %s", format_command(argv))
    try:
        proc = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise ReleaseError(f"could not run curl: {exc}") from exc
    output = safe_snippet(proc.stdout)
    if proc.returncode != 0:
        raise ReleaseError(
            f"curl exited with status {proc.returncode}: {safe_snippet(proc.stderr).strip()}",
            body=output,
        )
    return proc.stdout.decode("utf-8", errors="replace")
