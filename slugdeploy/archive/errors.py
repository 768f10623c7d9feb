"""Failures raised while building a slug archive.

Every error is fatal to the archive run that raised it.
"""

from __future__ import annotations

from pathlib import Path


class ArchiveError(Exception):
    """Base archive failure carrying the path and operation that failed."""

    def __init__(self, message: str, *, path: str | Path | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = None if path is None else Path(path)
        self.operation = operation

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.path is not None:
            parts.append(f"path={self.path}")
        return " | ".join(parts)


class NotFoundError(ArchiveError):
    """A requested source path does not exist."""


class ArchivePermissionError(ArchiveError):
    """Metadata, a directory listing, or file content could not be read."""


class LinkResolutionError(ArchiveError):
    """The target string of a symbolic link could not be read."""


class UnsupportedFileTypeError(ArchiveError):
    """The entry is neither a regular file, a directory, nor a symlink."""


class ArchiveIOError(ArchiveError):
    """The output archive could not be created, written, or closed."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        path: str | Path | None = None,
    ) -> None:
        super().__init__(message, path=path, operation=stage)
        self.stage = stage


def error_for_os_error(exc: OSError, path: str | Path, operation: str) -> ArchiveError:
    """Translate a source-side ``OSError`` into the archive taxonomy."""
    detail = exc.strerror or str(exc)
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(f"no such file or directory: {detail}", path=path, operation=operation)
    return ArchivePermissionError(f"cannot read: {detail}", path=path, operation=operation)


__all__ = [
    "ArchiveError",
    "ArchiveIOError",
    "ArchivePermissionError",
    "LinkResolutionError",
    "NotFoundError",
    "UnsupportedFileTypeError",
    "error_for_os_error",
]
