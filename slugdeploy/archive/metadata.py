"""Filesystem metadata lookup for archive entries.

Reads the entry itself (``lstat``), never what a symbolic link points at.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

from .errors import LinkResolutionError, UnsupportedFileTypeError, error_for_os_error
from .types import FileKind, FileMetadataView


def _kind_for_mode(st_mode: int) -> FileKind | None:
    if stat.S_ISLNK(st_mode):
        return FileKind.SYMLINK
    if stat.S_ISDIR(st_mode):
        return FileKind.DIRECTORY
    if stat.S_ISREG(st_mode):
        return FileKind.REGULAR
    return None


def resolve(path: str | Path) -> FileMetadataView:
    """Return a metadata snapshot for ``path``.

    Raises ``NotFoundError`` when ``path`` is missing,
    ``ArchivePermissionError`` when it cannot be stat'ed, and
    ``LinkResolutionError`` when a symlink's target string is unreadable.
    A dangling symlink is not an error: only the link string is read.
    """
    path = Path(path)
    try:
        st = os.lstat(path)
    except OSError as exc:
        raise error_for_os_error(exc, path, "stat") from exc

    kind = _kind_for_mode(st.st_mode)
    if kind is None:
        raise UnsupportedFileTypeError(
            f"unsupported file type {stat.filemode(st.st_mode)[0]!r}",
            path=path,
            operation="stat",
        )

    link_target: str | None = None
    if kind is FileKind.SYMLINK:
        try:
            link_target = os.readlink(path)
        except OSError as exc:
            raise LinkResolutionError(
                f"cannot read link target: {exc.strerror or exc}",
                path=path,
                operation="readlink",
            ) from exc

    return FileMetadataView(
        path=path,
        name=path.name,
        kind=kind,
        mode=stat.S_IMODE(st.st_mode),
        uid=st.st_uid,
        gid=st.st_gid,
        mtime=int(st.st_mtime),
        size=st.st_size if kind is FileKind.REGULAR else 0,
        link_target=link_target,
        dev=st.st_dev,
        ino=st.st_ino,
    )
