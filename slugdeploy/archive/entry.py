"""Tar header construction for resolved filesystem entries.

Builds one ``TarInfo`` per entry plus, for regular files, an open payload
stream. Copying payload bytes is left to ``ArchiveWriter``.
"""

from __future__ import annotations

import os
import tarfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .errors import error_for_os_error
from .types import FileKind, FileMetadataView, archive_path

SYNTHETIC_DIRECTORY_MODE = 0o777

_TAR_TYPES = {
    FileKind.REGULAR: tarfile.REGTYPE,
    FileKind.DIRECTORY: tarfile.DIRTYPE,
    FileKind.SYMLINK: tarfile.SYMTYPE,
}


@dataclass
class TarEntry:
    """One archive header and the stream its content is copied from."""

    header: tarfile.TarInfo
    payload: BinaryIO | None = None
    source_path: Path | None = None

    @property
    def name(self) -> str:
        return self.header.name

    def close(self) -> None:
        if self.payload is not None:
            self.payload.close()

    def __enter__(self) -> TarEntry:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _header(name: str, tar_type: bytes, mode: int, uid: int, gid: int, mtime: int) -> tarfile.TarInfo:
    header = tarfile.TarInfo(name)
    header.type = tar_type
    header.mode = mode
    header.uid = uid
    header.gid = gid
    header.uname = ""
    header.gname = ""
    header.mtime = mtime
    # Slugs carry no finer timestamps than the source provides.
    header.pax_headers = {"atime": str(mtime), "ctime": str(mtime)}
    return header


def encode(metadata: FileMetadataView, name: str) -> TarEntry:
    """Build the archive entry for ``metadata`` stored under ``name``.

    ``name`` must already carry the ``"./"`` prefix. Regular files come back
    with their content opened at offset zero; directories and symlinks have
    no payload.
    """
    header = _header(
        name,
        _TAR_TYPES[metadata.kind],
        metadata.mode,
        metadata.uid,
        metadata.gid,
        metadata.mtime,
    )
    if metadata.kind is FileKind.SYMLINK:
        header.linkname = metadata.link_target or ""
        return TarEntry(header)
    if metadata.kind is FileKind.DIRECTORY:
        return TarEntry(header)

    header.size = metadata.size
    try:
        payload = open(metadata.path, "rb")
    except OSError as exc:
        raise error_for_os_error(exc, metadata.path, "open") from exc
    return TarEntry(header, payload, metadata.path)


def synthetic_directory(top_level_folder: str, now: float | None = None) -> TarEntry:
    """Build the top-level directory entry every slug starts with.

    It describes no file on disk: permissions are world-permissive and the
    owner is the invoking user.
    """
    timestamp = int(time.time() if now is None else now)
    header = _header(
        archive_path(top_level_folder),
        tarfile.DIRTYPE,
        SYNTHETIC_DIRECTORY_MODE,
        os.getuid(),
        os.getgid(),
        timestamp,
    )
    return TarEntry(header)
