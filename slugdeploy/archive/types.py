"""Domain datatypes for archive requests and resolved filesystem metadata."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

ARCHIVE_PATH_PREFIX = "./"
DEFAULT_TOP_LEVEL_FOLDER = "app"


class FileKind(Enum):
    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class FileMetadataView:
    """Read-only snapshot of one filesystem entry, taken without following links."""

    path: Path
    name: str
    kind: FileKind
    mode: int
    uid: int
    gid: int
    mtime: int
    size: int = 0
    link_target: str | None = None
    dev: int = 0
    ino: int = 0

    @property
    def is_dir(self) -> bool:
        return self.kind is FileKind.DIRECTORY


@dataclass(frozen=True)
class ArchiveRequest:
    """Everything one archive run needs; fixed before archiving begins."""

    output_path: Path
    top_level_folder: str = DEFAULT_TOP_LEVEL_FOLDER
    source_paths: tuple[str, ...] = field(default_factory=tuple)


def archive_path(top_level_folder: str, *relative_parts: str) -> str:
    """Map a path relative to the request root onto its name inside the slug.

    ``"./"`` must precede every entry of a slug, so the result always
    starts with it, including for the bare top-level folder.
    """
    return ARCHIVE_PATH_PREFIX + posixpath.normpath(posixpath.join(top_level_folder, *relative_parts))


__all__ = [
    "ARCHIVE_PATH_PREFIX",
    "DEFAULT_TOP_LEVEL_FOLDER",
    "ArchiveRequest",
    "FileKind",
    "FileMetadataView",
    "archive_path",
]
