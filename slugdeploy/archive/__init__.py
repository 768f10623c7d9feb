"""Slug archive builder.

``create_archive`` writes a gzip-compressed tar whose entries all live under
``"./<top_level_folder>"``, starting with a synthetic directory entry for
that folder, followed by each requested source path in pre-order.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from .entry import TarEntry, encode, synthetic_directory
from .errors import (
    ArchiveError,
    ArchiveIOError,
    ArchivePermissionError,
    LinkResolutionError,
    NotFoundError,
    UnsupportedFileTypeError,
)
from .metadata import resolve
from .types import ArchiveRequest, FileKind, FileMetadataView, archive_path
from .walker import walk
from .writer import ArchiveWriter

logger = logging.getLogger(__name__)


def _validate_top_level_folder(top_level_folder: str) -> None:
    parts = PurePosixPath(top_level_folder).parts
    if not top_level_folder or top_level_folder.startswith("/") or not parts or ".." in parts:
        raise ValueError(f"invalid top-level folder: {top_level_folder!r}")


def source_basename(source_path: str | Path) -> str:
    """Return the name ``source_path`` gets directly under the top-level folder.

    Trailing separators are ignored (``"src/"`` is ``"src"``) and ``"."``
    or ``".."`` resolve to the real directory name. A filesystem root has
    no name to place under the folder and raises ``ValueError``.
    """
    normalized = os.path.normpath(os.fspath(source_path))
    name = os.path.basename(normalized)
    if name in ("", ".", ".."):
        name = os.path.basename(os.path.abspath(normalized))
    if not name:
        raise ValueError(f"cannot archive {os.fspath(source_path)!r}: it has no base name")
    return name


def create_archive(output_path: str | Path, top_level_folder: str, source_paths: Iterable[str | Path]) -> Path:
    """Write a slug archive of ``source_paths`` to ``output_path``.

    Any failure aborts the run: the writer is released without its trailers
    and the first error is re-raised. A partially written output file is left
    in place for the caller to remove.
    """
    _validate_top_level_folder(top_level_folder)
    sources = [os.fspath(path) for path in source_paths]
    prefixes = [archive_path(top_level_folder, source_basename(source)) for source in sources]
    output = Path(output_path)

    logger.info("Creating tarball %s", output)
    writer = ArchiveWriter.open(output)
    try:
        logger.info("Writing top level directory ./%s", top_level_folder)
        writer.write_entry(synthetic_directory(top_level_folder))

        logger.info("Adding %d requested path(s) to archive", len(sources))
        output_identity = writer.output_identity()
        for source, prefix in zip(sources, prefixes):
            written = walk(writer, source, prefix, skip=output_identity)
            logger.debug("added %s as %s (%d entries)", source, prefix, written)

        writer.close()
    except BaseException:
        writer.abort()
        raise
    return output


def create_archive_from_request(request: ArchiveRequest) -> Path:
    return create_archive(request.output_path, request.top_level_folder, request.source_paths)


__all__ = [
    "ArchiveError",
    "ArchiveIOError",
    "ArchivePermissionError",
    "ArchiveRequest",
    "ArchiveWriter",
    "FileKind",
    "FileMetadataView",
    "LinkResolutionError",
    "NotFoundError",
    "TarEntry",
    "UnsupportedFileTypeError",
    "archive_path",
    "create_archive",
    "create_archive_from_request",
    "encode",
    "resolve",
    "source_basename",
    "synthetic_directory",
    "walk",
]
