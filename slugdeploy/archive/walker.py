"""Pre-order traversal that streams a source tree into an ``ArchiveWriter``.

Uses an explicit worklist, so tree depth is not bounded by the call stack.
"""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path

from .entry import encode
from .errors import error_for_os_error
from .metadata import resolve
from .types import FileKind
from .writer import ArchiveWriter

logger = logging.getLogger(__name__)


def list_children(directory: Path) -> list[str]:
    """Return child names of ``directory`` sorted by name.

    Sorting makes archive order independent of the filesystem's listing order.
    """
    try:
        with os.scandir(directory) as entries:
            names = [entry.name for entry in entries]
    except OSError as exc:
        raise error_for_os_error(exc, directory, "listdir") from exc
    names.sort()
    return names


def walk(
    writer: ArchiveWriter,
    requested_path: str | Path,
    archive_prefix: str,
    skip: tuple[int, int] | None = None,
) -> int:
    """Write ``requested_path`` and everything below it under ``archive_prefix``.

    Each directory's header is written before any of its descendants.
    Symlinks are leaf entries even when they point at a directory, so
    cyclic links cannot loop. A regular file whose ``(st_dev, st_ino)``
    equals ``skip`` (the archive being written) is left out. Returns the
    number of entries written.
    """
    pending: list[tuple[Path, str]] = [(Path(requested_path), archive_prefix)]
    written = 0
    while pending:
        real_path, name = pending.pop()
        metadata = resolve(real_path)
        if skip is not None and metadata.kind is FileKind.REGULAR and (metadata.dev, metadata.ino) == skip:
            logger.info("Skipping %s: it is the archive being written", real_path)
            continue
        with encode(metadata, name) as entry:
            writer.write_entry(entry)
        written += 1
        if not metadata.is_dir:
            continue
        children = list_children(real_path)
        logger.debug("descending into %s (%d children)", real_path, len(children))
        # Reversed so the stack pops children in sorted order.
        for child in reversed(children):
            pending.append((real_path / child, posixpath.join(name, child)))
    return written
