"""Stacked tar-over-gzip-over-file output stream for slug archives.

The three layers are finalized in one fixed order; any other order yields
archives that lenient readers silently truncate.
"""

from __future__ import annotations

import contextlib
import gzip
import logging
import os
import tarfile
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from .entry import TarEntry
from .errors import ArchiveIOError, ArchivePermissionError, error_for_os_error

logger = logging.getLogger(__name__)


class _SourceReader:
    """Read side of a payload copy; failures name the source, not the output.

    ``tarfile`` copies exactly ``size`` bytes, so a short read means the
    file shrank after its header was built.
    """

    def __init__(self, raw: BinaryIO, source_path: Path | None, size: int) -> None:
        self._raw = raw
        self._source_path = source_path
        self._remaining = size

    def read(self, size: int = -1) -> bytes:
        wanted = self._remaining if size < 0 else min(size, self._remaining)
        try:
            data = self._raw.read(wanted)
        except OSError as exc:
            raise error_for_os_error(exc, self._source_path or "<payload>", "read") from exc
        if len(data) < wanted:
            raise ArchivePermissionError(
                f"file shrank while being archived ({self._remaining - len(data)} bytes missing)",
                path=self._source_path,
                operation="read",
            )
        self._remaining -= len(data)
        return data


class ArchiveWriter:
    """Exclusive owner of one output archive's sink, gzip and tar layers.

    Either all three layers are open or all three are closed. ``close``
    finalizes them in order (tar marker, gzip footer, sink) and stops at the
    first failure. ``abort`` drops the sink without writing either trailer,
    so an interrupted run never looks like a complete archive.
    """

    def __init__(self, path: Path, sink: BinaryIO, gzip_layer: gzip.GzipFile, tar_layer: tarfile.TarFile) -> None:
        self.path = path
        self._sink = sink
        self._gzip = gzip_layer
        self._tar = tar_layer
        self._closed = False

    @classmethod
    def open(cls, output_path: str | Path) -> ArchiveWriter:
        """Create or truncate ``output_path`` and stack the writer layers on it."""
        path = Path(output_path)
        try:
            sink = open(path, "wb")
        except OSError as exc:
            raise ArchiveIOError(
                f"cannot create output archive: {exc.strerror or exc}",
                stage="open",
                path=path,
            ) from exc
        try:
            return cls.wrap(sink, path)
        except ArchiveIOError:
            sink.close()
            raise

    @classmethod
    def wrap(cls, sink: BinaryIO, path: str | Path = "<stream>") -> ArchiveWriter:
        """Stack gzip and tar layers over an already open binary ``sink``."""
        path = Path(path)
        try:
            gzip_layer = gzip.GzipFile(filename="", mode="wb", fileobj=sink)
            tar_layer = tarfile.TarFile(fileobj=gzip_layer, mode="w", format=tarfile.PAX_FORMAT)
        except OSError as exc:
            raise ArchiveIOError(
                f"cannot initialize output archive: {exc.strerror or exc}",
                stage="init",
                path=path,
            ) from exc
        return cls(path, sink, gzip_layer, tar_layer)

    @property
    def closed(self) -> bool:
        return self._closed

    def output_identity(self) -> tuple[int, int] | None:
        """``(st_dev, st_ino)`` of the output file, or ``None`` for non-file sinks."""
        try:
            st = os.fstat(self._sink.fileno())
        except (OSError, ValueError):
            return None
        return st.st_dev, st.st_ino

    def write_entry(self, entry: TarEntry) -> None:
        """Append ``entry``'s header, followed by its payload when it has one."""
        if self._closed:
            raise ArchiveIOError("archive writer is closed", stage="write", path=self.path)
        payload = None
        if entry.payload is not None:
            payload = _SourceReader(entry.payload, entry.source_path, entry.header.size)
        try:
            self._tar.addfile(entry.header, payload)
        except OSError as exc:
            raise ArchiveIOError(
                f"cannot write entry {entry.name!r}: {exc.strerror or exc}",
                stage="write",
                path=self.path,
            ) from exc
        logger.debug("wrote %s (%d bytes)", entry.name, entry.header.size)

    def close(self) -> None:
        """Finalize tar, then gzip, then the sink; raise on the first failure.

        The tar step also pushes the end-of-archive marker through the gzip
        layer to the sink, so a device that rejects it fails the tar step and
        the gzip footer is never written.
        """
        if self._closed:
            return
        steps: tuple[tuple[str, Callable[[], None]], ...] = (
            ("close-tar", self._finish_tar),
            ("close-gzip", self._gzip.close),
            ("close-sink", self._sink.close),
        )
        for stage, step in steps:
            try:
                step()
            except OSError as exc:
                raise ArchiveIOError(
                    f"cannot finalize output archive: {exc.strerror or exc}",
                    stage=stage,
                    path=self.path,
                ) from exc
        self._closed = True

    def _finish_tar(self) -> None:
        self._tar.close()
        self._gzip.flush()

    def abort(self) -> None:
        """Release the output file without writing the tar or gzip trailers."""
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(OSError, ValueError):
            self._sink.close()
        # With the sink closed the gzip layer has nowhere to put its footer.
        with contextlib.suppress(OSError, ValueError, AttributeError):
            self._gzip.close()
        logger.debug("aborted %s", self.path)

    def __enter__(self) -> ArchiveWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()
