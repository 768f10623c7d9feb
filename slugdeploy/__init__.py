"""Public package surface for slugdeploy.

Exports ``main`` for programmatic CLI invocation and ``create_archive`` for
building slug tarballs directly.
"""

from __future__ import annotations

__version__ = "0.1.0"


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


def create_archive(*args, **kwargs):
    from .archive import create_archive as _create_archive

    return _create_archive(*args, **kwargs)


__all__ = ["__version__", "create_archive", "main"]
