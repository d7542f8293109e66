"""Filesystem helpers for assembling the bundle directory.

Every file the builder produces is written through a temporary sibling and an
``os.replace`` so readers never observe a half-written schema or catalog, and
a failed entry leaves nothing behind at its destination.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from .errors import OutputDirectoryError

__all__ = ["ensure_directory", "atomic_write_bytes", "atomic_copy", "format_bytes"]

_FILE_MODE = 0o644


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents) if absent; reuse it if present.

    Raises:
        OutputDirectoryError: If the directory cannot be created.
    """

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputDirectoryError(f"Cannot create output directory {path}: {exc}") from exc
    return path


def _temp_sibling(destination: Path) -> Path:
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
    )
    os.close(fd)
    return Path(temp_name)


def _fsync_quietly(path: Path) -> None:
    try:
        with path.open("rb") as handle:
            os.fsync(handle.fileno())
    except OSError:
        pass


def atomic_write_bytes(destination: Path, payload: bytes) -> Path:
    """Write ``payload`` to ``destination``, overwriting any existing file."""

    temp_path = _temp_sibling(destination)
    try:
        temp_path.write_bytes(payload)
        _fsync_quietly(temp_path)
        # mkstemp creates owner-only files; bundles are meant to be shared.
        os.chmod(temp_path, _FILE_MODE)
        os.replace(temp_path, destination)
    finally:
        temp_path.unlink(missing_ok=True)
    return destination


def atomic_copy(source: Path, destination: Path) -> Path:
    """Copy ``source`` byte-for-byte to ``destination``."""

    temp_path = _temp_sibling(destination)
    try:
        shutil.copyfile(source, temp_path)
        _fsync_quietly(temp_path)
        os.chmod(temp_path, _FILE_MODE)
        os.replace(temp_path, destination)
    finally:
        temp_path.unlink(missing_ok=True)
    return destination


def format_bytes(num: int) -> str:
    """Return a human-readable representation for ``num`` bytes."""

    value = float(num)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024.0 or unit == "TB":
            return f"{value:.2f} {unit}"
        value /= 1024.0
    return f"{value:.2f} TB"
