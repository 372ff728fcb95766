"""
instruction-audit — filesystem utilities

Purpose
- Write report and log artifacts without leaving half-written files behind.

Functional requirements
- Writes go to a temp file in the destination directory and are swapped in
  with a single ``os.replace``.
- Missing destination directories are created on demand.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = ["atomic_write", "ensure_directory"]


def ensure_directory(path: PathLike) -> Path:
    """Create ``path`` (and parents) if needed and return it resolved."""

    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    resolved = directory.resolve(strict=True)
    if not resolved.is_dir():
        raise NotADirectoryError(f"{resolved!s} is not a directory")
    return resolved


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> Path:
    """
    Atomically write ``data`` to ``path`` and return the final path.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    parent = ensure_directory(target.parent)
    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(parent))
    temp_path = Path(temp_name)

    payload = data if isinstance(data, bytes) else data.encode(encoding)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, parent / target.name)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise
    return parent / target.name
