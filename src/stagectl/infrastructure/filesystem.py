"""Filesystem helpers for the generated project.

Text is read and written with ``newline=""`` so line endings survive a
round trip untouched.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from pathlib import Path


def read_text_exact(path: Path) -> str:
    """Read *path* without newline translation."""
    with path.open(encoding="utf-8", newline="") as fh:
        return fh.read()


def write_text_atomic(path: Path, text: str) -> None:
    """Replace *path* with *text* via a temp file in the same directory.

    An existing file keeps its permission bits.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else None
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def copy_tree(source: Path, destination: Path) -> Path:
    """Copy a directory tree, merging into *destination* if it exists."""
    return Path(shutil.copytree(source, destination, dirs_exist_ok=True))


def copy_file(source: Path, destination: Path) -> Path:
    """Copy a single file, creating parent directories."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    return Path(shutil.copy2(source, destination))
