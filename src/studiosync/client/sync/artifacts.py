"""Temporary download artifacts and archive helpers.

Scratch files and directories exist for exactly one operation: they are
created right before a download and removed when the ``with`` block exits,
whether it succeeded or raised.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import zipfile
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def scratch_dir(prefix: str = "studiosync_") -> Iterator[Path]:
    """Create a temporary directory, removed on exit."""
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed scratch directory %s", path)


@contextlib.contextmanager
def scratch_file(prefix: str = "studiosync_", suffix: str = "") -> Iterator[Path]:
    """Reserve a temporary file path, removed on exit if it exists."""
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()
        logger.debug("Removed scratch file %s", path)


def extract_zip(archive: Path, dest: Path) -> Path:
    """Extract a zip archive into ``dest``, overwriting existing files.

    Raises:
        zipfile.BadZipFile: If the archive is not a zip file.
        ValueError: If a member would be written outside ``dest``.
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()
    with zipfile.ZipFile(archive) as zf:
        members = zf.infolist()
        for member in members:
            target = (root / member.filename).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Archive member escapes destination: {member.filename}")
        for member in members:
            target = root / member.filename
            # git object files are read-only
            if not member.is_dir() and target.is_file():
                target.unlink()
            zf.extract(member, root)
    return dest


def copy_tree(src: Path, dest: Path) -> None:
    """Copy the contents of ``src`` over ``dest``.

    Existing files are overwritten, missing directories created. Files in
    ``dest`` that are not in ``src`` are left alone.
    """
    if not src.is_dir():
        return
    for child in src.iterdir():
        target = dest / child.name
        if child.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            copy_tree(child, target)
        else:
            shutil.copyfile(child, target)
