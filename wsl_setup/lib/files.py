from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

from .command import run_cmd

logger = logging.getLogger(__name__)


def write_text(path: Path, contents: str, *, mode: Optional[int] = None, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would write %s", path)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    if mode is not None:
        os.chmod(path, mode)


def append_missing_block(path: Path, marker: str, block: str, *, dry_run: bool = False) -> bool:
    """Append ``block`` to ``path`` unless ``marker`` already occurs in it.

    Returns True if the file was changed.
    """

    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    if marker in existing:
        return False
    if dry_run:
        logger.info("Would append %r block to %s", marker, path)
        return True
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(block if block.endswith("\n") else block + "\n")
    logger.info("Appended %r block to %s", marker, path)
    return True


def sudo_write_text(
    dest: str,
    contents: str,
    *,
    mode: str = "644",
    runner: Callable[..., object] = run_cmd,
) -> None:
    """Write a root-owned file: stage in a temp file, then ``install`` it with sudo."""

    fd, tmp = tempfile.mkstemp(prefix="wsl-setup-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(contents)
        runner(["install", "-m", mode, tmp, dest], sudo=True)
    finally:
        os.unlink(tmp)
