from __future__ import annotations

import errno
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from .command import run_cmd
from .validate import RepoSpec, is_below

logger = logging.getLogger(__name__)


def clone_or_update(
    spec: RepoSpec,
    home: Path,
    *,
    runner: Callable[..., object] = run_cmd,
) -> str:
    """Bring one repository to a cloned, up-to-date state.

    Returns ``"updated"``, ``"repaired"`` (directory without .git was
    replaced) or ``"cloned"``. Raises on failure. Only directories strictly
    below ``home`` are ever replaced.
    """

    dest = spec.expanded_path(home)

    if (dest / ".git").is_dir():
        runner(["git", "fetch", "--all", "--prune"], cwd=str(dest))
        runner(["git", "pull", "--rebase"], cwd=str(dest))
        return "updated"

    if dest.is_dir():
        if not is_below(dest, home):
            logger.error("%s: %s exists without .git and is outside home; not replacing it", spec.name, dest)
            raise FileExistsError(errno.EEXIST, "refusing to replace directory outside home", str(dest))
        logger.warning("%s: existing folder without .git, removing and re-cloning", spec.name)
        shutil.rmtree(dest)
        runner(["git", "clone", spec.url, str(dest)])
        return "repaired"

    dest.parent.mkdir(parents=True, exist_ok=True)
    runner(["git", "clone", spec.url, str(dest)])
    return "cloned"


def shallow_clone(url: str, dest: Path, *, runner: Callable[..., object] = run_cmd) -> bool:
    """Clone if missing; returns False when the directory already existed."""

    if dest.exists():
        return False
    runner(["git", "clone", "--depth", "1", url, str(dest)])
    return True


def git_config_get(key: str, *, runner: Callable[..., object] = run_cmd) -> Optional[str]:
    r = runner(["git", "config", "--global", "--get", key], check=False)
    value = (getattr(r, "stdout", "") or "").strip()
    return value if getattr(r, "returncode", 1) == 0 and value else None


def git_config_set(key: str, value: str, *, runner: Callable[..., object] = run_cmd) -> None:
    runner(["git", "config", "--global", key, value])
