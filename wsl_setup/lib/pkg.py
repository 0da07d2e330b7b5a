from __future__ import annotations

import logging
from typing import Callable, List, Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)


def dpkg_installed(package: str, *, runner: Callable[..., object] = run_cmd) -> bool:
    r = runner(["dpkg-query", "-W", "-f=${Status}", package], check=False)
    return getattr(r, "returncode", 1) == 0 and "install ok installed" in getattr(r, "stdout", "")


def missing_packages(packages: Sequence[str], *, runner: Callable[..., object] = run_cmd) -> List[str]:
    """Return the packages dpkg does not report as installed (keeps order)."""

    return [p for p in packages if not dpkg_installed(p, runner=runner)]


def apt_update(*, runner: Callable[..., object] = run_cmd) -> None:
    runner(["apt-get", "update"], sudo=True)


def apt_install(
    packages: Sequence[str],
    *,
    runner: Callable[..., object] = run_cmd,
) -> None:
    if not packages:
        return
    runner(
        ["env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y", *packages],
        sudo=True,
    )


def dpkg_architecture(*, runner: Callable[..., object] = run_cmd) -> str:
    r = runner(["dpkg", "--print-architecture"], check=False)
    arch = (getattr(r, "stdout", "") or "").strip()
    return arch or "amd64"
