from __future__ import annotations

import logging
from .command import run_cmd

logger = logging.getLogger(__name__)


def is_online(host: str = "1.1.1.1", *, dry_run: bool = False) -> bool:
    """Best-effort online check."""

    try:
        r = run_cmd(["ping", "-c", "1", "-W", "2", host], check=False, dry_run=dry_run)
        return r.returncode == 0
    except OSError:
        return False
