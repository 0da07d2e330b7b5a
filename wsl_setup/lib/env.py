from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..logging_utils import DEFAULT_LOG_DIR


@dataclass(frozen=True)
class Paths:
    home: Path
    log_dir: Path

    @classmethod
    def for_home(cls, home: Optional[Path] = None, log_dir: Optional[str] = None) -> "Paths":
        h = Path(home) if home is not None else Path.home()
        if log_dir:
            d = Path(log_dir).expanduser()
        else:
            d = h / Path(DEFAULT_LOG_DIR).name
        return cls(home=h, log_dir=d)

    @property
    def checkpoint_file(self) -> Path:
        # Shared with the Windows launcher, which may delete it between runs.
        return self.log_dir / ".checkpoint"

    def backup_dir(self, now: Optional[float] = None) -> Path:
        return self.home / time.strftime("backup_preinstall_%Y%m%d", time.localtime(now))
