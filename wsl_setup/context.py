from __future__ import annotations

import dataclasses
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from .checkpoint_store import CheckpointStore
from .config import SetupConfig
from .lib.command import CmdResult, run_cmd
from .lib.env import Paths
from .lib.fetch import Fetcher


@dataclass(frozen=True)
class StepContext:
    """Everything a step may touch, threaded explicitly instead of read from globals."""

    config: SetupConfig
    checkpoints: CheckpointStore
    fetcher: Fetcher
    paths: Paths
    interactive: bool = False
    orchestrated: bool = False
    runner: Callable[..., CmdResult] = run_cmd
    which: Callable[[str], Optional[str]] = shutil.which
    facts: Mapping[str, Any] = field(default_factory=dict)

    @property
    def home(self) -> Path:
        return self.paths.home

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def can_prompt(self) -> bool:
        return self.interactive and not self.orchestrated

    def run(
        self,
        argv: Sequence[str],
        *,
        sudo: bool = False,
        check: bool = True,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CmdResult:
        return self.runner(
            argv,
            sudo=sudo,
            check=check,
            cwd=cwd,
            env=env,
            input_text=input_text,
            timeout=timeout,
            dry_run=self.dry_run,
        )

    def command_exists(self, name: str) -> bool:
        return self.which(name) is not None

    def replace(self, **changes: Any) -> "StepContext":
        return dataclasses.replace(self, **changes)
