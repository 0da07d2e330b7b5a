from __future__ import annotations

import logging
import shutil

from ..context import StepContext
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

BACKUP_FILES = (".bashrc", ".zshrc", ".gitconfig")
BACKUP_DIRS = (".ssh",)


class BackupStep(BaseStep):
    step_id = "backup"
    title = "Back up existing dotfiles"

    def run(self, ctx: StepContext) -> StepResult:
        dest = ctx.paths.backup_dir()
        if ctx.dry_run:
            logger.info("Would back up dotfiles to %s", dest)
            return StepResult.ok()

        dest.mkdir(parents=True, exist_ok=True)
        copied = []
        for name in BACKUP_FILES:
            src = ctx.home / name
            if src.is_file():
                shutil.copy2(src, dest / name)
                copied.append(name)
        for name in BACKUP_DIRS:
            src = ctx.home / name
            if src.is_dir():
                shutil.copytree(src, dest / name, dirs_exist_ok=True)
                copied.append(name)

        logger.info("Backed up %s", ", ".join(copied) if copied else "nothing (no existing dotfiles)")
        return StepResult.ok(f"backup in {dest}")
