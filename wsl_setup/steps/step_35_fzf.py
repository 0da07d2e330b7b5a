from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from ..context import StepContext
from ..lib.git import shallow_clone
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

FZF_REPO = "https://github.com/junegunn/fzf.git"
# `fzf --zsh` appeared in 0.48
MIN_VERSION = (0, 48)


def parse_fzf_version(text: str) -> Optional[Tuple[int, int]]:
    m = re.match(r"\s*(\d+)\.(\d+)", text or "")
    return (int(m.group(1)), int(m.group(2))) if m else None


class FzfStep(BaseStep):
    step_id = "fzf"
    title = "Install fzf from GitHub"
    requires = ("packages",)

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (ctx.home / ".fzf" / "bin" / "fzf").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        exe = ctx.which("fzf")
        if exe:
            version = parse_fzf_version(ctx.run([exe, "--version"], check=False).stdout)
            if version is not None and version >= MIN_VERSION:
                return StepResult.ok("fzf %d.%d already installed" % version)
            logger.info("fzf found but outdated, upgrading")

        dest = ctx.home / ".fzf"
        if dest.is_dir():
            ctx.run(["git", "pull"], cwd=str(dest))
        else:
            shallow_clone(FZF_REPO, dest, runner=ctx.run)

        ctx.run([str(dest / "install"), "--all", "--no-bash", "--no-fish", "--no-update-rc"])
        return StepResult.ok("fzf installed")
