from __future__ import annotations

import logging
from typing import Optional

from ..context import StepContext
from ..lib.files import append_missing_block
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

PYENV_INSTALLER = "https://pyenv.run"
UV_INSTALLER = "https://astral.sh/uv/install.sh"
PYTHON_SERIES = "3.12"

PYENV_MARKER = "# Pyenv configuration"
PYENV_BLOCK = f"""
{PYENV_MARKER}
export PYENV_ROOT="$HOME/.pyenv"
[[ -d $PYENV_ROOT/bin ]] && export PATH="$PYENV_ROOT/bin:$PATH"
eval "$(pyenv init - zsh)"
"""


class PythonEnvStep(BaseStep):
    step_id = "python_env"
    title = "Install Python toolchain (pyenv, uv)"
    requires = ("packages",)
    after = ("shell",)

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (ctx.home / ".pyenv").is_dir()

    def run(self, ctx: StepContext) -> StepResult:
        pyenv_root = ctx.home / ".pyenv"
        if pyenv_root.is_dir():
            logger.info("pyenv already installed")
        else:
            ctx.fetcher.run_remote_script(PYENV_INSTALLER, "bash", runner=ctx.run, dry_run=ctx.dry_run)
        append_missing_block(ctx.home / ".zshrc", PYENV_MARKER, PYENV_BLOCK, dry_run=ctx.dry_run)

        pyenv = str(pyenv_root / "bin" / "pyenv")
        env = {"PYENV_ROOT": str(pyenv_root)}
        # -s skips versions that are already built
        ctx.run([pyenv, "install", "-s", PYTHON_SERIES], env=env)
        ctx.run([pyenv, "global", PYTHON_SERIES], env=env)

        uv = ctx.home / ".local" / "bin" / "uv"
        if ctx.command_exists("uv") or uv.is_file():
            logger.info("uv already installed")
        else:
            ctx.fetcher.run_remote_script(UV_INSTALLER, "sh", runner=ctx.run, dry_run=ctx.dry_run)

        return StepResult.ok(f"Python {PYTHON_SERIES} via pyenv")
