from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Optional

from ..context import StepContext
from ..lib.files import sudo_write_text
from ..lib.pkg import dpkg_architecture
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

GH_KEYRING_URL = "https://cli.github.com/packages/githubcli-archive-keyring.gpg"
GH_KEYRING = "/usr/share/keyrings/githubcli-archive-keyring.gpg"
GH_SOURCES = "/etc/apt/sources.list.d/github-cli.list"


class AptReposStep(BaseStep):
    step_id = "apt_repos"
    title = "Configure third-party APT repositories"
    requires = ("system_update",)
    needs_sudo = True

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return Path(GH_SOURCES).is_file() and Path(GH_KEYRING).is_file()

    def run(self, ctx: StepContext) -> StepResult:
        if ctx.dry_run:
            logger.info("Would install GitHub CLI keyring from %s", GH_KEYRING_URL)
            return StepResult.ok()

        with tempfile.TemporaryDirectory(prefix="wsl-setup-") as tmp:
            key = ctx.fetcher.fetch_to_file(GH_KEYRING_URL, Path(tmp) / "githubcli.gpg")
            ctx.run(["install", "-m", "644", str(key), GH_KEYRING], sudo=True)

        arch = dpkg_architecture(runner=ctx.run)
        line = f"deb [arch={arch} signed-by={GH_KEYRING}] https://cli.github.com/packages stable main\n"
        sudo_write_text(GH_SOURCES, line, runner=ctx.run)
        return StepResult.ok("GitHub CLI repository configured")
