from __future__ import annotations

import logging

from ..context import StepContext
from ..lib.pkg import apt_install, apt_update, missing_packages
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

# No fzf here: the apt build is too old for `fzf --zsh`.
PACKAGES = [
    "git", "zsh", "bat", "fd-find", "ripgrep", "btop", "ncdu", "tldr", "zoxide", "unzip",
    "nmap", "tcpdump", "netcat-openbsd", "openssh-server",
    "python3-pip", "tmux", "gh", "glab", "gnupg",
    "make", "build-essential", "libssl-dev", "zlib1g-dev", "libbz2-dev", "libreadline-dev",
    "libsqlite3-dev", "wget", "curl", "llvm", "libncursesw5-dev", "xz-utils", "tk-dev",
    "libxml2-dev", "libxmlsec1-dev", "libffi-dev", "liblzma-dev",
]


class PackagesStep(BaseStep):
    step_id = "packages"
    title = "Install base packages"
    requires = ("system_update",)
    after = ("apt_repos",)
    needs_sudo = True
    halts_run = True

    packages = PACKAGES

    def run(self, ctx: StepContext) -> StepResult:
        missing = missing_packages(self.packages, runner=ctx.run)
        if not missing:
            return StepResult.ok(f"all {len(self.packages)} packages already installed")

        logger.info("Installing %d of %d packages", len(missing), len(self.packages))
        apt_update(runner=ctx.run)
        apt_install(missing, runner=ctx.run)
        return StepResult.ok(f"installed {len(missing)} packages")
