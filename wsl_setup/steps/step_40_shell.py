from __future__ import annotations

import getpass
import logging
from typing import Optional

from ..context import StepContext
from ..lib.files import append_missing_block
from ..lib.git import shallow_clone
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

ZSH_PLUGINS = {
    "zsh-autosuggestions": "https://github.com/zsh-users/zsh-autosuggestions",
    "zsh-syntax-highlighting": "https://github.com/zsh-users/zsh-syntax-highlighting",
}

ZSHRC_MARKER = "# >>> wsl-setup base >>>"
ZSHRC_BASE = f"""{ZSHRC_MARKER}
export PATH="$HOME/.local/bin:$PATH"
HISTFILE=~/.zsh_history
HISTSIZE=50000
SAVEHIST=50000
setopt SHARE_HISTORY HIST_IGNORE_ALL_DUPS
autoload -Uz compinit && compinit
[ -f ~/.zsh/zsh-autosuggestions/zsh-autosuggestions.zsh ] && source ~/.zsh/zsh-autosuggestions/zsh-autosuggestions.zsh
command -v fzf >/dev/null && source <(fzf --zsh)
command -v zoxide >/dev/null && eval "$(zoxide init zsh)"
alias bat=batcat
# syntax highlighting must be sourced last
[ -f ~/.zsh/zsh-syntax-highlighting/zsh-syntax-highlighting.zsh ] && source ~/.zsh/zsh-syntax-highlighting/zsh-syntax-highlighting.zsh
# <<< wsl-setup base <<<
"""


class ShellStep(BaseStep):
    step_id = "shell"
    title = "Configure Zsh as the default shell"
    requires = ("packages",)
    after = ("fzf",)
    needs_sudo = True

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (ctx.home / ".zshrc").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        zsh = ctx.which("zsh")
        if not zsh:
            return StepResult.fail("zsh is not installed")

        # usermod instead of chsh: chsh asks for the password itself.
        user = getpass.getuser()
        ctx.run(["usermod", "-s", zsh, user], sudo=True)

        plugins_dir = ctx.home / ".zsh"
        for name, url in ZSH_PLUGINS.items():
            if shallow_clone(url, plugins_dir / name, runner=ctx.run):
                logger.info("%s installed", name)

        local_bin = ctx.home / ".local" / "bin"
        fdfind = ctx.which("fdfind")
        if fdfind and not ctx.dry_run:
            local_bin.mkdir(parents=True, exist_ok=True)
            link = local_bin / "fd"
            if not link.exists():
                link.symlink_to(fdfind)

        append_missing_block(ctx.home / ".zshrc", ZSHRC_MARKER, ZSHRC_BASE, dry_run=ctx.dry_run)
        return StepResult.ok(f"default shell set to {zsh}")
