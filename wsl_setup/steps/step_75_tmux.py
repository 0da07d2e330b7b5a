from __future__ import annotations

from typing import Optional

from ..context import StepContext
from ..lib.files import write_text
from ..lib.git import shallow_clone
from ..pipeline import BaseStep, StepResult

TPM_REPO = "https://github.com/tmux-plugins/tpm"

TMUX_CONF = """\
set -g mouse on
set -g history-limit 50000
set -g base-index 1
setw -g pane-base-index 1
set -g default-terminal "tmux-256color"
set -sg escape-time 10

# copy to the Windows clipboard
set -g set-clipboard on
bind -T copy-mode-vi y send -X copy-pipe-and-cancel "clip.exe"

set -g @plugin 'tmux-plugins/tpm'
set -g @plugin 'tmux-plugins/tmux-sensible'
run '~/.tmux/plugins/tpm/tpm'
"""


class TmuxStep(BaseStep):
    step_id = "tmux"
    title = "Configure tmux"
    requires = ("packages",)

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (ctx.home / ".tmux.conf").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        shallow_clone(TPM_REPO, ctx.home / ".tmux" / "plugins" / "tpm", runner=ctx.run)
        write_text(ctx.home / ".tmux.conf", TMUX_CONF, mode=0o644, dry_run=ctx.dry_run)
        return StepResult.ok("start tmux and press Ctrl+B then I to install plugins")
