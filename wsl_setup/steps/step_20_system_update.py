from __future__ import annotations

from ..context import StepContext
from ..lib.pkg import apt_update
from ..pipeline import BaseStep, StepResult

_NONINTERACTIVE = ["env", "DEBIAN_FRONTEND=noninteractive"]


class SystemUpdateStep(BaseStep):
    step_id = "system_update"
    title = "Update system packages"
    needs_sudo = True
    halts_run = True

    def run(self, ctx: StepContext) -> StepResult:
        apt_update(runner=ctx.run)
        ctx.run([*_NONINTERACTIVE, "apt-get", "upgrade", "-y"], sudo=True)
        ctx.run([*_NONINTERACTIVE, "apt-get", "dist-upgrade", "-y"], sudo=True)
        ctx.run(["apt-get", "autoremove", "-y"], sudo=True)
        ctx.run(["apt-get", "autoclean"], sudo=True)
        return StepResult.ok("system updated")
