from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from ..context import StepContext
from ..lib.files import sudo_write_text
from ..logging_utils import log_success
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

_SYSTEMD_ON = re.compile(r"systemd\s*=\s*true")

# section header -> body, in the order they are written
WSL_CONF_SECTIONS = {
    "[boot]": "systemd=true\n",
    "[automount]": 'enabled = true\noptions = "metadata,umask=22,fmask=11"\nmountFsTab = true\n',
    "[network]": "generateHosts = true\ngenerateResolvConf = true\n",
    "[interop]": "enabled = true\nappendWindowsPath = true\n",
}

# Sections added to an existing wsl.conf; interop is left to the user.
_REQUIRED_SECTIONS = ("[boot]", "[automount]", "[network]")


def render_wsl_conf() -> str:
    return "\n".join(f"{header}\n{body}" for header, body in WSL_CONF_SECTIONS.items())


def missing_sections(existing: str) -> str:
    return "".join(
        f"\n{header}\n{WSL_CONF_SECTIONS[header]}" for header in _REQUIRED_SECTIONS if header not in existing
    )


class SystemdEnableStep(BaseStep):
    step_id = "systemd_enable"
    title = "Enable systemd in WSL"
    needs_sudo = True

    wsl_conf = Path("/etc/wsl.conf")

    def _read(self) -> Optional[str]:
        try:
            return self.wsl_conf.read_text(encoding="utf-8")
        except OSError:
            return None

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        existing = self._read()
        return existing is not None and bool(_SYSTEMD_ON.search(existing))

    def run(self, ctx: StepContext) -> StepResult:
        if ctx.facts.get("has_systemd"):
            return StepResult.ok("systemd already enabled")

        existing = self._read()
        if existing is not None and _SYSTEMD_ON.search(existing):
            additions = missing_sections(existing)
            if not additions:
                return StepResult.ok("wsl.conf already has all required sections")
            logger.info("Appending missing sections to %s", self.wsl_conf)
            if not ctx.dry_run:
                sudo_write_text(str(self.wsl_conf), existing.rstrip("\n") + "\n" + additions, runner=ctx.run)
            return StepResult.ok("added missing wsl.conf sections")

        logger.info("Creating %s with full configuration", self.wsl_conf)
        if not ctx.dry_run:
            sudo_write_text(str(self.wsl_conf), render_wsl_conf(), runner=ctx.run)
        log_success(logger, "systemd configured in %s", self.wsl_conf)

        # Restarting WSL would kill this process, so it is left to the operator.
        logger.warning("WSL RESTART REQUIRED to enable systemd: run 'wsl --shutdown' from Windows, then re-run")
        return StepResult.ok("restart WSL to activate systemd")
