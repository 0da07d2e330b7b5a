from __future__ import annotations

import json
import logging
import re
from typing import Optional

from ..context import StepContext
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

NVM_RELEASE_API = "https://api.github.com/repos/nvm-sh/nvm/releases/latest"
NVM_INSTALLER = "https://raw.githubusercontent.com/nvm-sh/nvm/{tag}/install.sh"
_TAG_RE = re.compile(r"^v\d+\.\d+\.\d+$")

GLOBAL_NPM_PACKAGES = ("pnpm", "typescript", "ts-node")


def parse_release_tag(body: str) -> Optional[str]:
    """``tag_name`` from a GitHub release payload, if it looks like vX.Y.Z."""

    try:
        tag = json.loads(body).get("tag_name", "")
    except (ValueError, AttributeError):
        return None
    return tag if isinstance(tag, str) and _TAG_RE.match(tag) else None


class NodejsEnvStep(BaseStep):
    step_id = "nodejs_env"
    title = "Install Node.js toolchain (nvm, LTS)"
    requires = ("packages",)
    after = ("shell",)

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (ctx.home / ".nvm" / "nvm.sh").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        nvm_dir = ctx.home / ".nvm"
        if not (nvm_dir / "nvm.sh").is_file():
            if ctx.dry_run:
                logger.info("Would install the latest nvm release")
            else:
                body = ctx.fetcher.fetch_to_string(NVM_RELEASE_API, validate=lambda b: parse_release_tag(b) is not None)
                tag = parse_release_tag(body)
                ctx.fetcher.run_remote_script(NVM_INSTALLER.format(tag=tag), "bash", runner=ctx.run)
                logger.info("nvm %s installed", tag)

        # nvm is a shell function, so every call goes through a sourcing shell.
        script = (
            'export NVM_DIR="$HOME/.nvm" && . "$NVM_DIR/nvm.sh"'
            " && nvm install --lts && nvm alias default 'lts/*'"
            " && npm install -g " + " ".join(GLOBAL_NPM_PACKAGES)
        )
        ctx.run(["bash", "-c", script])
        return StepResult.ok("Node.js LTS installed")
