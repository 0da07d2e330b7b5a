from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import Optional

from ..context import StepContext
from ..lib.files import append_missing_block
from ..lib.pkg import dpkg_architecture
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

GO_VERSION_URL = "https://go.dev/VERSION?m=text"
GO_TARBALL_URL = "https://go.dev/dl/{version}.linux-{arch}.tar.gz"
_GO_VERSION_RE = re.compile(r"^go\d+\.\d+(\.\d+)?$")

GO_MARKER = "# Go configuration"
GO_BLOCK = f"""
{GO_MARKER}
export GOROOT=/usr/local/go
export GOPATH=$HOME/go
export PATH=$PATH:$GOROOT/bin:$GOPATH/bin
export GO111MODULE=on
"""


def parse_go_version(body: str) -> Optional[str]:
    first = body.splitlines()[0].strip() if body else ""
    return first if _GO_VERSION_RE.match(first) else None


class GoEnvStep(BaseStep):
    step_id = "go_env"
    title = "Install Go toolchain"
    requires = ("packages",)
    after = ("shell",)
    needs_sudo = True

    goroot = Path("/usr/local/go")

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (self.goroot / "bin" / "go").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        if ctx.dry_run:
            logger.info("Would install the current Go release into %s", self.goroot)
            return StepResult.ok()

        body = ctx.fetcher.fetch_to_string(GO_VERSION_URL, validate=lambda b: parse_go_version(b) is not None)
        version = parse_go_version(body)
        arch = dpkg_architecture(runner=ctx.run)

        with tempfile.TemporaryDirectory(prefix="wsl-setup-go-") as tmp:
            tarball = ctx.fetcher.fetch_to_file(GO_TARBALL_URL.format(version=version, arch=arch), Path(tmp) / "go.tar.gz")
            ctx.run(["rm", "-rf", str(self.goroot)], sudo=True)
            ctx.run(["tar", "-C", str(self.goroot.parent), "-xzf", str(tarball)], sudo=True)

        append_missing_block(ctx.home / ".zshrc", "GOROOT", GO_BLOCK)
        for sub in ("bin", "src", "pkg"):
            (ctx.home / "go" / sub).mkdir(parents=True, exist_ok=True)

        return StepResult.ok(f"Go installed: {version}")
