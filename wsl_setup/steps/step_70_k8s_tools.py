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
from .step_55_nodejs_env import parse_release_tag

logger = logging.getLogger(__name__)

KUBECTL_STABLE_URL = "https://dl.k8s.io/release/stable.txt"
KUBECTL_URL = "https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl"
HELM_RELEASE_API = "https://api.github.com/repos/helm/helm/releases/latest"
HELM_URL = "https://get.helm.sh/helm-{version}-linux-{arch}.tar.gz"
_K8S_VERSION_RE = re.compile(r"^v\d+\.\d+\.\d+$")

KUBECTL_MARKER = "kubectl completion zsh"
KUBECTL_BLOCK = """
# kubectl autocompletion
source <(kubectl completion zsh)
alias k=kubectl
"""


class K8sToolsStep(BaseStep):
    step_id = "k8s_tools"
    title = "Install Kubernetes tools (kubectl, helm)"
    requires = ("packages",)
    after = ("containers",)
    needs_sudo = True
    interactive_default = False

    bin_dir = Path("/usr/local/bin")

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return ctx.command_exists("kubectl") or (self.bin_dir / "kubectl").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        if ctx.dry_run:
            logger.info("Would install kubectl and helm into %s", self.bin_dir)
            return StepResult.ok()

        arch = dpkg_architecture(runner=ctx.run)
        version = ctx.fetcher.fetch_to_string(KUBECTL_STABLE_URL, validate=lambda b: bool(_K8S_VERSION_RE.match(b)))

        with tempfile.TemporaryDirectory(prefix="wsl-setup-k8s-") as tmp:
            kubectl = ctx.fetcher.fetch_to_file(KUBECTL_URL.format(version=version, arch=arch), Path(tmp) / "kubectl")
            ctx.run(
                ["install", "-o", "root", "-g", "root", "-m", "0755", str(kubectl), str(self.bin_dir / "kubectl")],
                sudo=True,
            )
        append_missing_block(ctx.home / ".zshrc", KUBECTL_MARKER, KUBECTL_BLOCK)
        logger.info("kubectl %s installed", version)

        if ctx.command_exists("helm"):
            return StepResult.ok(f"kubectl {version}")

        body = ctx.fetcher.fetch_to_string(HELM_RELEASE_API, validate=lambda b: parse_release_tag(b) is not None)
        helm_version = parse_release_tag(body)
        with tempfile.TemporaryDirectory(prefix="wsl-setup-helm-") as tmp:
            tarball = ctx.fetcher.fetch_to_file(HELM_URL.format(version=helm_version, arch=arch), Path(tmp) / "helm.tar.gz")
            ctx.run(["tar", "-C", tmp, "-xzf", str(tarball)])
            ctx.run(["install", "-m", "755", str(Path(tmp) / f"linux-{arch}" / "helm"), str(self.bin_dir / "helm")], sudo=True)

        return StepResult.ok(f"kubectl {version}, helm {helm_version}")
