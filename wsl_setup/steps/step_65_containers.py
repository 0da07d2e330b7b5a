from __future__ import annotations

import getpass
import logging
import tempfile
from pathlib import Path

from ..context import StepContext
from ..lib.files import sudo_write_text
from ..lib.pkg import apt_install, apt_update, dpkg_architecture
from ..lib.prompt import ask_choice
from ..pipeline import BaseStep, StepResult
from ..preflight import parse_os_release

logger = logging.getLogger(__name__)

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.asc"
DOCKER_SOURCES = "/etc/apt/sources.list.d/docker.list"
DOCKER_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin", "docker-compose-plugin"]

_MENU = {"1": "desktop", "2": "native", "3": "skip"}


class ContainersStep(BaseStep):
    step_id = "containers"
    title = "Configure Docker"
    requires = ("packages",)
    needs_sudo = True

    os_release = Path("/etc/os-release")

    def _choose(self, ctx: StepContext) -> str:
        if ctx.config.docker_choice:
            return ctx.config.docker_choice
        if not ctx.can_prompt:
            logger.info("Non-interactive mode: Docker Desktop selected by default")
            return "desktop"
        logger.info("1) Docker Desktop for Windows (recommended)  2) Docker CE native in WSL  3) Skip")
        return _MENU[ask_choice("Docker setup", list(_MENU), default="1")]

    def run(self, ctx: StepContext) -> StepResult:
        if ctx.command_exists("docker"):
            return StepResult.ok("Docker already available")

        choice = self._choose(ctx)
        if choice == "skip":
            return StepResult.ok("Docker installation skipped")
        if choice == "desktop":
            logger.info("Install Docker Desktop on Windows: https://www.docker.com/products/docker-desktop/")
            logger.info("Then enable WSL2 integration in Docker Desktop settings")
            return StepResult.ok("Docker Desktop selected")

        if not ctx.facts.get("has_systemd"):
            return StepResult.deferred("Docker CE requires systemd; restart WSL and re-run")
        self._install_native(ctx)
        return StepResult.ok("Docker CE installed")

    def _install_native(self, ctx: StepContext) -> None:
        apt_install(["ca-certificates", "curl", "gnupg"], runner=ctx.run)
        ctx.run(["install", "-m", "0755", "-d", str(Path(DOCKER_KEYRING).parent)], sudo=True)

        if ctx.dry_run:
            logger.info("Would install Docker apt key from %s", DOCKER_GPG_URL)
        else:
            with tempfile.TemporaryDirectory(prefix="wsl-setup-") as tmp:
                key = ctx.fetcher.fetch_to_file(DOCKER_GPG_URL, Path(tmp) / "docker.asc")
                ctx.run(["install", "-m", "644", str(key), DOCKER_KEYRING], sudo=True)

            codename = parse_os_release(self.os_release.read_text(encoding="utf-8")).get("VERSION_CODENAME", "noble")
            arch = dpkg_architecture(runner=ctx.run)
            line = f"deb [arch={arch} signed-by={DOCKER_KEYRING}] https://download.docker.com/linux/ubuntu {codename} stable\n"
            sudo_write_text(DOCKER_SOURCES, line, runner=ctx.run)

        apt_update(runner=ctx.run)
        apt_install(DOCKER_PACKAGES, runner=ctx.run)
        ctx.run(["systemctl", "enable", "--now", "docker.service"], sudo=True)
        ctx.run(["usermod", "-aG", "docker", getpass.getuser()], sudo=True)
        logger.warning("Log out and back in for docker group membership to apply")
