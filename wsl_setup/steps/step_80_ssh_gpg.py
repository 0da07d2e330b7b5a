from __future__ import annotations

import logging
import os
from typing import Optional

from ..context import StepContext
from ..lib.files import write_text
from ..lib.git import git_config_get, git_config_set
from ..lib.validate import validate_identity
from ..logging_utils import log_success
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

EXISTING_KEY_NAMES = ("id_ed25519", "id_ed25519_github", "id_rsa")

SSH_CONFIG = """\
Host github.com
    HostName github.com
    User git
    IdentityFile ~/.ssh/id_ed25519_github
    IdentitiesOnly yes

Host gitlab.com
    HostName gitlab.com
    User git
    IdentityFile ~/.ssh/id_ed25519_gitlab
    IdentitiesOnly yes

Host *
    AddKeysToAgent yes
    ServerAliveInterval 60
"""


def parse_gpg_key_id(listing: str) -> Optional[str]:
    """Long key id of the first ``sec`` entry in ``gpg --list-secret-keys --keyid-format=long``."""

    for line in listing.splitlines():
        parts = line.split()
        if parts and parts[0] == "sec" and len(parts) > 1 and "/" in parts[1]:
            return parts[1].split("/", 1)[1]
    return None


def gpg_batch_params(full_name: str, email: str, *, protect: bool) -> str:
    lines = [
        "Key-Type: RSA",
        "Key-Length: 4096",
        "Subkey-Type: RSA",
        "Subkey-Length: 4096",
        f"Name-Real: {full_name}",
        f"Name-Email: {email}",
        "Expire-Date: 2y",
    ]
    if not protect:
        lines.append("%no-protection")
    lines.append("%commit")
    return "\n".join(lines) + "\n"


class SshGpgStep(BaseStep):
    step_id = "ssh_gpg"
    title = "Configure Git identity, SSH and GPG keys"
    requires = ("packages",)

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        ssh_dir = ctx.home / ".ssh"
        return any((ssh_dir / name).is_file() for name in EXISTING_KEY_NAMES)

    def run(self, ctx: StepContext) -> StepResult:
        cfg = ctx.config
        validate_identity(cfg)

        current = (git_config_get("user.name", runner=ctx.run), git_config_get("user.email", runner=ctx.run))
        if current != (cfg.full_name, cfg.email) and all(current):
            logger.info("Updating Git identity from '%s <%s>'", *current)
        git_config_set("user.name", cfg.full_name, runner=ctx.run)
        git_config_set("user.email", cfg.email, runner=ctx.run)
        log_success(logger, "Git configured: %s <%s>", cfg.full_name, cfg.email)

        ssh_dir = ctx.home / ".ssh"
        existing = [name for name in EXISTING_KEY_NAMES if (ssh_dir / name).is_file()]
        if existing:
            logger.info("Existing SSH keys detected: %s", ", ".join(existing))
        else:
            self._generate_ssh_keys(ctx)

        if cfg.skip_gpg_setup:
            logger.info("GPG setup skipped (SKIP_GPG_SETUP)")
            return StepResult.ok("git identity and SSH keys configured")

        key_id = self._gpg_key_id(ctx)
        if key_id is None and not existing:
            protect = ctx.can_prompt
            if not protect:
                logger.warning("Generating GPG key without passphrase (non-interactive mode)")
            ctx.run(
                ["gpg", "--batch", "--generate-key"],
                input_text=gpg_batch_params(cfg.full_name, cfg.email, protect=protect),
            )
            key_id = self._gpg_key_id(ctx)

        if key_id:
            git_config_set("user.signingkey", key_id, runner=ctx.run)
            git_config_set("commit.gpgsign", "true", runner=ctx.run)
            git_config_set("tag.gpgsign", "true", runner=ctx.run)
            log_success(logger, "GPG signing configured with key %s", key_id)
        return StepResult.ok("git identity, SSH and GPG configured")

    def _generate_ssh_keys(self, ctx: StepContext) -> None:
        cfg = ctx.config
        ssh_dir = ctx.home / ".ssh"
        keys = {
            "id_ed25519_github": cfg.github_email,
            "id_ed25519_gitlab": cfg.gitlab_email,
            "id_ed25519_work": f"{cfg.email}-work",
        }

        if not ctx.dry_run:
            ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        # ssh-keygen would need the terminal for a passphrase, and run_cmd captures it.
        logger.warning("Generating SSH keys without passphrase; add one with: ssh-keygen -p -f <key>")
        for name, comment in keys.items():
            key = ssh_dir / name
            if key.exists():
                continue
            ctx.run(["ssh-keygen", "-t", "ed25519", "-f", str(key), "-C", comment, "-N", ""])
            if not ctx.dry_run:
                os.chmod(key, 0o600)
                os.chmod(key.with_name(name + ".pub"), 0o644)

        write_text(ssh_dir / "config", SSH_CONFIG, mode=0o600, dry_run=ctx.dry_run)
        log_success(logger, "SSH keys generated")

    def _gpg_key_id(self, ctx: StepContext) -> Optional[str]:
        r = ctx.run(["gpg", "--list-secret-keys", "--keyid-format=long", ctx.config.email], check=False)
        return parse_gpg_key_id(r.stdout) if r.ok else None
