from __future__ import annotations

import logging
from collections import Counter

from ..context import StepContext
from ..errors import CommandError
from ..lib.git import clone_or_update
from ..lib.validate import parse_repo_list
from ..pipeline import BaseStep, StepResult
from .step_85_ssh_validate import probe_git_hosts

logger = logging.getLogger(__name__)


class CloneReposStep(BaseStep):
    step_id = "clone_repos"
    title = "Clone or update repositories"
    requires = ("ssh_gpg",)
    after = ("ssh_validate",)

    def run(self, ctx: StepContext) -> StepResult:
        specs, rejected = parse_repo_list(ctx.config.repo_list, ctx.home)
        if not specs and not rejected:
            return StepResult.ok("no repositories configured (REPO_LIST)")

        needs_ssh = any(s.url.startswith("git@") or s.url.startswith("ssh://") for s in specs)
        if needs_ssh and not ctx.dry_run and not any(probe_git_hosts(ctx).values()):
            return StepResult.deferred("SSH access not available; check keys with: ssh -T git@github.com")

        counts: Counter = Counter()
        for spec in specs:
            logger.info("Processing: %s", spec.name)
            try:
                outcome = clone_or_update(spec, ctx.home, runner=ctx.run)
            except (CommandError, OSError) as e:
                logger.error("Failed to clone/update %s: %s", spec.name, e)
                counts["failed"] += 1
                continue
            logger.info("%s %s", spec.name, outcome)
            counts[outcome] += 1
        counts["failed"] += len(rejected)

        summary = ", ".join(f"{k}={counts[k]}" for k in ("cloned", "updated", "repaired", "failed") if counts[k])
        logger.info("Cloning summary: %s", summary)
        if counts["failed"]:
            logger.warning("Re-run the setup to retry failed repositories")
        return StepResult.partial(len(specs) + len(rejected) - counts["failed"], counts["failed"], summary)
