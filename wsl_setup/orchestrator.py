from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from rich.table import Table

from .config import SetupConfig
from .context import StepContext
from .errors import PreconditionError
from .lib.prompt import ask_yes_no
from .lib.sudo import CredentialSession
from .logging_utils import console, log_success, section
from .pipeline import PipelineResult, Step, StepStatus, run_pipeline
from .preflight import PreflightReport
from .verifier import VerificationReport, Verifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunReport:
    pipeline: PipelineResult
    verification: Optional[VerificationReport] = None

    @property
    def failed_steps(self) -> List[str]:
        return self.pipeline.failed_steps

    @property
    def ok(self) -> bool:
        if not self.pipeline.ok:
            return False
        return self.verification is None or self.verification.ok


def _confirm_step(step: Step) -> bool:
    return ask_yes_no(f"{step.title or step.step_id}?", default=step.interactive_default)


class Orchestrator:
    """Drives one provisioning run: preflight, sudo, steps, verification."""

    def __init__(
        self,
        steps: Sequence[Step],
        ctx: StepContext,
        *,
        session: Optional[CredentialSession] = None,
        preflight: Optional[Callable[[], PreflightReport]] = None,
        verifier: Optional[Verifier] = None,
    ) -> None:
        self.steps = list(steps)
        self.ctx = ctx
        self.session = session
        self.preflight = preflight
        self.verifier = verifier

    def _needs_elevation(self, ctx: StepContext, force: bool) -> bool:
        return any(
            s.needs_sudo and (force or not ctx.checkpoints.is_completed(s.step_id)) for s in self.steps
        )

    def _run(
        self,
        ctx: StepContext,
        *,
        confirm: Optional[Callable[[Step], bool]] = None,
        force: bool = False,
    ) -> RunReport:
        if self.preflight is not None:
            pre = self.preflight()
            if not pre.ok:
                raise PreconditionError("Prerequisites not met: " + "; ".join(pre.errors))
            ctx = ctx.replace(facts={**ctx.facts, **pre.facts})

        guard = self.session if self.session is not None else contextlib.nullcontext()
        with guard:
            if self.session is not None and self._needs_elevation(ctx, force):
                self.session.acquire()
            result = run_pipeline(steps=self.steps, ctx=ctx, confirm=confirm, force=force)

        verification = self.verifier.verify() if self.verifier is not None else None
        report = RunReport(pipeline=result, verification=verification)
        self._log_summary(report)
        return report

    def run_full(self, *, force: bool = False) -> RunReport:
        section("Full WSL Installation")
        return self._run(self.ctx.replace(interactive=False, orchestrated=False), force=force)

    def run_interactive(
        self,
        confirm: Callable[[Step], bool] = _confirm_step,
        *,
        force: bool = False,
    ) -> RunReport:
        section("Interactive Installation")
        return self._run(self.ctx.replace(interactive=True, orchestrated=False), confirm=confirm, force=force)

    def run_orchestrated(self, config: Optional[SetupConfig] = None, *, force: bool = False) -> RunReport:
        """Non-interactive run for the Windows launcher; no step may block on a prompt."""

        section("Orchestrated Installation")
        ctx = self.ctx.replace(config=config or self.ctx.config, interactive=False, orchestrated=True)
        return self._run(ctx, force=force)

    def _log_summary(self, report: RunReport) -> None:
        r = report.pipeline
        logger.info(
            "Run summary: ran=%d skipped=%d failed=%d deferred=%d",
            len(r.ran_steps),
            len(r.skipped_steps),
            len(r.failed_steps),
            len(r.deferred_steps),
        )
        if r.deferred_steps:
            logger.warning("Deferred (will retry next run): %s", ", ".join(r.deferred_steps))
        if r.failed_steps:
            logger.error("Failed steps: %s", ", ".join(r.failed_steps))
        elif report.ok:
            log_success(logger, "All steps completed")


_STATUS_STYLE = {
    StepStatus.SUCCEEDED: "green",
    StepStatus.SKIPPED: "dim",
    StepStatus.DECLINED: "dim",
    StepStatus.DEFERRED: "yellow",
    StepStatus.PARTIAL: "bold red",
    StepStatus.FAILED: "bold red",
    StepStatus.BLOCKED: "red",
    StepStatus.NOT_RUN: "red",
}


def render_run(report: RunReport) -> None:
    section("Installation summary")
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for o in report.pipeline.outcomes:
        detail = o.result.message
        if o.result.succeeded or o.result.failed:
            detail = f"{detail} ({o.result.succeeded} ok, {o.result.failed} failed)".strip()
        style = _STATUS_STYLE[o.status]
        table.add_row(o.step_id, f"[{style}]{o.status.value}[/]", detail)
    console.print(table)
