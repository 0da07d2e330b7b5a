from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .errors import StepGraphError
from .logging_utils import log_success

if TYPE_CHECKING:
    from .context import StepContext

logger = logging.getLogger(__name__)


class StepStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL = "partial"
    DEFERRED = "deferred"
    SKIPPED = "skipped"
    DECLINED = "declined"
    BLOCKED = "blocked"
    NOT_RUN = "not_run"


FAILURE_STATES = {StepStatus.FAILED, StepStatus.PARTIAL, StepStatus.BLOCKED, StepStatus.NOT_RUN}


@dataclass(frozen=True)
class StepResult:
    status: StepStatus
    message: str = ""
    succeeded: int = 0
    failed: int = 0

    @classmethod
    def ok(cls, message: str = "") -> "StepResult":
        return cls(StepStatus.SUCCEEDED, message)

    @classmethod
    def fail(cls, message: str) -> "StepResult":
        return cls(StepStatus.FAILED, message)

    @classmethod
    def deferred(cls, message: str) -> "StepResult":
        """Cannot succeed until something outside the run changes; retried next run."""
        return cls(StepStatus.DEFERRED, message)

    @classmethod
    def partial(cls, succeeded: int, failed: int, message: str = "") -> "StepResult":
        if failed == 0:
            return cls(StepStatus.SUCCEEDED, message, succeeded=succeeded)
        return cls(StepStatus.PARTIAL, message, succeeded=succeeded, failed=failed)


class Step(Protocol):
    """A single idempotent step.

    ``requires`` lists hard prerequisites: the step is blocked unless each of
    them is completed. ``after`` lists soft ones: ordering only, the step
    degrades gracefully if they did not run.
    """

    step_id: str
    title: str
    requires: Tuple[str, ...]
    after: Tuple[str, ...]
    needs_sudo: bool
    halts_run: bool
    interactive_default: bool

    def run(self, ctx: "StepContext") -> StepResult:
        ...

    def is_present(self, ctx: "StepContext") -> Optional[bool]:
        ...


class BaseStep:
    """Defaults for the Step protocol; concrete steps override what they need."""

    step_id: str = ""
    title: str = ""
    requires: Tuple[str, ...] = ()
    after: Tuple[str, ...] = ()
    needs_sudo: bool = False
    halts_run: bool = False
    interactive_default: bool = True

    def run(self, ctx: "StepContext") -> StepResult:  # pragma: no cover - abstract
        raise NotImplementedError

    def is_present(self, ctx: "StepContext") -> Optional[bool]:
        return None


@dataclass(frozen=True)
class StepOutcome:
    step_id: str
    result: StepResult

    @property
    def status(self) -> StepStatus:
        return self.result.status


@dataclass
class PipelineResult:
    outcomes: List[StepOutcome] = field(default_factory=list)

    def _ids(self, *states: StepStatus) -> List[str]:
        return [o.step_id for o in self.outcomes if o.status in states]

    @property
    def ran_steps(self) -> List[str]:
        return self._ids(StepStatus.SUCCEEDED, StepStatus.FAILED, StepStatus.PARTIAL, StepStatus.DEFERRED)

    @property
    def skipped_steps(self) -> List[str]:
        return self._ids(StepStatus.SKIPPED, StepStatus.DECLINED)

    @property
    def failed_steps(self) -> List[str]:
        return self._ids(*FAILURE_STATES)

    @property
    def deferred_steps(self) -> List[str]:
        return self._ids(StepStatus.DEFERRED)

    @property
    def ok(self) -> bool:
        return not self.failed_steps

    def status_of(self, step_id: str) -> Optional[StepStatus]:
        for o in self.outcomes:
            if o.step_id == step_id:
                return o.status
        return None


def validate_step_graph(steps: Sequence[Step]) -> None:
    """Check ids are unique and every prerequisite exists and comes earlier."""

    position: Dict[str, int] = {}
    for i, step in enumerate(steps):
        if step.step_id in position:
            raise StepGraphError(f"Duplicate step id: {step.step_id}")
        position[step.step_id] = i

    for i, step in enumerate(steps):
        for dep in step.requires:
            if dep not in position:
                raise StepGraphError(f"{step.step_id} requires unknown step {dep}")
            if position[dep] >= i:
                raise StepGraphError(f"{step.step_id} requires {dep}, which is ordered after it")
        for dep in step.after:
            if dep not in position:
                raise StepGraphError(f"{step.step_id} lists unknown soft prerequisite {dep}")
            if position[dep] >= i:
                logger.warning("%s should run after %s but is ordered before it", step.step_id, dep)


def _honour_checkpoint(step: Step, ctx: "StepContext") -> bool:
    """True if the checkpoint stands; clears it when the artifact is gone."""

    try:
        present = step.is_present(ctx)
    except Exception:
        logger.exception("Presence check for %s failed; trusting checkpoint", step.step_id)
        return True
    if present is False:
        logger.warning("%s is checkpointed but its artifact is missing; re-running", step.step_id)
        ctx.checkpoints.reset(step.step_id)
        return False
    return True


def run_pipeline(
    *,
    steps: Sequence[Step],
    ctx: "StepContext",
    confirm: Optional[Callable[[Step], bool]] = None,
    force: bool = False,
) -> PipelineResult:
    """Run steps in order with resume/idempotency semantics.

    Exceptions raised by a step end that step (FAILED) and never escape.
    """

    validate_step_graph(steps)
    result = PipelineResult()
    succeeded_now: set[str] = set()
    halted_by: Optional[str] = None

    def record(step_id: str, res: StepResult) -> None:
        result.outcomes.append(StepOutcome(step_id, res))

    for step in steps:
        if halted_by is not None:
            record(step.step_id, StepResult(StepStatus.NOT_RUN, f"halted after {halted_by} failed"))
            continue

        missing = [
            dep for dep in step.requires if dep not in succeeded_now and not ctx.checkpoints.is_completed(dep)
        ]
        if missing:
            logger.error("Skipping %s: prerequisite(s) not completed: %s", step.step_id, ", ".join(missing))
            record(step.step_id, StepResult(StepStatus.BLOCKED, "requires " + ", ".join(missing)))
            continue

        if not force and ctx.checkpoints.is_completed(step.step_id) and _honour_checkpoint(step, ctx):
            logger.info("Skipping step %s (already completed)", step.step_id)
            record(step.step_id, StepResult(StepStatus.SKIPPED, "already completed"))
            continue

        if confirm is not None and not confirm(step):
            logger.info("Step %s declined", step.step_id)
            record(step.step_id, StepResult(StepStatus.DECLINED, "declined by operator"))
            continue

        logger.info("Running step %s", step.step_id)
        try:
            res = step.run(ctx)
        except Exception as e:
            logger.exception("Step %s failed", step.step_id)
            res = StepResult.fail(str(e) or type(e).__name__)

        if res.status is StepStatus.SUCCEEDED:
            if ctx.dry_run:
                logger.info("Would mark %s completed", step.step_id)
            else:
                ctx.checkpoints.mark_completed(step.step_id)
            succeeded_now.add(step.step_id)
            log_success(logger, "%s completed%s", step.step_id, f": {res.message}" if res.message else "")
        elif res.status is StepStatus.DEFERRED:
            logger.warning("%s deferred: %s", step.step_id, res.message)
        elif res.status is StepStatus.PARTIAL:
            logger.error(
                "%s partially failed (%d succeeded, %d failed): %s",
                step.step_id,
                res.succeeded,
                res.failed,
                res.message,
            )
        else:
            logger.error("%s failed: %s", step.step_id, res.message)

        record(step.step_id, res)

        if step.halts_run and res.status in (StepStatus.FAILED, StepStatus.PARTIAL):
            logger.error("%s is required by everything downstream; stopping", step.step_id)
            halted_by = step.step_id

    return result
