import pytest

from wsl_setup.config import SetupConfig
from wsl_setup.errors import StepGraphError
from wsl_setup.pipeline import BaseStep, StepResult, StepStatus, run_pipeline, validate_step_graph


class FakeStep(BaseStep):
    def __init__(self, step_id, result=None, *, requires=(), after=(), halts_run=False, present=None, raises=None):
        self.step_id = step_id
        self.title = step_id
        self.requires = tuple(requires)
        self.after = tuple(after)
        self.halts_run = halts_run
        self._result = result or StepResult.ok()
        self._present = present
        self._raises = raises
        self.runs = 0

    def is_present(self, ctx):
        return self._present

    def run(self, ctx):
        self.runs += 1
        if self._raises is not None:
            raise self._raises
        return self._result


def test_graph_rejects_duplicates_and_unknown_or_late_prerequisites():
    with pytest.raises(StepGraphError, match="Duplicate"):
        validate_step_graph([FakeStep("a"), FakeStep("a")])
    with pytest.raises(StepGraphError, match="unknown"):
        validate_step_graph([FakeStep("a", requires=["missing"])])
    with pytest.raises(StepGraphError, match="ordered after"):
        validate_step_graph([FakeStep("a", requires=["b"]), FakeStep("b")])
    with pytest.raises(StepGraphError, match="soft"):
        validate_step_graph([FakeStep("a", after=["missing"])])


def test_late_soft_prerequisite_only_warns(caplog):
    validate_step_graph([FakeStep("a", after=["b"]), FakeStep("b")])
    assert "should run after" in caplog.text


def test_runs_in_order_and_marks_completed(make_ctx):
    ctx = make_ctx()
    steps = [FakeStep("a"), FakeStep("b", requires=["a"])]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.ran_steps == ["a", "b"]
    assert result.ok
    assert ctx.checkpoints.completed_steps() == ["a", "b"]


def test_completed_steps_are_skipped(make_ctx):
    ctx = make_ctx()
    ctx.checkpoints.mark_completed("a")
    a = FakeStep("a")

    result = run_pipeline(steps=[a], ctx=ctx)

    assert a.runs == 0
    assert result.skipped_steps == ["a"]


def test_force_reruns_completed_steps(make_ctx):
    ctx = make_ctx()
    ctx.checkpoints.mark_completed("a")
    a = FakeStep("a")

    run_pipeline(steps=[a], ctx=ctx, force=True)

    assert a.runs == 1


def test_stale_checkpoint_self_heals(make_ctx):
    ctx = make_ctx()
    ctx.checkpoints.mark_completed("fzf")
    fzf = FakeStep("fzf", present=False)

    result = run_pipeline(steps=[fzf], ctx=ctx)

    assert fzf.runs == 1
    assert result.status_of("fzf") is StepStatus.SUCCEEDED
    assert ctx.checkpoints.is_completed("fzf")


def test_exception_becomes_failed_and_run_continues(make_ctx):
    ctx = make_ctx()
    steps = [FakeStep("a", raises=RuntimeError("kaput")), FakeStep("b")]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.status_of("a") is StepStatus.FAILED
    assert result.status_of("b") is StepStatus.SUCCEEDED
    assert result.failed_steps == ["a"]
    assert not ctx.checkpoints.is_completed("a")


def test_hard_dependants_of_a_failure_are_blocked(make_ctx):
    ctx = make_ctx()
    steps = [
        FakeStep("ssh_gpg", StepResult.fail("no")),
        FakeStep("ssh_validate", requires=["ssh_gpg"]),
        FakeStep("tmux"),
    ]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.status_of("ssh_validate") is StepStatus.BLOCKED
    assert steps[1].runs == 0
    assert result.status_of("tmux") is StepStatus.SUCCEEDED
    assert result.failed_steps == ["ssh_gpg", "ssh_validate"]


def test_prerequisite_from_previous_run_counts(make_ctx):
    ctx = make_ctx()
    ctx.checkpoints.mark_completed("packages")
    tmux = FakeStep("tmux", requires=["packages"])

    run_pipeline(steps=[FakeStep("packages"), tmux], ctx=ctx)

    assert tmux.runs == 1


def test_soft_prerequisite_failure_does_not_block(make_ctx):
    ctx = make_ctx()
    steps = [FakeStep("ssh_validate", StepResult.fail("no")), FakeStep("clone_repos", after=["ssh_validate"])]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.status_of("clone_repos") is StepStatus.SUCCEEDED


def test_halting_step_stops_the_run(make_ctx):
    ctx = make_ctx()
    steps = [FakeStep("packages", StepResult.fail("apt broke"), halts_run=True), FakeStep("tmux")]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.status_of("tmux") is StepStatus.NOT_RUN
    assert steps[1].runs == 0
    assert not result.ok


def test_deferred_is_not_marked_and_not_a_failure(make_ctx):
    ctx = make_ctx()
    steps = [FakeStep("containers", StepResult.deferred("needs systemd")), FakeStep("final")]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.deferred_steps == ["containers"]
    assert not ctx.checkpoints.is_completed("containers")
    assert result.ok


def test_partial_is_not_marked(make_ctx):
    ctx = make_ctx()
    result = run_pipeline(steps=[FakeStep("clone_repos", StepResult.partial(2, 1))], ctx=ctx)

    assert result.status_of("clone_repos") is StepStatus.PARTIAL
    assert not ctx.checkpoints.is_completed("clone_repos")
    assert result.failed_steps == ["clone_repos"]


def test_partial_without_failures_is_success():
    assert StepResult.partial(3, 0).status is StepStatus.SUCCEEDED


def test_declined_steps_are_not_marked(make_ctx):
    ctx = make_ctx()
    steps = [FakeStep("a"), FakeStep("b")]

    result = run_pipeline(steps=steps, ctx=ctx, confirm=lambda step: step.step_id == "a")

    assert result.status_of("b") is StepStatus.DECLINED
    assert ctx.checkpoints.completed_steps() == ["a"]


def test_dry_run_marks_nothing(make_ctx):
    ctx = make_ctx(config=SetupConfig(dry_run=True))
    result = run_pipeline(steps=[FakeStep("a")], ctx=ctx)

    assert result.status_of("a") is StepStatus.SUCCEEDED
    assert ctx.checkpoints.completed_steps() == []
