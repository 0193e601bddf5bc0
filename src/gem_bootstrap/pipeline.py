from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Protocol

from gem_bootstrap.checklist import ChecklistStep, PipelineStep, ProgressReporter, StepOutcome
from gem_bootstrap.context import ProjectContext
from gem_bootstrap.errors import BootstrapError
from gem_bootstrap.git_ops import CommitOutcome

RunState = Literal["init", "running", "completed", "aborted"]


class Checkpointer(Protocol):
    def stage(self, paths: Sequence[Path | str]) -> None:  # pragma: no cover
        raise NotImplementedError

    def commit(self, message: str) -> CommitOutcome:  # pragma: no cover
        raise NotImplementedError


@dataclass(frozen=True)
class StepFailure:
    label: str
    error: BaseException


@dataclass
class PipelineRun:
    context: ProjectContext
    state: RunState = "init"
    completed: list[str] = field(default_factory=list)
    failure: StepFailure | None = None
    commits: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == "completed"


def _checkpoint_paths(step: PipelineStep, outcome: StepOutcome) -> list[Path | str]:
    paths: list[Path | str] = list(step.stage_paths)
    for p in outcome.paths:
        if p not in paths:
            paths.append(p)
    return paths


def run_pipeline(
    context: ProjectContext,
    steps: Sequence[PipelineStep],
    *,
    vcs: Checkpointer,
    reporter: ProgressReporter | None = None,
) -> PipelineRun:
    """Run ``steps`` in order against ``context`` and stop at the first failure.

    A failed step ends the run in the ``aborted`` state with ``completed`` holding exactly the labels that ran
    before it; nothing already committed is undone. A staging failure counts as a failure of the step whose
    checkpoint it was; an empty or refused commit does not.
    """

    reporter = reporter or ProgressReporter()
    run = PipelineRun(context=context, state="running")

    for step in steps:
        outcome = ChecklistStep(step).run(context)
        if outcome.ok and step.checkpoint:
            try:
                vcs.stage(_checkpoint_paths(step, outcome))
            except (BootstrapError, OSError) as exc:
                outcome = StepOutcome(label=step.label, ok=False, error=exc)

        if outcome.error is not None:
            reporter.step_failed(outcome)
            run.failure = StepFailure(label=step.label, error=outcome.error)
            run.state = "aborted"
            return run

        reporter.step_passed(outcome)
        if step.checkpoint and step.commit_message:
            commit = vcs.commit(step.commit_message)
            reporter.checkpoint(step.label, committed=commit.committed, detail=commit.detail)
            if commit.committed:
                run.commits.append(step.commit_message)
        run.completed.append(step.label)

    run.state = "completed"
    return run
