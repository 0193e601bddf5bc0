from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from gem_bootstrap.errors import BootstrapError

if TYPE_CHECKING:  # pragma: no cover
    from gem_bootstrap.context import ProjectContext


@dataclass(frozen=True)
class StepResult:
    message: str | None = None
    paths: tuple[Path, ...] = ()


StepAction = Callable[["ProjectContext"], StepResult | None]


@dataclass(frozen=True)
class PipelineStep:
    label: str
    action: StepAction
    checkpoint: bool = False
    commit_message: str | None = None
    stage_paths: tuple[str, ...] = ()
    step_id: str | None = None

    def __post_init__(self) -> None:
        if self.checkpoint and not self.commit_message:
            raise ValueError(f"Step {self.label!r} declares a checkpoint without a commit message")


@dataclass(frozen=True)
class StepOutcome:
    label: str
    ok: bool
    message: str | None = None
    paths: tuple[Path, ...] = ()
    error: BaseException | None = None


class ChecklistStep:
    """Run one pipeline action and turn whatever it does into exactly one ``StepOutcome``.

    ``BootstrapError`` and ``OSError`` become failures; anything else is a bug and propagates.
    """

    def __init__(self, step: PipelineStep) -> None:
        self.step = step

    @property
    def label(self) -> str:
        return self.step.label

    def run(self, context: ProjectContext) -> StepOutcome:
        try:
            result = self.step.action(context)
        except (BootstrapError, OSError) as exc:
            return StepOutcome(label=self.label, ok=False, error=exc)
        if result is None:
            result = StepResult()
        return StepOutcome(label=self.label, ok=True, message=result.message, paths=result.paths)


@dataclass
class ProgressReporter:
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err: TextIO = field(default_factory=lambda: sys.stderr)

    def step_passed(self, outcome: StepOutcome) -> None:
        suffix = f": {outcome.message}" if outcome.message else ""
        print(f"[ok] {outcome.label}{suffix}", file=self.out)

    def step_failed(self, outcome: StepOutcome) -> None:
        print(f"[failed] {outcome.label}: {outcome.error}", file=self.err)

    def checkpoint(self, label: str, *, committed: bool, detail: str | None) -> None:
        if committed:
            print(f"  committed {detail or ''}".rstrip(), file=self.out)
        else:
            print(f"  no commit for {label!r}: {detail or 'nothing to commit'}", file=self.out)


class SilentReporter(ProgressReporter):
    def step_passed(self, outcome: StepOutcome) -> None:
        pass

    def step_failed(self, outcome: StepOutcome) -> None:
        pass

    def checkpoint(self, label: str, *, committed: bool, detail: str | None) -> None:
        pass
