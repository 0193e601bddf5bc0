from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from gem_bootstrap.collaborators import CommandRunner
from gem_bootstrap.errors import CollaboratorError


@dataclass(frozen=True)
class CommitOutcome:
    committed: bool
    detail: str | None = None


def head_sha(workspace_dir: Path, *, runner: CommandRunner | None = None) -> str | None:
    runner = runner or CommandRunner()
    cp = runner.run(["git", "rev-parse", "--verify", "-q", "HEAD"], cwd=workspace_dir, check=False, capture=True)
    sha = cp.stdout.strip()
    return sha if cp.returncode == 0 and sha else None


def has_staged_changes(workspace_dir: Path, *, runner: CommandRunner | None = None) -> bool:
    runner = runner or CommandRunner()
    argv = ["git", "diff", "--cached", "--quiet"]
    cp = runner.run(argv, cwd=workspace_dir, check=False, capture=True)
    if cp.returncode not in (0, 1):
        msg = cp.stderr.strip() or "git diff --cached failed"
        raise CollaboratorError(msg, argv=argv, returncode=cp.returncode)
    return cp.returncode == 1


class GitCheckpoint:
    """Stage-and-commit checkpoints in the generated gem's repository.

    Staging is fatal on failure. Committing is best-effort: nothing staged, or git refusing the commit, comes
    back as ``CommitOutcome(committed=False)`` and never raises. History is only ever appended to.
    """

    def __init__(
        self,
        workspace_dir: Path,
        *,
        timeout: float | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.workspace_dir = workspace_dir
        self._timeout = timeout
        self._runner = runner or CommandRunner()

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        return self._runner.run(
            ["git", *args],
            cwd=self.workspace_dir,
            timeout=self._timeout,
            check=check,
            capture=True,
        )

    def reset_mixed(self) -> None:
        # A freshly `git init`ed repo has no HEAD; `git reset` then only needs to empty the index.
        if head_sha(self.workspace_dir, runner=self._runner) is None:
            self._git("rm", "-r", "-q", "--cached", "--ignore-unmatch", ".")
            return
        self._git("reset", "-q", "--mixed")

    def stage(self, paths: Sequence[Path | str]) -> None:
        if not paths:
            return
        rel_paths: list[str] = []
        for p in paths:
            path = Path(p)
            if path.is_absolute():
                path = path.relative_to(self.workspace_dir)
            rel_paths.append(path.as_posix())
        self._git("add", "-A", "--", *rel_paths)

    def commit(self, message: str) -> CommitOutcome:
        try:
            if not has_staged_changes(self.workspace_dir, runner=self._runner):
                return CommitOutcome(committed=False, detail="nothing to commit")
            cp = self._git("commit", "-q", "--no-gpg-sign", "-m", message, check=False)
        except CollaboratorError as exc:
            return CommitOutcome(committed=False, detail=str(exc))
        if cp.returncode != 0:
            detail = cp.stderr.strip() or cp.stdout.strip() or f"git commit exited with {cp.returncode}"
            return CommitOutcome(committed=False, detail=detail)
        return CommitOutcome(committed=True, detail=head_sha(self.workspace_dir, runner=self._runner))
