"""
Adapters for the external tools the bootstrap pipeline drives.

Each adapter is a thin wrapper: it shells out (or fetches) once, blocks until the collaborator finishes, and maps
every failure mode onto the `gem_bootstrap.errors` taxonomy. Nothing here retries.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import requests

from gem_bootstrap.errors import CollaboratorError, CollaboratorTimeout, GeneratorError
from gem_bootstrap.pathing import write_bytes_atomic

# Answers to the questions `bundle gem` otherwise asks on first use; later steps rely on all three.
GENERATOR_OPTIONS = ("--mit", "--test=rspec", "--coc")


def _eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def _resolve_argv(argv: Sequence[str]) -> list[str]:
    if not argv:
        raise CollaboratorError("Internal error: empty argv")
    cmd = argv[0]
    if "/" in cmd or "\\" in cmd:
        return list(argv)
    resolved = shutil.which(cmd)
    if resolved is None:
        return list(argv)
    return [resolved, *argv[1:]]


def _summarize_output(cp: subprocess.CompletedProcess[str]) -> str:
    combined = "\n".join(x for x in (cp.stderr, cp.stdout) if x).strip()
    if not combined:
        return "no output"
    lines = combined.splitlines()
    return lines[-1].strip() if len(lines) == 1 else "\n".join(lines[-5:])


class CommandRunner:
    def __init__(self, *, echo: bool = True) -> None:
        self._echo = echo

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        timeout: float | None = None,
        check: bool = True,
        capture: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        resolved_argv = _resolve_argv(argv)
        if self._echo:
            _eprint(f"+ ({cwd}) {' '.join(argv)}")
        try:
            cp = subprocess.run(
                resolved_argv,
                cwd=str(cwd),
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=capture,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CollaboratorTimeout(
                f"{argv[0]} timed out after {timeout:.1f}s", argv=list(argv)
            ) from exc
        except FileNotFoundError as exc:
            raise CollaboratorError(f"Command not found: {Path(argv[0]).name!r}", argv=list(argv)) from exc
        except OSError as exc:
            raise CollaboratorError(f"Failed to execute {argv[0]!r}: {exc}", argv=list(argv)) from exc

        if check and cp.returncode != 0:
            raise CollaboratorError(
                f"{' '.join(argv)} exited with {cp.returncode}: {_summarize_output(cp)}",
                argv=list(argv),
                returncode=cp.returncode,
            )
        return cp


@dataclass
class GemGenerator:
    runner: CommandRunner
    timeout: float | None = None
    options: Sequence[str] = GENERATOR_OPTIONS

    def generate(self, name: str, *, parent_dir: Path) -> Path:
        target = parent_dir / name
        if target.exists():
            raise GeneratorError(f"Target directory already exists: {target}")
        try:
            self.runner.run(["bundle", "gem", name, *self.options], cwd=parent_dir, timeout=self.timeout)
        except CollaboratorError as exc:
            raise GeneratorError(f"bundle gem {name} failed: {exc}") from exc
        if not target.is_dir():
            raise GeneratorError(f"bundle gem {name} did not create {target}")
        return target


class RemoteFetcher:
    def __init__(self, *, session: requests.Session | None = None, timeout: float | None = None) -> None:
        self._http = session or requests.Session()
        self._timeout = timeout

    def fetch(self, url: str, *, timeout: float | None = None) -> bytes:
        effective_timeout = timeout if timeout is not None else self._timeout
        try:
            res = self._http.get(url, timeout=effective_timeout)
        except requests.Timeout as exc:
            raise CollaboratorTimeout(f"GET {url} timed out") from exc
        except requests.RequestException as exc:
            raise CollaboratorError(f"GET {url} failed: {exc}") from exc
        if res.status_code >= 400:
            raise CollaboratorError(f"GET {url} returned HTTP {res.status_code}")
        return res.content

    def fetch_to(self, url: str, dest: Path, *, timeout: float | None = None) -> Path:
        data = self.fetch(url, timeout=timeout)
        write_bytes_atomic(dest, data)
        return dest


@dataclass
class DocumentConverter:
    runner: CommandRunner
    command: Sequence[str] = ("kramdoc", "--format=GFM")

    def convert_all(self, root: Path, *, timeout: float | None = None) -> list[Path]:
        """Convert every ``*.md`` in ``root`` to AsciiDoc and delete the Markdown original.

        The document set is fixed when the call starts. Returns the written ``.adoc`` paths.
        """

        produced: list[Path] = []
        for source in sorted(root.glob("*.md")):
            target = source.with_suffix(".adoc")
            argv = [*self.command, f"--output={target.name}", source.name]
            self.runner.run(argv, cwd=root, timeout=timeout)
            if not target.is_file():
                raise CollaboratorError(f"{self.command[0]} did not produce {target.name}", argv=argv)
            source.unlink()
            produced.append(target)
        return produced


@dataclass
class DependencyInstaller:
    runner: CommandRunner

    def install(self, root: Path, *, binstubs: Sequence[str] = (), timeout: float | None = None) -> list[Path]:
        self.runner.run(["bundle", "install"], cwd=root, timeout=timeout)
        if not binstubs:
            return []
        self.runner.run(["bundle", "binstubs", *binstubs], cwd=root, timeout=timeout)
        return [root / "bin"]


@dataclass
class LintAutofixer:
    runner: CommandRunner

    def autofix(self, root: Path, *, timeout: float | None = None) -> bool:
        """Run ``rubocop -a``. Offences left after autocorrect are not an error; returns whether it exited 0."""

        cp = self.runner.run(["rubocop", "-a"], cwd=root, timeout=timeout, check=False)
        return cp.returncode == 0
