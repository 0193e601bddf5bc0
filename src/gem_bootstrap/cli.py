from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import NoReturn

from gem_bootstrap.checklist import ProgressReporter
from gem_bootstrap.collaborators import CommandRunner, GemGenerator
from gem_bootstrap.config import Settings, load_settings
from gem_bootstrap.context import (
    DEFAULT_AUTHORS,
    DEFAULT_EMAIL,
    DEFAULT_ORGANIZATION,
    ENV_AUTHORS,
    ENV_DESCRIPTION,
    ENV_EMAIL,
    ENV_HOMEPAGE,
    ENV_ORGANIZATION,
    ENV_SUMMARY,
    build_project_context,
)
from gem_bootstrap.errors import BootstrapError, UsageError
from gem_bootstrap.pipeline import PipelineRun, run_pipeline
from gem_bootstrap.steps import Collaborators, build_steps, default_collaborators

CollaboratorsFactory = Callable[[Path, Settings], Collaborators]


def _eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


_ENV_HELP = f"""\
environment:
  {ENV_AUTHORS:<16} comma-separated gem authors (default: {", ".join(DEFAULT_AUTHORS)})
  {ENV_EMAIL:<16} contact email (default: {DEFAULT_EMAIL})
  {ENV_ORGANIZATION:<16} GitHub organization (default: {DEFAULT_ORGANIZATION})
  {ENV_HOMEPAGE:<16} homepage URI (default: https://github.com/<organization>/<name>)
  {ENV_SUMMARY:<16} one-line summary (default: "<Module> gem.")
  {ENV_DESCRIPTION:<16} longer description (default: the summary)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="gem-bootstrap",
        description="Create a Ruby gem with `bundle gem` and configure it: metadata, CI, linting and coverage.",
        epilog=_ENV_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("names", nargs="*", metavar="NAME", help="Name of the gem to create (exactly one).")
    parser.add_argument("--config", type=Path, help="TOML file overriding template URLs, Ruby versions and timeouts.")
    parser.add_argument(
        "--directory",
        type=Path,
        default=None,
        help="Parent directory for the new gem (default: current directory).",
    )
    return parser


def bootstrap(
    name: str,
    *,
    parent_dir: Path,
    settings: Settings,
    env: Mapping[str, str] | None = None,
    generator: GemGenerator | None = None,
    collaborators_factory: CollaboratorsFactory = default_collaborators,
    reporter: ProgressReporter | None = None,
) -> PipelineRun:
    context = build_project_context(name, parent_dir=parent_dir, env=env)
    generator = generator or GemGenerator(CommandRunner(), timeout=settings.timeout_for("generate"))
    generator.generate(context.name, parent_dir=parent_dir)

    collaborators = collaborators_factory(context.root_dir, settings)
    steps = build_steps(collaborators, settings)
    return run_pipeline(context, steps, vcs=collaborators.vcs, reporter=reporter)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        if len(args.names) != 1:
            raise UsageError(f"expected exactly one gem name, got {len(args.names)}")
        settings = load_settings(args.config)
        parent_dir = (args.directory or Path.cwd()).resolve()
        if not parent_dir.is_dir():
            raise UsageError(f"Not a directory: {parent_dir}")
        run = bootstrap(args.names[0], parent_dir=parent_dir, settings=settings, env=os.environ)
    except UsageError as exc:
        parser.print_usage(sys.stderr)
        _eprint(f"ERROR: {exc}")
        return 1
    except BootstrapError as exc:
        _eprint(f"ERROR: {exc}")
        return 1

    if run.failure is not None:
        _eprint(f"ERROR: step {run.failure.label!r} failed: {run.failure.error}")
        _eprint(f"Completed before the failure: {', '.join(run.completed) or 'nothing'}")
        _eprint(f"Fix the problem in {run.context.root_dir} and finish the remaining steps by hand.")
        return 1

    print(f"Created {run.context.name} in {run.context.root_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
