"""
The ordered step catalogue that turns a `bundle gem` skeleton into a configured repository.

Every step takes the `ProjectContext`, touches files under `context.root_dir` only, and returns the paths it wants
staged for its checkpoint.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from gem_bootstrap import config_editor
from gem_bootstrap.checklist import PipelineStep, StepResult
from gem_bootstrap.collaborators import (
    CommandRunner,
    DependencyInstaller,
    DocumentConverter,
    LintAutofixer,
    RemoteFetcher,
)
from gem_bootstrap.config import Settings
from gem_bootstrap.context import ProjectContext
from gem_bootstrap.errors import PatchError
from gem_bootstrap.git_ops import CommitOutcome, GitCheckpoint
from gem_bootstrap.patcher import PatchRule, apply_patches


class VersionControl(Protocol):
    def reset_mixed(self) -> None:  # pragma: no cover
        raise NotImplementedError

    def stage(self, paths: Sequence[Path | str]) -> None:  # pragma: no cover
        raise NotImplementedError

    def commit(self, message: str) -> CommitOutcome:  # pragma: no cover
        raise NotImplementedError


@dataclass
class Collaborators:
    vcs: VersionControl
    fetcher: RemoteFetcher
    converter: DocumentConverter
    installer: DependencyInstaller
    autofixer: LintAutofixer


def default_collaborators(root_dir: Path, settings: Settings) -> Collaborators:
    runner = CommandRunner()
    return Collaborators(
        vcs=GitCheckpoint(root_dir, timeout=settings.timeout_seconds, runner=runner),
        fetcher=RemoteFetcher(),
        converter=DocumentConverter(runner, command=settings.converter),
        installer=DependencyInstaller(runner),
        autofixer=LintAutofixer(runner),
    )


def _lead(field_re: str) -> str:
    return rf"^(?P<lead>[ \t]*spec\.{field_re}[ \t]*=[ \t]*).*$"


GEMSPEC_METADATA_RULES: tuple[PatchRule, ...] = (
    PatchRule(_lead("authors"), "{lead}{authors_rb}", mandatory=True, description="spec.authors"),
    PatchRule(_lead("email"), "{lead}{email_rb}", mandatory=True, description="spec.email"),
    PatchRule(_lead("summary"), "{lead}{summary_rb}", mandatory=True, description="spec.summary"),
    PatchRule(_lead("description"), "{lead}{description_rb}", description="spec.description"),
    PatchRule(_lead("homepage"), "{lead}{homepage_rb}", mandatory=True, description="spec.homepage"),
    PatchRule(
        _lead(r"metadata\[[\"']source_code_uri[\"']\]"),
        "{lead}{homepage_rb}",
        description="spec.metadata source_code_uri",
    ),
    PatchRule(
        r"^[ \t]*spec\.metadata\[[\"']changelog_uri[\"']\][ \t]*=.*TODO.*\n",
        "",
        description="placeholder changelog_uri",
    ),
    PatchRule(
        r"^[ \t]*# Prevent pushing this gem to RubyGems\.org.*\n(?:[ \t]*#.*allow pushing to any host.*\n)?",
        "",
        description="allowed_push_host comment",
    ),
    PatchRule(
        r"^[ \t]*spec\.metadata\[[\"']allowed_push_host[\"']\][ \t]*=.*\n",
        "",
        description="allowed_push_host restriction",
    ),
)

LICENSE_RULES: tuple[PatchRule, ...] = (
    PatchRule(
        r"^(?P<lead>Copyright \([cC]\)[ \t]+)(?P<years>\d{4}(?:[-,][ \t]*\d{4})*)[ \t]+.*$",
        "{lead}{years} {authors}",
        mandatory=True,
        description="license copyright holder",
    ),
)

README_RULES: tuple[PatchRule, ...] = (
    PatchRule(r"^Welcome to your new gem!.*\n\n?", "", description="welcome paragraph"),
    PatchRule(
        r"^TODO: Delete this and the text above, and describe your gem.*$",
        "{description}",
        description="description placeholder",
    ),
    PatchRule(
        r"^TODO: Write usage instructions here.*$",
        "See the documentation at {homepage}.",
        description="usage placeholder",
    ),
    PatchRule(r"https://github\.com/\[USERNAME\]/[\w.-]+", "{homepage}", description="repository URL"),
    PatchRule(r"\[USERNAME\]", "{organization}", description="GitHub username"),
    PatchRule(
        re.compile(r"\A(?P<title># .+\n)(?!\n\[!\[Build Status\])"),
        "{title}\n"
        "[![Build Status](https://travis-ci.org/{organization}/{name}.svg?branch=master)]"
        "(https://travis-ci.org/{organization}/{name})\n"
        "[![codecov](https://codecov.io/gh/{organization}/{name}/branch/master/graph/badge.svg)]"
        "(https://codecov.io/gh/{organization}/{name})\n",
        description="status badges",
    ),
)

COVERAGE_GEMSPEC_RULES: tuple[PatchRule, ...] = (
    PatchRule(
        re.compile(
            r"\A(?!.*add_development_dependency[ \t(]+[\"']simplecov[\"'])(?P<body>.*\n)(?P<end>end\s*)\Z",
            re.DOTALL,
        ),
        '{body}  spec.add_development_dependency "codecov"\n'
        '  spec.add_development_dependency "simplecov"\n'
        "{end}",
        description="coverage development dependencies",
    ),
)

SIMPLECOV_PREAMBLE = (
    'require "simplecov"\n'
    "SimpleCov.start\n"
    'if ENV["CI"] == "true"\n'
    '  require "codecov"\n'
    "  SimpleCov.formatter = SimpleCov::Formatter::Codecov\n"
    "end\n"
    "\n"
)

SPEC_HELPER_RULES: tuple[PatchRule, ...] = (
    PatchRule(
        re.compile(r'\A(?!require "simplecov"\n)'),
        SIMPLECOV_PREAMBLE.replace("{", "{{").replace("}", "}}"),
        description="SimpleCov preamble",
    ),
)

LICENSE_CANDIDATES = ("LICENSE.txt", "LICENSE", "LICENSE.md")


def gemspec_path(context: ProjectContext) -> Path:
    return context.root_dir / f"{context.name}.gemspec"


def license_path(context: ProjectContext) -> Path:
    for name in LICENSE_CANDIDATES:
        candidate = context.root_dir / name
        if candidate.is_file():
            return candidate
    raise PatchError(f"No license file found in {context.root_dir} (looked for {', '.join(LICENSE_CANDIDATES)})")


def _rel(context: ProjectContext, *paths: Path) -> tuple[Path, ...]:
    return tuple(p.relative_to(context.root_dir) for p in paths)


def _patched_message(changed: bool) -> str | None:
    return None if changed else "already up to date"


def configure_travis(doc: config_editor.ConfigDocument, settings: Settings) -> None:
    config_editor.ensure_default(doc, "language", "ruby")
    config_editor.ensure_default(doc, "cache", "bundler")
    config_editor.ensure_default(doc, "sudo", False)
    config_editor.append_unique(doc, "rvm", settings.ruby_versions)
    config_editor.sort_dedup(doc, "rvm")

    alternates = [{"rvm": ruby} for ruby in settings.alternate_rubies]
    config_editor.append_unique(doc, "matrix.include", alternates)
    config_editor.append_unique(doc, "matrix.allow_failures", alternates)

    config_editor.append_unique(doc, "before_install", ["gem install -N bundler"])


def configure_hound(doc: config_editor.ConfigDocument) -> None:
    config_editor.ensure_default(doc, "ruby.enabled", True)
    config_editor.ensure_default(doc, "ruby.config_file", ".rubocop.yml")


def build_steps(collaborators: Collaborators, settings: Settings) -> list[PipelineStep]:
    vcs = collaborators.vcs

    def reset_index(context: ProjectContext) -> StepResult:
        vcs.reset_mixed()
        return StepResult()

    def gemspec_metadata(context: ProjectContext) -> StepResult:
        path = gemspec_path(context)
        report = apply_patches(path, GEMSPEC_METADATA_RULES, fields=context.template_fields())
        return StepResult(message=_patched_message(report.changed), paths=_rel(context, path))

    def license_holder(context: ProjectContext) -> StepResult:
        path = license_path(context)
        report = apply_patches(path, LICENSE_RULES, fields=context.template_fields())
        return StepResult(message=_patched_message(report.changed), paths=_rel(context, path))

    def readme(context: ProjectContext) -> StepResult:
        path = context.root_dir / "README.md"
        if not path.is_file():
            return StepResult(message="no README.md")
        report = apply_patches(path, README_RULES, fields=context.template_fields())
        return StepResult(message=_patched_message(report.changed))

    def convert_docs(context: ProjectContext) -> StepResult:
        produced = collaborators.converter.convert_all(context.root_dir, timeout=settings.timeout_for("convert-docs"))
        names = ", ".join(p.name for p in produced) or "nothing to convert"
        return StepResult(message=names, paths=_rel(context, *produced))

    def travis(context: ProjectContext) -> StepResult:
        path = context.root_dir / ".travis.yml"
        doc = config_editor.load_or_empty(path)
        configure_travis(doc, settings)
        config_editor.save(doc)
        return StepResult(paths=_rel(context, path))

    def rubocop(context: ProjectContext) -> StepResult:
        rubocop_path = collaborators.fetcher.fetch_to(
            settings.rubocop_url,
            context.root_dir / ".rubocop.yml",
            timeout=settings.timeout_for("rubocop"),
        )
        config_editor.load(rubocop_path)
        hound_path = context.root_dir / ".hound.yml"
        hound = config_editor.load_or_empty(hound_path)
        configure_hound(hound)
        config_editor.save(hound)
        return StepResult(paths=_rel(context, rubocop_path, hound_path))

    def editorconfig(context: ProjectContext) -> StepResult:
        path = collaborators.fetcher.fetch_to(
            settings.editorconfig_url,
            context.root_dir / ".editorconfig",
            timeout=settings.timeout_for("editorconfig"),
        )
        return StepResult(paths=_rel(context, path))

    def coverage(context: ProjectContext) -> StepResult:
        fields = context.template_fields()
        gemspec = gemspec_path(context)
        apply_patches(gemspec, COVERAGE_GEMSPEC_RULES, fields=fields)
        touched = [gemspec]
        spec_helper = context.root_dir / "spec" / "spec_helper.rb"
        if spec_helper.is_file():
            apply_patches(spec_helper, SPEC_HELPER_RULES, fields=fields)
            touched.append(spec_helper)
        return StepResult(paths=_rel(context, *touched))

    def dependencies(context: ProjectContext) -> StepResult:
        produced = collaborators.installer.install(
            context.root_dir,
            binstubs=settings.binstubs,
            timeout=settings.timeout_for("dependencies"),
        )
        existing = [p for p in produced if p.exists()]
        return StepResult(paths=_rel(context, *existing))

    def autofix(context: ProjectContext) -> StepResult:
        clean = collaborators.autofixer.autofix(context.root_dir, timeout=settings.timeout_for("autofix"))
        return StepResult(message=None if clean else "offences remain after autocorrect")

    return [
        PipelineStep("Unstage generated files", reset_index, step_id="reset-index"),
        PipelineStep(
            "Fill in gemspec metadata",
            gemspec_metadata,
            checkpoint=True,
            commit_message="Fill in gemspec metadata",
            step_id="gemspec-metadata",
        ),
        PipelineStep(
            "Set license copyright holder",
            license_holder,
            checkpoint=True,
            commit_message="Set license copyright holder",
            step_id="license",
        ),
        PipelineStep("Fill in README", readme, step_id="readme"),
        PipelineStep(
            "Convert Markdown documents to AsciiDoc",
            convert_docs,
            checkpoint=True,
            commit_message="Convert documentation to AsciiDoc",
            step_id="convert-docs",
        ),
        PipelineStep(
            "Configure Travis CI",
            travis,
            checkpoint=True,
            commit_message="Configure Travis CI",
            step_id="travis",
        ),
        PipelineStep(
            "Install RuboCop configuration",
            rubocop,
            checkpoint=True,
            commit_message="Add RuboCop and Hound configuration",
            step_id="rubocop",
        ),
        PipelineStep(
            "Install EditorConfig",
            editorconfig,
            checkpoint=True,
            commit_message="Add EditorConfig",
            step_id="editorconfig",
        ),
        PipelineStep(
            "Install SimpleCov and Codecov",
            coverage,
            checkpoint=True,
            commit_message="Set up SimpleCov and Codecov",
            step_id="coverage",
        ),
        PipelineStep(
            "Install dependencies and binstubs",
            dependencies,
            checkpoint=True,
            commit_message="Add binstubs",
            step_id="dependencies",
        ),
        PipelineStep(
            "Commit remaining generated files",
            lambda context: StepResult(),
            checkpoint=True,
            commit_message="Add remaining generated files",
            stage_paths=(".",),
            step_id="remaining",
        ),
        PipelineStep(
            "Apply RuboCop autocorrections",
            autofix,
            checkpoint=True,
            commit_message="Apply RuboCop autocorrections",
            stage_paths=(".",),
            step_id="autofix",
        ),
    ]
