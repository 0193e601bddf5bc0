from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import requests

from gem_bootstrap.collaborators import (
    DependencyInstaller,
    DocumentConverter,
    LintAutofixer,
    RemoteFetcher,
)
from gem_bootstrap.config import DEFAULT_EDITORCONFIG_URL, DEFAULT_RUBOCOP_URL
from gem_bootstrap.errors import CollaboratorError
from gem_bootstrap.git_ops import CommitOutcome
from gem_bootstrap.steps import Collaborators

GEMSPEC_TEMPLATE = """\
lib = File.expand_path("lib", __dir__)
$LOAD_PATH.unshift(lib) unless $LOAD_PATH.include?(lib)
require "{name}/version"

Gem::Specification.new do |spec|
  spec.name          = "{name}"
  spec.version       = {module}::VERSION
  spec.authors       = ["TODO: Write your name"]
  spec.email         = ["TODO: Write your email address"]

  spec.summary       = %q{{TODO: Write a short summary, because RubyGems requires one.}}
  spec.description   = %q{{TODO: Write a longer description or delete this line.}}
  spec.homepage      = "TODO: Put your gem's website or public repo URL here."
  spec.license       = "MIT"

  # Prevent pushing this gem to RubyGems.org. To allow pushes either set the 'allowed_push_host'
  # to allow pushing to a single host or delete this section to allow pushing to any host.
  if spec.respond_to?(:metadata)
    spec.metadata["allowed_push_host"] = "TODO: Set to 'http://mygemserver.com'"

    spec.metadata["homepage_uri"] = spec.homepage
    spec.metadata["source_code_uri"] = "TODO: Put your gem's public repo URL here."
    spec.metadata["changelog_uri"] = "TODO: Put your gem's CHANGELOG.md URL here."
  else
    raise "RubyGems 2.0 or newer is required to protect against " \\
      "public gem pushes."
  end

  spec.files         = Dir.chdir(File.expand_path('..', __FILE__)) do
    `git ls-files -z`.split("\\x0").reject {{ |f| f.match(%r{{^(test|spec|features)/}}) }}
  end
  spec.require_paths = ["lib"]

  spec.add_development_dependency "bundler", "~> 2.0"
  spec.add_development_dependency "rake", "~> 10.0"
  spec.add_development_dependency "rspec", "~> 3.0"
end
"""

LICENSE_TEMPLATE = """\
The MIT License (MIT)

Copyright (c) 2019 TODO: Write your name

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software").
"""

README_TEMPLATE = """\
# {module}

Welcome to your new gem! In this directory, you'll find the files you need to be able to package up your Ruby library into a gem. Put your Ruby code in the file `lib/{name}`.

TODO: Delete this and the text above, and describe your gem

## Usage

TODO: Write usage instructions here

## Contributing

Bug reports and pull requests are welcome on GitHub at https://github.com/[USERNAME]/{name}. Everyone is expected to follow the [code of conduct](https://github.com/[USERNAME]/{name}/blob/master/CODE_OF_CONDUCT.md).
"""

TRAVIS_TEMPLATE = """\
---
sudo: false
language: ruby
cache: bundler
rvm:
  - 2.4
before_install: gem install bundler -v 2.0.1
"""

SPEC_HELPER_TEMPLATE = """\
require "bundler/setup"
require "{name}"

RSpec.configure do |config|
  config.disable_monkey_patching!
end
"""


def write_gem_skeleton(root: Path, name: str) -> Path:
    module = "".join(part.capitalize() for part in name.split("_"))
    values = {"name": name, "module": module}
    files = {
        f"{name}.gemspec": GEMSPEC_TEMPLATE,
        "LICENSE.txt": LICENSE_TEMPLATE,
        "README.md": README_TEMPLATE,
        "CODE_OF_CONDUCT.md": "# Contributor Covenant Code of Conduct\n",
        ".travis.yml": TRAVIS_TEMPLATE,
        "spec/spec_helper.rb": SPEC_HELPER_TEMPLATE,
        f"lib/{name}.rb": f'require "{name}/version"\n',
        f"lib/{name}/version.rb": f'module {module}\n  VERSION = "0.1.0"\nend\n',
    }
    for rel, template in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(template.format(**values), encoding="utf-8")
    return root


@dataclass
class SpyVcs:
    calls: list[tuple[str, object]] = field(default_factory=list)
    fail_stage: bool = False

    def reset_mixed(self) -> None:
        self.calls.append(("reset", None))

    def stage(self, paths: Sequence[Path | str]) -> None:
        if self.fail_stage:
            raise CollaboratorError("git add: pathspec did not match any files")
        self.calls.append(("stage", [Path(p).as_posix() for p in paths]))

    def commit(self, message: str) -> CommitOutcome:
        self.calls.append(("commit", message))
        return CommitOutcome(committed=True, detail="deadbeef")

    @property
    def commit_messages(self) -> list[str]:
        return [str(arg) for name, arg in self.calls if name == "commit"]


@dataclass
class FakeRunner:
    """Stands in for `CommandRunner`, emulating kramdoc, bundler and rubocop on the local tree."""

    calls: list[list[str]] = field(default_factory=list)
    rubocop_returncode: int = 1
    errors: dict[tuple[str, ...], Exception] = field(default_factory=dict)

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        timeout: float | None = None,
        check: bool = True,
        capture: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        del timeout, check, capture
        argv = list(argv)
        self.calls.append(argv)
        for prefix, exc in self.errors.items():
            if tuple(argv[: len(prefix)]) == prefix:
                raise exc
        returncode = 0
        if argv[0] == "kramdoc":
            output = next(a.split("=", 1)[1] for a in argv if a.startswith("--output="))
            source = cwd / argv[-1]
            (cwd / output).write_text(source.read_text(encoding="utf-8"), encoding="utf-8")
        elif argv[:2] == ["bundle", "binstubs"]:
            (cwd / "bin").mkdir(exist_ok=True)
            (cwd / "bin" / "rspec").write_text("#!/usr/bin/env ruby\n", encoding="utf-8")
        elif argv[0] == "rubocop":
            returncode = self.rubocop_returncode
        return subprocess.CompletedProcess(args=argv, returncode=returncode, stdout="", stderr="")

    def ran(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == list(prefix) for call in self.calls)


@dataclass
class FakeResponse:
    status_code: int
    content: bytes


@dataclass
class FakeSession:
    responses: dict[str, bytes] = field(default_factory=dict)
    failing_urls: set[str] = field(default_factory=set)
    requested: list[str] = field(default_factory=list)

    def get(self, url: str, *, timeout: float | None = None) -> FakeResponse:
        del timeout
        self.requested.append(url)
        if url in self.failing_urls:
            raise requests.ConnectionError(f"Failed to establish a new connection to {url}")
        if url not in self.responses:
            return FakeResponse(status_code=404, content=b"Not Found")
        return FakeResponse(status_code=200, content=self.responses[url])


@dataclass
class FakeWorld:
    vcs: SpyVcs
    runner: FakeRunner
    session: FakeSession

    def collaborators(self) -> Collaborators:
        return Collaborators(
            vcs=self.vcs,
            fetcher=RemoteFetcher(session=self.session),  # type: ignore[arg-type]
            converter=DocumentConverter(self.runner),  # type: ignore[arg-type]
            installer=DependencyInstaller(self.runner),  # type: ignore[arg-type]
            autofixer=LintAutofixer(self.runner),  # type: ignore[arg-type]
        )


@pytest.fixture
def gem_skeleton() -> Callable[[Path, str], Path]:
    return write_gem_skeleton


@pytest.fixture
def fake_world() -> FakeWorld:
    session = FakeSession(
        responses={
            DEFAULT_RUBOCOP_URL: b"AllCops:\n  TargetRubyVersion: 2.3\n",
            DEFAULT_EDITORCONFIG_URL: b"root = true\n\n[*]\nindent_style = space\n",
        }
    )
    return FakeWorld(vcs=SpyVcs(), runner=FakeRunner(), session=session)
