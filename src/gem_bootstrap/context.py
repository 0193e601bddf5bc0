from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from gem_bootstrap.errors import UsageError
from gem_bootstrap.pathing import gem_module_name, validate_gem_name

DEFAULT_AUTHORS = ("Ribose Inc.",)
DEFAULT_EMAIL = "open.source@ribose.com"
DEFAULT_ORGANIZATION = "riboseinc"

ENV_AUTHORS = "GEM_AUTHORS"
ENV_EMAIL = "GEM_EMAIL"
ENV_ORGANIZATION = "GEM_ORGANIZATION"
ENV_HOMEPAGE = "GEM_HOMEPAGE"
ENV_SUMMARY = "GEM_SUMMARY"
ENV_DESCRIPTION = "GEM_DESCRIPTION"


def _ruby_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("#{", "\\#{")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


@dataclass(frozen=True)
class ProjectContext:
    name: str
    authors: tuple[str, ...]
    email: str
    organization: str
    homepage: str
    summary: str
    description: str
    root_dir: Path

    @property
    def module_name(self) -> str:
        return gem_module_name(self.name)

    @property
    def authors_text(self) -> str:
        return ", ".join(self.authors)

    def template_fields(self) -> dict[str, str]:
        """Values available to patch replacement templates.

        Each ``*_rb`` entry is the matching field rendered as a Ruby string literal, so templates writing
        Ruby source never splice raw user metadata into code.
        """

        fields = {
            "name": self.name,
            "module_name": self.module_name,
            "authors": self.authors_text,
            "email": self.email,
            "organization": self.organization,
            "homepage": self.homepage,
            "summary": self.summary,
            "description": self.description,
            "year": str(datetime.now(timezone.utc).year),
        }
        fields["authors_rb"] = "[" + ", ".join(_ruby_string(a) for a in self.authors) + "]"
        fields["email_rb"] = f"[{_ruby_string(self.email)}]"
        for key in ("name", "homepage", "summary", "description"):
            fields[f"{key}_rb"] = _ruby_string(getattr(self, key))
        return fields


def _env_str(env: Mapping[str, str], name: str) -> str:
    return str(env.get(name) or "").strip()


def _split_authors(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def build_project_context(
    name: str,
    *,
    parent_dir: Path,
    env: Mapping[str, str] | None = None,
) -> ProjectContext:
    if env is None:
        env = os.environ
    try:
        gem_name = validate_gem_name(name)
    except ValueError as exc:
        raise UsageError(str(exc)) from exc

    authors = _split_authors(_env_str(env, ENV_AUTHORS)) or DEFAULT_AUTHORS
    email = _env_str(env, ENV_EMAIL) or DEFAULT_EMAIL
    organization = _env_str(env, ENV_ORGANIZATION) or DEFAULT_ORGANIZATION
    homepage = _env_str(env, ENV_HOMEPAGE) or f"https://github.com/{organization}/{gem_name}"
    summary = _env_str(env, ENV_SUMMARY) or f"{gem_module_name(gem_name)} gem."
    description = _env_str(env, ENV_DESCRIPTION) or summary

    return ProjectContext(
        name=gem_name,
        authors=authors,
        email=email,
        organization=organization,
        homepage=homepage.rstrip("/"),
        summary=summary,
        description=description,
        root_dir=(parent_dir / gem_name).resolve(),
    )
