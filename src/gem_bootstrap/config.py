from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gem_bootstrap.errors import ConfigError

DEFAULT_RUBOCOP_URL = "https://raw.githubusercontent.com/riboseinc/oss-guides/master/ci/rubocop.yml"
DEFAULT_EDITORCONFIG_URL = "https://raw.githubusercontent.com/riboseinc/oss-guides/master/ci/editorconfig"


@dataclass(frozen=True)
class Settings:
    rubocop_url: str = DEFAULT_RUBOCOP_URL
    editorconfig_url: str = DEFAULT_EDITORCONFIG_URL
    ruby_versions: tuple[str, ...] = ("2.6", "2.5", "2.4", "2.3")
    alternate_rubies: tuple[str, ...] = ("ruby-head", "jruby-head")
    binstubs: tuple[str, ...] = ("rspec-core",)
    converter: tuple[str, ...] = ("kramdoc", "--format=GFM")
    timeout_seconds: float | None = None
    timeouts: dict[str, float] = field(default_factory=dict)

    def timeout_for(self, step_id: str) -> float | None:
        return self.timeouts.get(step_id, self.timeout_seconds)


def _load_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    return data


def _require_str(value: Any, *, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{where} must be a non-empty string")
    return value.strip()


def _require_str_list(value: Any, *, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        raise ConfigError(f"{where} must be an array of non-empty strings")
    return tuple(v.strip() for v in value)


def _require_timeout(value: Any, *, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{where} must be a positive number of seconds")
    return float(value)


_KNOWN_KEYS = {
    "rubocop_url",
    "editorconfig_url",
    "ruby_versions",
    "alternate_rubies",
    "binstubs",
    "converter",
    "timeout_seconds",
    "timeouts",
}


def load_settings(path: Path | None) -> Settings:
    if path is None:
        return Settings()

    data = _load_toml(path)
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"{path}: unknown keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key in ("rubocop_url", "editorconfig_url"):
        if key in data:
            kwargs[key] = _require_str(data[key], where=key)
    for key in ("ruby_versions", "alternate_rubies", "binstubs", "converter"):
        if key in data:
            kwargs[key] = _require_str_list(data[key], where=key)
    if "converter" in kwargs and not kwargs["converter"]:
        raise ConfigError("converter must name a command")
    if "timeout_seconds" in data:
        kwargs["timeout_seconds"] = _require_timeout(data["timeout_seconds"], where="timeout_seconds")

    timeouts_raw = data.get("timeouts", {})
    if not isinstance(timeouts_raw, dict):
        raise ConfigError("timeouts must be a table of step id -> seconds")
    kwargs["timeouts"] = {
        str(step_id): _require_timeout(value, where=f"timeouts.{step_id}") for step_id, value in timeouts_raw.items()
    }
    return Settings(**kwargs)
