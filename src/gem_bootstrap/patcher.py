from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from gem_bootstrap.errors import PatchError
from gem_bootstrap.pathing import write_text_atomic


@dataclass(frozen=True)
class PatchRule:
    """A regex find/replace applied to one file.

    ``replacement`` is a ``str.format`` template rendered against the project fields plus the match's named
    groups; the rendered text is inserted literally. Use ``{{``/``}}`` for literal braces.
    """

    pattern: str | re.Pattern[str]
    replacement: str
    mandatory: bool = False
    description: str | None = None

    def compiled(self) -> re.Pattern[str]:
        if isinstance(self.pattern, re.Pattern):
            return self.pattern
        return re.compile(self.pattern, re.MULTILINE)

    @property
    def label(self) -> str:
        if self.description:
            return self.description
        return self.compiled().pattern


@dataclass(frozen=True)
class PatchReport:
    path: Path
    match_counts: tuple[int, ...]
    changed: bool

    @property
    def total_matches(self) -> int:
        return sum(self.match_counts)


def _render(template: str, *, fields: Mapping[str, str], match: re.Match[str], where: str) -> str:
    values: dict[str, str] = dict(fields)
    for key, value in match.groupdict().items():
        values[key] = value or ""
    try:
        return template.format_map(values)
    except (KeyError, IndexError, ValueError) as exc:
        raise PatchError(f"{where}: bad replacement template {template!r}: {exc}") from exc


def patch_text(
    text: str,
    rules: Sequence[PatchRule],
    *,
    fields: Mapping[str, str],
    where: str = "<text>",
) -> tuple[str, tuple[int, ...]]:
    counts: list[int] = []
    for rule in rules:
        regex = rule.compiled()
        text, count = regex.subn(
            lambda m, rule=rule: _render(rule.replacement, fields=fields, match=m, where=where),
            text,
        )
        if count == 0 and rule.mandatory:
            raise PatchError(
                f"{where}: required pattern not found: {rule.label}",
                path=where,
                pattern=regex.pattern,
            )
        counts.append(count)
    return text, tuple(counts)


def apply_patches(path: Path, rules: Sequence[PatchRule], *, fields: Mapping[str, str]) -> PatchReport:
    """Apply ``rules`` in order to ``path`` in place.

    The file is written once, atomically, and only when every rule succeeded and the content changed. A
    mandatory rule that matches nothing raises ``PatchError`` and leaves the file untouched.
    """

    try:
        original = path.read_bytes().decode("utf-8")
    except FileNotFoundError as exc:
        raise PatchError(f"Missing file to patch: {path}", path=str(path)) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise PatchError(f"Failed to read {path}: {exc}", path=str(path)) from exc

    # Rules are written against LF text; a file that is CRLF throughout is patched as LF and written back as CRLF.
    crlf = "\r\n" in original and original.count("\r\n") == original.count("\n")
    text = original.replace("\r\n", "\n") if crlf else original
    patched, counts = patch_text(text, rules, fields=fields, where=str(path))
    if crlf:
        patched = patched.replace("\n", "\r\n")
    changed = patched != original
    if changed:
        write_text_atomic(path, patched)
    return PatchReport(path=path, match_counts=counts, changed=changed)
