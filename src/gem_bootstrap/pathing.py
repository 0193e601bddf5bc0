from __future__ import annotations

import os
import re
from pathlib import Path

_GEM_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")


def validate_gem_name(name: str) -> str:
    cleaned = name.strip()
    if not _GEM_NAME_RE.match(cleaned):
        raise ValueError(
            f"Invalid gem name {name!r}: use letters, digits, '_' and '-', starting with a letter."
        )
    return cleaned


def gem_module_name(name: str) -> str:
    """Ruby constant path for a gem name, following bundler's convention.

    ``foo_bar`` becomes ``FooBar`` and ``foo-bar`` becomes ``Foo::Bar``.
    """

    parts = []
    for segment in name.split("-"):
        parts.append("".join(word[:1].upper() + word[1:] for word in segment.split("_") if word))
    return "::".join(p for p in parts if p)


def write_text_atomic(path: Path, text: str) -> None:
    tmp_out = path.with_name(f".{path.name}.tmp")
    if tmp_out.exists():
        tmp_out.unlink()

    try:
        tmp_out.write_text(text, encoding="utf-8", newline="")
    except Exception:
        try:
            if tmp_out.exists():
                tmp_out.unlink()
        except OSError:
            pass
        raise

    os.replace(tmp_out, path)


def write_bytes_atomic(path: Path, data: bytes) -> None:
    tmp_out = path.with_name(f".{path.name}.tmp")
    if tmp_out.exists():
        tmp_out.unlink()

    try:
        tmp_out.write_bytes(data)
    except Exception:
        try:
            if tmp_out.exists():
                tmp_out.unlink()
        except OSError:
            pass
        raise

    os.replace(tmp_out, path)
