from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from gem_bootstrap.errors import ParseError
from gem_bootstrap.pathing import write_text_atomic

KeyPath = str | tuple[str, ...]


@dataclass
class ConfigDocument:
    path: Path
    data: dict[str, Any]


def _split_key_path(key_path: KeyPath) -> tuple[str, ...]:
    parts = tuple(key_path.split(".")) if isinstance(key_path, str) else tuple(key_path)
    if not parts or any(not p for p in parts):
        raise ValueError(f"Invalid key path: {key_path!r}")
    return parts


def _parent_mapping(doc: ConfigDocument, parts: tuple[str, ...]) -> dict[str, Any]:
    node: dict[str, Any] = doc.data
    for i, key in enumerate(parts[:-1]):
        child = node.get(key)
        if child is None:
            child = {}
            node[key] = child
        if not isinstance(child, dict):
            where = ".".join(parts[: i + 1])
            raise ParseError(f"{doc.path}: expected a mapping at {where!r}, found {type(child).__name__}")
        node = child
    return node


def _list_at(doc: ConfigDocument, parts: tuple[str, ...], *, create: bool) -> list[Any]:
    parent = _parent_mapping(doc, parts)
    value = parent.get(parts[-1])
    if value is None:
        if not create:
            return []
        value = []
        parent[parts[-1]] = value
    elif not isinstance(value, list):
        # Single-value shorthand, e.g. `rvm: 2.6`.
        value = [value]
        parent[parts[-1]] = value
    return value


def load(path: Path) -> ConfigDocument:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ParseError(f"Missing config file: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Failed to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid YAML in {path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ParseError(f"Invalid YAML root in {path}: expected mapping, found {type(raw).__name__}")
    return ConfigDocument(path=path, data=raw)


def load_or_empty(path: Path) -> ConfigDocument:
    if not path.exists():
        return ConfigDocument(path=path, data={})
    return load(path)


def ensure_default(doc: ConfigDocument, key_path: KeyPath, value: Any) -> bool:
    """Set ``key_path`` to ``value`` unless the key is already present. Returns whether it was set."""

    parts = _split_key_path(key_path)
    parent = _parent_mapping(doc, parts)
    if parts[-1] in parent:
        return False
    parent[parts[-1]] = value
    return True


def append_unique(doc: ConfigDocument, key_path: KeyPath, items: Iterable[Any]) -> int:
    """Append each item not already in the list at ``key_path`` (by value equality).

    Items may be compound (mappings, lists). Returns the number of items appended.
    """

    parts = _split_key_path(key_path)
    values = _list_at(doc, parts, create=True)
    added = 0
    for item in items:
        if item in values:
            continue
        values.append(copy.deepcopy(item))
        added += 1
    return added


def _canonical_scalar(value: Any, *, where: str) -> str:
    if isinstance(value, (dict, list, tuple, set)):
        raise TypeError(f"{where}: cannot sort-dedup compound entry {value!r}")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def sort_dedup(doc: ConfigDocument, key_path: KeyPath) -> list[str]:
    """Sort the scalar list at ``key_path`` and drop duplicates.

    Entries are canonicalised to strings first, so ``2.4`` and ``"2.4"`` collapse into one. Lists holding
    compound entries raise ``TypeError``: run ``append_unique`` on those and leave their order alone.
    """

    parts = _split_key_path(key_path)
    where = f"{doc.path}:{'.'.join(parts)}"
    values = _list_at(doc, parts, create=False)
    if not values:
        return []
    result = sorted({_canonical_scalar(v, where=where) for v in values})
    _parent_mapping(doc, parts)[parts[-1]] = result
    return result


def get(doc: ConfigDocument, key_path: KeyPath, default: Any = None) -> Any:
    node: Any = doc.data
    for key in _split_key_path(key_path):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def dumps(doc: ConfigDocument) -> str:
    return yaml.safe_dump(doc.data, sort_keys=True, default_flow_style=False, allow_unicode=True)


def save(doc: ConfigDocument, path: Path | None = None) -> Path:
    target = path or doc.path
    write_text_atomic(target, dumps(doc))
    return target
