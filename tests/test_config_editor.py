from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from gem_bootstrap import config_editor
from gem_bootstrap.errors import ParseError


def _doc(tmp_path: Path, text: str) -> config_editor.ConfigDocument:
    path = tmp_path / ".travis.yml"
    path.write_text(text, encoding="utf-8")
    return config_editor.load(path)


def test_ensure_default_only_sets_missing_keys(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "language: ruby\n")

    assert config_editor.ensure_default(doc, "language", "python") is False
    assert config_editor.ensure_default(doc, "cache", "bundler") is True
    assert config_editor.ensure_default(doc, "cache", "npm") is False
    assert config_editor.ensure_default(doc, ("ruby", "enabled"), True) is True

    assert doc.data == {"language": "ruby", "cache": "bundler", "ruby": {"enabled": True}}


def test_append_unique_twice_leaves_list_unchanged(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "rvm:\n  - '2.6'\n")
    items = ["2.5", "2.6", "2.4"]

    assert config_editor.append_unique(doc, "rvm", items) == 2
    once = list(doc.data["rvm"])
    assert config_editor.append_unique(doc, "rvm", items) == 0

    assert doc.data["rvm"] == once == ["2.6", "2.5", "2.4"]


def test_sort_dedup_sorts_and_removes_duplicates(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "rvm: ['2.6', '2.4', '2.4', '2.3']\n")

    assert config_editor.sort_dedup(doc, "rvm") == ["2.3", "2.4", "2.6"]
    assert doc.data["rvm"] == ["2.3", "2.4", "2.6"]


def test_sort_dedup_collapses_numeric_and_string_versions(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "rvm:\n  - 2.4\n")
    config_editor.append_unique(doc, "rvm", ["2.4", "2.3"])

    assert config_editor.sort_dedup(doc, "rvm") == ["2.3", "2.4"]


def test_sort_dedup_rejects_compound_entries(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "matrix:\n  include:\n    - rvm: jruby-head\n")

    with pytest.raises(TypeError):
        config_editor.sort_dedup(doc, "matrix.include")


def test_same_entry_is_kept_in_two_key_paths(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "{}\n")
    entries = [{"rvm": "ruby-head"}, {"rvm": "jruby-head"}]

    config_editor.append_unique(doc, "matrix.include", entries)
    config_editor.append_unique(doc, "matrix.allow_failures", entries)
    config_editor.append_unique(doc, "matrix.include", entries)
    config_editor.save(doc)

    text = doc.path.read_text(encoding="utf-8")
    assert "&id" not in text
    reloaded = yaml.safe_load(text)
    assert reloaded["matrix"]["include"] == entries
    assert reloaded["matrix"]["allow_failures"] == entries


def test_scalar_value_is_promoted_to_list(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "before_install: gem install bundler -v 2.0.1\n")

    config_editor.append_unique(doc, "before_install", ["gem install -N bundler"])

    assert doc.data["before_install"] == ["gem install bundler -v 2.0.1", "gem install -N bundler"]


def test_save_is_byte_stable(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "rvm: [2.6]\nlanguage: ruby\ncache: bundler\n")
    config_editor.append_unique(doc, "rvm", ["2.5"])
    config_editor.save(doc)
    first = doc.path.read_bytes()

    again = config_editor.load(doc.path)
    config_editor.append_unique(again, "rvm", ["2.5"])
    config_editor.save(again)

    assert doc.path.read_bytes() == first
    assert first.index(b"cache") < first.index(b"language") < first.index(b"rvm")


def test_load_rejects_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "broken.yml"
    path.write_text("rvm: [2.6\n", encoding="utf-8")

    with pytest.raises(ParseError, match="Invalid YAML"):
        config_editor.load(path)


def test_load_rejects_non_mapping_root(tmp_path: Path) -> None:
    path = tmp_path / "list.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ParseError, match="expected mapping"):
        config_editor.load(path)


def test_load_or_empty_for_missing_file(tmp_path: Path) -> None:
    doc = config_editor.load_or_empty(tmp_path / ".hound.yml")
    assert doc.data == {}


def test_nested_key_through_scalar_is_a_parse_error(tmp_path: Path) -> None:
    doc = _doc(tmp_path, "matrix: fast\n")

    with pytest.raises(ParseError, match="expected a mapping"):
        config_editor.append_unique(doc, "matrix.include", [{"rvm": "ruby-head"}])
