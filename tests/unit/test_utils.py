from __future__ import annotations

import os
from pathlib import Path

import pytest

from reposcout import utils


def test_resolve_directory_validates(tmp_path):
    assert utils.resolve_directory(tmp_path) == tmp_path.resolve()
    with pytest.raises(FileNotFoundError):
        utils.resolve_directory(tmp_path / "missing")
    file_path = tmp_path / "file.txt"
    file_path.write_text("x")
    with pytest.raises(NotADirectoryError):
        utils.resolve_directory(file_path)


def test_normalize_path_key_collapses_redundant_parts(tmp_path):
    messy = os.path.join(str(tmp_path), "a", ".", "b", "..", "c")
    assert utils.normalize_path_key(messy) == utils.normalize_path_key(tmp_path / "a" / "c")


def test_path_exists_accepts_files_and_directories(tmp_path):
    file_path = tmp_path / "file.txt"
    file_path.write_text("x")

    assert utils.path_exists(tmp_path) is True
    assert utils.path_exists(file_path) is True
    assert utils.path_exists(tmp_path / "missing") is False


def test_ignore_spec_matches_directory_names_at_any_depth():
    spec = utils.build_ignore_spec(["node_modules", "  ", "*.egg-info", "# comment"])

    assert utils.is_ignored_directory(spec, "node_modules") is True
    assert utils.is_ignored_directory(spec, "demo.egg-info") is True
    assert utils.is_ignored_directory(spec, "src") is False
    assert utils.has_ignored_component(spec, Path("team/node_modules/lib/.git")) is True
    assert utils.has_ignored_component(spec, Path("team/app/.git")) is False


def test_has_ignored_component_ignores_final_segment():
    spec = utils.build_ignore_spec(["build"])

    assert utils.has_ignored_component(spec, Path("projects/build")) is False
    assert utils.has_ignored_component(spec, Path("projects/build/app")) is True


def test_build_ignore_spec_returns_none_when_empty():
    assert utils.build_ignore_spec([]) is None
    assert utils.build_ignore_spec(None) is None
    assert utils.is_ignored_directory(None, "node_modules") is False
    assert utils.has_ignored_component(None, "node_modules/x") is False


def test_resolve_git_dir_handles_directories_and_pointer_files(tmp_path):
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    assert utils.resolve_git_dir(repo) == repo / ".git"

    worktree = tmp_path / "worktree"
    worktree.mkdir()
    (worktree / ".git").write_text("gitdir: ../repo/.git/worktrees/wt\n")
    assert utils.resolve_git_dir(worktree) == (worktree / "../repo/.git/worktrees/wt").resolve()

    assert utils.resolve_git_dir(tmp_path / "plain") is None


def test_format_path_relative_to_home(monkeypatch, tmp_path):
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

    assert utils.format_path(tmp_path / "code" / "app") == "~/code/app"
    assert utils.format_path(tmp_path / "x", base=tmp_path) == "./x"


def test_ensure_positive_and_plural():
    assert utils.ensure_positive(3, "top") == 3
    with pytest.raises(ValueError):
        utils.ensure_positive(0, "top")
    assert utils.plural(1) == ""
    assert utils.plural(2) == "s"
    assert utils.plural(2, "y", "ies") == "ies"


def test_unique_paths_keeps_first_occurrence(tmp_path):
    first = str(tmp_path / "a")
    duplicate = os.path.join(str(tmp_path), "b", "..", "a")

    assert utils.unique_paths([first, duplicate, str(tmp_path / "c")]) == [
        first,
        str(tmp_path / "c"),
    ]
