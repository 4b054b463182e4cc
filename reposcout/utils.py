"""Utility helpers for filesystem access and path handling."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence
import os


def resolve_directory(path: Path | str) -> Path:
    """Resolve and validate a user supplied directory path."""
    dir_path = Path(path).expanduser().resolve()
    if not dir_path.exists():
        raise FileNotFoundError(f"Directory does not exist: {dir_path}")
    if not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    return dir_path


def normalize_path_key(path: Path | str) -> str:
    """Return the comparison key for *path* under the host's path rules."""

    return os.path.normcase(os.path.normpath(os.fspath(path)))


def path_exists(path: Path | str) -> bool:
    """Return True if *path* is an existing file or directory."""

    try:
        return os.path.isdir(path) or os.path.isfile(path)
    except (OSError, ValueError):
        return False


def build_ignore_spec(patterns: Iterable[str] | None):
    """Compile directory ignore entries into a gitignore-style spec.

    Plain names (``node_modules``) match a directory of that name at any depth;
    entries with glob characters (``*.egg-info``) are passed through unchanged.
    Returns None when no usable pattern is given.
    """

    from pathspec.gitignore import GitIgnoreSpec

    lines: list[str] = []
    for raw in patterns or ():
        if raw is None:
            continue
        token = raw.strip().replace("\\", "/").strip("/")
        if not token or token.startswith("#"):
            continue
        lines.append(f"{token}/")
    if not lines:
        return None
    return GitIgnoreSpec.from_lines(lines)


def is_ignored_directory(spec, name: str) -> bool:
    """Return True if a directory called *name* matches the ignore *spec*."""

    if spec is None or not name:
        return False
    return spec.check_file(f"{name}/").include is True


def has_ignored_component(spec, path: Path | str) -> bool:
    """Return True if any directory component of *path* is ignored."""

    if spec is None:
        return False
    parts = Path(path).parts
    for part in parts[:-1] if len(parts) > 1 else parts:
        if part in ("/", "\\") or part.endswith((":\\", ":/")):
            continue
        if is_ignored_directory(spec, part):
            return True
    return False


def resolve_git_dir(repo_root: Path) -> Path | None:
    """Return the git directory for *repo_root*, following ``gitdir:`` files."""

    git_entry = repo_root / ".git"
    if git_entry.is_dir():
        return git_entry
    if not git_entry.is_file():
        return None
    try:
        content = git_entry.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    prefix = "gitdir:"
    if not content.lower().startswith(prefix):
        return None
    target = content[len(prefix) :].strip()
    if not target:
        return None
    git_dir = Path(target)
    if not git_dir.is_absolute():
        git_dir = (repo_root / git_dir).resolve()
    return git_dir


def format_path(path: Path | str, base: Path | None = None) -> str:
    """Return a user friendly representation of *path* relative to *base* when possible."""
    path = Path(path)
    if base:
        try:
            relative = path.relative_to(base)
            return f"./{relative.as_posix()}"
        except ValueError:
            return str(path)
    home = Path.home()
    try:
        return f"~/{path.relative_to(home).as_posix()}"
    except ValueError:
        return str(path)


def ensure_positive(value: int, name: str) -> int:
    """Validate that *value* is positive."""
    if value <= 0:
        raise ValueError(f"{name} must be greater than 0")
    return value


def plural(count: int, singular: str = "", many: str = "s") -> str:
    return singular if count == 1 else many


def unique_paths(paths: Sequence[str]) -> list[str]:
    """Return *paths* without duplicate comparison keys, keeping first occurrence."""

    seen: set[str] = set()
    result: list[str] = []
    for path in paths:
        key = normalize_path_key(path)
        if key in seen:
            continue
        seen.add(key)
        result.append(path)
    return result
