"""Repository language classification and remote URL extraction."""

from __future__ import annotations

import configparser
import fnmatch
import logging
import os
import re
from collections import Counter
from pathlib import Path
from typing import Iterable
from urllib.parse import urlsplit, urlunsplit

from .config import (
    DEFAULT_FILE_BUDGET,
    DEFAULT_IGNORED_DIRECTORIES,
    DEFAULT_SIGNIFICANCE_THRESHOLD,
)
from .models import Language, UNKNOWN_LANGUAGES
from .utils import build_ignore_spec, is_ignored_directory, resolve_git_dir

logger = logging.getLogger(__name__)

# Checked in order against the repository root; the first match wins. A rule
# marked ALL_OF needs one of its files and one of its patterns together.
ANY_OF = "any"
ALL_OF = "all"

SIGNATURE_RULES: tuple[tuple[tuple[str, ...], tuple[str, ...], str, str], ...] = (
    # TypeScript projects usually ship a package.json too
    (("tsconfig.json",), (), Language.TYPESCRIPT, ANY_OF),
    (("Cargo.toml",), (), Language.RUST, ANY_OF),
    (("go.mod",), (), Language.GO, ANY_OF),
    ((), ("*.csproj", "*.sln"), Language.CSHARP, ANY_OF),
    (("build.gradle.kts",), (), Language.KOTLIN, ANY_OF),
    (("pom.xml", "build.gradle"), (), Language.JAVA, ANY_OF),
    (("pyproject.toml", "setup.py", "requirements.txt", "Pipfile"), (), Language.PYTHON, ANY_OF),
    (("Gemfile",), (), Language.RUBY, ANY_OF),
    (("composer.json",), (), Language.PHP, ANY_OF),
    (("Package.swift",), ("*.xcodeproj", "*.xcworkspace"), Language.SWIFT, ANY_OF),
    (("pubspec.yaml",), (), Language.DART, ANY_OF),
    (("mix.exs",), (), Language.ELIXIR, ANY_OF),
    (("package.json",), (), Language.JAVASCRIPT, ANY_OF),
    (("CMakeLists.txt",), ("*.vcxproj",), Language.CPP, ANY_OF),
    (("Makefile",), ("*.cpp", "*.cc", "*.cxx"), Language.CPP, ALL_OF),
    (("Makefile",), ("*.c",), Language.C, ALL_OF),
    ((), ("*.sh",), Language.SHELL, ANY_OF),
    ((), ("*.lua",), Language.LUA, ANY_OF),
)

EXTENSION_LANGUAGES: dict[str, str] = {
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
    ".pyw": Language.PYTHON,
    ".rs": Language.RUST,
    ".go": Language.GO,
    ".cs": Language.CSHARP,
    ".java": Language.JAVA,
    ".kt": Language.KOTLIN,
    ".kts": Language.KOTLIN,
    ".rb": Language.RUBY,
    ".php": Language.PHP,
    ".swift": Language.SWIFT,
    ".dart": Language.DART,
    ".cpp": Language.CPP,
    ".cc": Language.CPP,
    ".cxx": Language.CPP,
    ".hpp": Language.CPP,
    ".hh": Language.CPP,
    ".hxx": Language.CPP,
    ".c": Language.C,
    ".h": Language.C,
    ".ex": Language.ELIXIR,
    ".exs": Language.ELIXIR,
    ".sh": Language.SHELL,
    ".bash": Language.SHELL,
    ".zsh": Language.SHELL,
    ".lua": Language.LUA,
}

SKIPPED_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".icns", ".svg", ".webp",
        ".tif", ".tiff", ".psd", ".mp3", ".wav", ".flac", ".ogg", ".mp4", ".mov",
        ".avi", ".mkv", ".webm", ".pdf", ".zip", ".tar", ".gz", ".tgz", ".bz2",
        ".xz", ".7z", ".rar", ".jar", ".war", ".class", ".exe", ".dll", ".so",
        ".dylib", ".o", ".obj", ".a", ".lib", ".pdb", ".bin", ".dat", ".db",
        ".sqlite", ".pyc", ".pyo", ".woff", ".woff2", ".ttf", ".otf", ".eot",
        ".lock", ".map", ".min.js",
    }
)

LANGUAGE_ICONS: dict[str, str] = {
    Language.TYPESCRIPT: "lang_typescript.png",
    Language.JAVASCRIPT: "lang_javascript.png",
    Language.PYTHON: "lang_python.png",
    Language.RUST: "lang_rust.png",
    Language.GO: "lang_go.png",
    Language.CSHARP: "lang_csharp.png",
    Language.JAVA: "lang_java.png",
    Language.KOTLIN: "lang_kotlin.png",
    Language.RUBY: "lang_ruby.png",
    Language.PHP: "lang_php.png",
    Language.SWIFT: "lang_swift.png",
    Language.DART: "lang_dart.png",
    Language.CPP: "lang_cpp.png",
    Language.C: "lang_c.png",
    Language.ELIXIR: "lang_elixir.png",
    Language.SHELL: "lang_shell.png",
    Language.LUA: "lang_lua.png",
}
UNKNOWN_ICON = "lang_unknown.png"

_SCP_LIKE_RE = re.compile(r"^(?:[^@/\s]+@)?([^:/\s]+):(?!//)(.+)$")
_REMOTE_FALLBACK_TEMPLATE = r'\[remote\s+"{name}"\][^\[]*?url\s*=\s*(\S+)'


def icon_for_language(language: str) -> str:
    """Return the icon file name shown for *language*."""
    return LANGUAGE_ICONS.get(language, UNKNOWN_ICON)


def _extension_of(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith(".min.js"):
        return ".min.js"
    return os.path.splitext(lowered)[1]


class PathClassifier:
    """Determine the significant programming languages of a repository.

    Signature files at the repository root (``Cargo.toml``, ``go.mod``...)
    short-circuit to a single language. Without one, a depth-first scan counts
    source files by extension until ``file_budget`` files have been examined and
    reports every language whose share reaches ``significance_threshold``.
    """

    def __init__(
        self,
        ignored_directories: Iterable[str] | None = None,
        *,
        file_budget: int = DEFAULT_FILE_BUDGET,
        significance_threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD,
        signature_detection: bool = True,
    ) -> None:
        if ignored_directories is None:
            ignored_directories = DEFAULT_IGNORED_DIRECTORIES
        self.ignored_directories = tuple(ignored_directories)
        self.file_budget = max(int(file_budget), 1)
        self.significance_threshold = float(significance_threshold)
        self.signature_detection = bool(signature_detection)
        self._ignore_spec = build_ignore_spec(self.ignored_directories)

    def classify(self, repo_path: Path | str) -> tuple[str, ...]:
        """Return the ordered language tags for *repo_path*; never raises."""

        root = Path(repo_path)
        try:
            if not root.is_dir():
                return UNKNOWN_LANGUAGES
            if self.signature_detection:
                signature = self.detect_signature(root)
                if signature is not None:
                    return (signature,)
            counts = self.count_languages(root)
        except (OSError, ValueError) as exc:
            logger.debug("Classification of %s failed: %s", root, exc)
            return UNKNOWN_LANGUAGES
        return self.significant_languages(counts)

    def detect_signature(self, root: Path) -> str | None:
        try:
            names = set(os.listdir(root))
        except OSError:
            return None
        for files, patterns, language, mode in SIGNATURE_RULES:
            has_file = any(
                filename in names and (root / filename).is_file() for filename in files
            )
            has_pattern = any(
                fnmatch.fnmatch(name, pattern) for pattern in patterns for name in names
            )
            if mode == ALL_OF:
                if has_file and has_pattern:
                    return language
            elif has_file or has_pattern:
                return language
        return None

    def count_languages(self, root: Path) -> Counter[str]:
        """Count classifiable files under *root* in depth-first order."""

        counts: Counter[str] = Counter()
        examined = 0
        for dirpath, dirnames, filenames in os.walk(root, topdown=True):
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not name.startswith(".")
                and not is_ignored_directory(self._ignore_spec, name)
            )
            for filename in sorted(filenames):
                extension = _extension_of(filename)
                if extension in SKIPPED_EXTENSIONS:
                    continue
                if not os.path.isfile(os.path.join(dirpath, filename)):
                    continue
                examined += 1
                language = EXTENSION_LANGUAGES.get(extension)
                if language is not None:
                    counts[language] += 1
                if examined >= self.file_budget:
                    return counts
        return counts

    def significant_languages(self, counts: Counter[str]) -> tuple[str, ...]:
        total = sum(counts.values())
        if total <= 0:
            return UNKNOWN_LANGUAGES
        # sorted() is stable: equal counts keep first-encountered order
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        significant = [
            language
            for language, count in ranked
            if count / total + 1e-9 >= self.significance_threshold
        ]
        if significant:
            return tuple(significant)
        return (ranked[0][0],)


def read_remote_url(repo_path: Path | str, remote: str = "origin") -> str:
    """Return the browser URL of *remote* for the repository, or ``""``."""

    try:
        git_dir = resolve_git_dir(Path(repo_path))
        if git_dir is None:
            return ""
        config_path = git_dir / "config"
        if not config_path.is_file():
            return ""
        content = config_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    url = _parse_remote_url(content, remote)
    return normalize_remote_url(url) if url else ""


def _parse_remote_url(content: str, remote: str) -> str:
    parser = configparser.ConfigParser(strict=False, interpolation=None)
    try:
        parser.read_string(content)
    except configparser.Error:
        pattern = _REMOTE_FALLBACK_TEMPLATE.format(name=re.escape(remote))
        match = re.search(pattern, content, re.IGNORECASE | re.DOTALL)
        return match.group(1).strip() if match else ""
    section = f'remote "{remote}"'
    for name in parser.sections():
        if _normalize_section(name) == section:
            return (parser.get(name, "url", fallback="") or "").strip()
    return ""


def _normalize_section(name: str) -> str:
    head, _, tail = name.strip().partition(" ")
    return f"{head.lower()} {tail.strip()}" if tail else head.lower()


def normalize_remote_url(url: str) -> str:
    """Convert git remote URLs into browser-navigable HTTPS URLs."""

    cleaned = (url or "").strip().strip('"')
    if not cleaned:
        return ""
    if "://" not in cleaned:
        match = _SCP_LIKE_RE.match(cleaned)
        if match and not _looks_like_local_path(cleaned):
            cleaned = f"https://{match.group(1)}/{match.group(2).lstrip('/')}"
    else:
        parts = urlsplit(cleaned)
        scheme = parts.scheme.lower()
        if scheme in {"ssh", "git", "git+ssh", "ssh+git", "http", "https"}:
            host = parts.hostname or ""
            if scheme in {"http", "https"} and parts.port:
                host = f"{host}:{parts.port}"
            new_scheme = "http" if scheme == "http" else "https"
            cleaned = urlunsplit((new_scheme, host, parts.path, "", ""))
    cleaned = cleaned.rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    return cleaned


def _looks_like_local_path(value: str) -> bool:
    return value.startswith(("/", "./", "../", "~")) or bool(
        re.match(r"^[A-Za-z]:[\\/]", value)
    )
