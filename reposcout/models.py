"""Data containers shared by the discovery, cache and ranking layers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Sequence


class ResultKind(str, Enum):
    GIT_REPOSITORY = "GitRepository"
    WORKSPACE = "Workspace"


class SortPolicy(str, Enum):
    RECENCY_OF_DISCOVERY = "recency"
    LAST_OPENED = "last_opened"


class Editor(str, Enum):
    CURSOR = "cursor"
    VSCODE = "vscode"


class Language:
    TYPESCRIPT = "TypeScript"
    JAVASCRIPT = "JavaScript"
    PYTHON = "Python"
    RUST = "Rust"
    GO = "Go"
    CSHARP = "C#"
    JAVA = "Java"
    KOTLIN = "Kotlin"
    RUBY = "Ruby"
    PHP = "PHP"
    SWIFT = "Swift"
    DART = "Dart"
    CPP = "C++"
    C = "C"
    ELIXIR = "Elixir"
    SHELL = "Shell"
    LUA = "Lua"
    UNKNOWN = "Unknown"


UNKNOWN_LANGUAGES: tuple[str, ...] = (Language.UNKNOWN,)


@dataclass(slots=True)
class RepositoryEntry:
    """A discovered repository or workspace file."""

    path: str
    kind: ResultKind
    languages: tuple[str, ...] = UNKNOWN_LANGUAGES
    remote_url: str = ""
    custom_icon_path: str | None = None

    @property
    def primary_language(self) -> str:
        return self.languages[0] if self.languages else Language.UNKNOWN

    @property
    def name(self) -> str:
        return Path(self.path).name or self.path

    def copy(self) -> "RepositoryEntry":
        return replace(self)

    def to_snapshot(self) -> dict[str, object]:
        data: dict[str, object] = {"path": self.path, "kind": self.kind.value}
        if self.custom_icon_path:
            data["custom_icon_path"] = self.custom_icon_path
        return data

    @classmethod
    def from_snapshot(cls, raw: dict) -> "RepositoryEntry":
        path = raw.get("path")
        if not isinstance(path, str) or not path:
            raise ValueError("snapshot entry is missing a path")
        icon = raw.get("custom_icon_path")
        return cls(
            path=path,
            kind=ResultKind(raw.get("kind")),
            custom_icon_path=icon if isinstance(icon, str) and icon else None,
        )


@dataclass(slots=True)
class ClassificationRecord:
    languages: tuple[str, ...]
    remote_url: str
    detected_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "languages": list(self.languages),
            "remote_url": self.remote_url,
            "detected_at": self.detected_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "ClassificationRecord":
        languages = tuple(str(item) for item in raw.get("languages") or () if item)
        return cls(
            languages=languages or UNKNOWN_LANGUAGES,
            remote_url=str(raw.get("remote_url") or ""),
            detected_at=_parse_timestamp(raw["detected_at"]),
        )


@dataclass(slots=True)
class UsageRecord:
    last_opened_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {"last_opened_at": self.last_opened_at.isoformat()}

    @classmethod
    def from_dict(cls, raw: dict) -> "UsageRecord":
        return cls(last_opened_at=_parse_timestamp(raw["last_opened_at"]))


@dataclass(slots=True)
class RankedResult:
    """Display-ready row produced by the ranking engine."""

    title: str
    subtitle: str
    icon: str
    target: str = ""
    entry: RepositoryEntry | None = None
    score: float = 0.0
    highlight: Sequence[int] = field(default_factory=tuple)

    @property
    def is_message(self) -> bool:
        return self.entry is None


def _parse_timestamp(value: object) -> datetime:
    if not isinstance(value, str):
        raise ValueError("timestamp must be an ISO-8601 string")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
