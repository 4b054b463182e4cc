"""Global configuration management for reposcout."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict

from .text import Messages
from .utils import resolve_directory

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".reposcout"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "reposcout_config_dir_override",
    default=None,
)
DEFAULT_BACKEND_COMMAND = "es"
DEFAULT_EDITOR = "cursor"
DEFAULT_SORT_POLICY = "recency"
DEFAULT_MAX_RESULTS = 50
DEFAULT_STALE_HOURS = 24.0
DEFAULT_DISCOVERY_TTL_SECONDS = 30.0
DEFAULT_FILE_BUDGET = 500
DEFAULT_SIGNIFICANCE_THRESHOLD = 0.2
DEFAULT_SEARCH_TIMEOUT = 10.0
DEFAULT_AVAILABILITY_TIMEOUT = 5.0
DEFAULT_STARTUP_DELAY = 2.0
DEFAULT_BATCH_SIZE = 20
DEFAULT_FUZZY_THRESHOLD = 50
SUPPORTED_EDITORS: tuple[str, ...] = ("cursor", "vscode")
SUPPORTED_SORT_POLICIES: tuple[str, ...] = ("recency", "last_opened")
DEFAULT_IGNORED_DIRECTORIES: tuple[str, ...] = (
    "node_modules",
    "vendor",
    "__pycache__",
    ".venv",
    "venv",
    "env",
    ".env",
    "dist",
    "build",
    "bin",
    "obj",
    ".next",
    ".nuxt",
    "target",
    "out",
    "coverage",
    ".cache",
    "packages",
    ".gradle",
    "bower_components",
)


def _default_search_paths() -> list[str]:
    return [os.path.expanduser("~")]


@dataclass
class Config:
    search_paths: list[str] = field(default_factory=_default_search_paths)
    backend_command: str = DEFAULT_BACKEND_COMMAND
    editor: str = DEFAULT_EDITOR
    sort_policy: str = DEFAULT_SORT_POLICY
    max_results: int = DEFAULT_MAX_RESULTS
    ignored_directories: list[str] = field(
        default_factory=lambda: list(DEFAULT_IGNORED_DIRECTORIES)
    )
    stale_hours: float = DEFAULT_STALE_HOURS
    discovery_ttl_seconds: float = DEFAULT_DISCOVERY_TTL_SECONDS
    file_budget: int = DEFAULT_FILE_BUDGET
    significance_threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD
    signature_detection: bool = True
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT
    availability_timeout: float = DEFAULT_AVAILABILITY_TIMEOUT
    startup_delay: float = DEFAULT_STARTUP_DELAY
    batch_size: int = DEFAULT_BATCH_SIZE
    fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


def config_file_path() -> Path:
    """Return the config file used by the current context."""
    return _resolve_config_file()


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(raw, Mapping):
        return Config()
    config = Config()
    _apply_lenient_payload(config, raw)
    return config


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {
        "search_paths": list(config.search_paths),
        "backend_command": config.backend_command,
        "editor": config.editor,
        "sort_policy": config.sort_policy,
        "max_results": config.max_results,
        "ignored_directories": list(config.ignored_directories),
        "stale_hours": config.stale_hours,
        "discovery_ttl_seconds": config.discovery_ttl_seconds,
        "file_budget": config.file_budget,
        "significance_threshold": config.significance_threshold,
        "signature_detection": bool(config.signature_detection),
        "search_timeout": config.search_timeout,
        "availability_timeout": config.availability_timeout,
        "startup_delay": config.startup_delay,
        "batch_size": config.batch_size,
        "fuzzy_threshold": config.fuzzy_threshold,
    }
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_config_dir(path: Path | str | None) -> None:
    global CONFIG_DIR, CONFIG_FILE
    if path is None:
        CONFIG_DIR = DEFAULT_CONFIG_DIR
    else:
        dir_path = Path(path).expanduser().resolve()
        if dir_path.exists() and not dir_path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {dir_path}")
        CONFIG_DIR = dir_path
    CONFIG_FILE = CONFIG_DIR / "config.json"


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else _clone_config(base)
    _apply_config_payload(config, data)
    return config


def update_config_from_json(
    payload: str | Mapping[str, object], *, replace: bool = False
) -> Config:
    """Update config from a JSON string or mapping and persist it."""
    base = None if replace else load_config()
    config = config_from_json(payload, base=base)
    save_config(config)
    return config


def add_search_path(value: str) -> bool:
    config = load_config()
    normalized = str(resolve_directory(value))
    if normalized in config.search_paths:
        return False
    config.search_paths.append(normalized)
    save_config(config)
    return True


def remove_search_path(value: str) -> bool:
    config = load_config()
    candidates = {value, str(Path(value).expanduser().resolve())}
    kept = [path for path in config.search_paths if path not in candidates]
    if len(kept) == len(config.search_paths):
        return False
    config.search_paths = kept or _default_search_paths()
    save_config(config)
    return True


def set_backend_command(value: str) -> None:
    config = load_config()
    config.backend_command = _coerce_required_str(
        value, "backend_command", DEFAULT_BACKEND_COMMAND
    )
    save_config(config)


def set_editor(value: str) -> None:
    config = load_config()
    config.editor = normalize_editor(value)
    save_config(config)


def set_sort_policy(value: str) -> None:
    config = load_config()
    config.sort_policy = normalize_sort_policy(value)
    save_config(config)


def set_max_results(value: int) -> None:
    config = load_config()
    config.max_results = value
    save_config(config)


def set_stale_hours(value: float) -> None:
    config = load_config()
    config.stale_hours = value
    save_config(config)


def add_ignored_directory(value: str) -> bool:
    config = load_config()
    clean_value = (value or "").strip()
    if not clean_value or clean_value in config.ignored_directories:
        return False
    config.ignored_directories.append(clean_value)
    save_config(config)
    return True


def remove_ignored_directory(value: str) -> bool:
    config = load_config()
    clean_value = (value or "").strip()
    if clean_value not in config.ignored_directories:
        return False
    config.ignored_directories = [
        item for item in config.ignored_directories if item != clean_value
    ]
    save_config(config)
    return True


def normalize_editor(value: object) -> str:
    if value is None:
        return DEFAULT_EDITOR
    if isinstance(value, str):
        normalized = value.strip().lower() or DEFAULT_EDITOR
        if normalized in {"code", "vs-code", "vs_code"}:
            normalized = "vscode"
        if normalized in SUPPORTED_EDITORS:
            return normalized
    raise ValueError(
        Messages.ERROR_EDITOR_INVALID.format(
            value=value, allowed=", ".join(SUPPORTED_EDITORS)
        )
    )


def normalize_sort_policy(value: object) -> str:
    if value is None:
        return DEFAULT_SORT_POLICY
    if isinstance(value, str):
        normalized = value.strip().lower().replace("-", "_") or DEFAULT_SORT_POLICY
        if normalized in {"recency_of_discovery", "git_modified", "discovery"}:
            normalized = "recency"
        if normalized in SUPPORTED_SORT_POLICIES:
            return normalized
    raise ValueError(
        Messages.ERROR_SORT_INVALID.format(
            value=value, allowed=", ".join(SUPPORTED_SORT_POLICIES)
        )
    )


def _coerce_config_payload(payload: str | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    if not isinstance(data, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    return data


def _clone_config(config: Config) -> Config:
    return Config(
        search_paths=list(config.search_paths),
        backend_command=config.backend_command,
        editor=config.editor,
        sort_policy=config.sort_policy,
        max_results=config.max_results,
        ignored_directories=list(config.ignored_directories),
        stale_hours=config.stale_hours,
        discovery_ttl_seconds=config.discovery_ttl_seconds,
        file_budget=config.file_budget,
        significance_threshold=config.significance_threshold,
        signature_detection=config.signature_detection,
        search_timeout=config.search_timeout,
        availability_timeout=config.availability_timeout,
        startup_delay=config.startup_delay,
        batch_size=config.batch_size,
        fuzzy_threshold=config.fuzzy_threshold,
    )


_INT_FIELDS = ("max_results", "file_budget", "batch_size", "fuzzy_threshold")
_FLOAT_FIELDS = (
    "stale_hours",
    "discovery_ttl_seconds",
    "significance_threshold",
    "search_timeout",
    "availability_timeout",
    "startup_delay",
)


def _apply_config_payload(config: Config, payload: Mapping[str, object]) -> None:
    defaults = Config()
    if "search_paths" in payload:
        paths = _coerce_str_list(payload["search_paths"], "search_paths")
        config.search_paths = paths or _default_search_paths()
    if "backend_command" in payload:
        config.backend_command = _coerce_required_str(
            payload["backend_command"], "backend_command", DEFAULT_BACKEND_COMMAND
        )
    if "editor" in payload:
        config.editor = normalize_editor(payload["editor"])
    if "sort_policy" in payload:
        config.sort_policy = normalize_sort_policy(payload["sort_policy"])
    if "ignored_directories" in payload:
        config.ignored_directories = _coerce_str_list(
            payload["ignored_directories"], "ignored_directories"
        )
    if "signature_detection" in payload:
        config.signature_detection = _coerce_bool(
            payload["signature_detection"], "signature_detection"
        )
    for name in _INT_FIELDS:
        if name in payload:
            setattr(config, name, _coerce_int(payload[name], name, getattr(defaults, name)))
    for name in _FLOAT_FIELDS:
        if name in payload:
            setattr(
                config, name, _coerce_float(payload[name], name, getattr(defaults, name))
            )


def _apply_lenient_payload(config: Config, payload: Mapping[str, object]) -> None:
    # A hand-edited file with one bad value keeps the default for that field.
    for key, value in payload.items():
        try:
            _apply_config_payload(config, {key: value})
        except ValueError:
            continue


def _coerce_str_list(value: object, field: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    cleaned: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
        token = item.strip()
        if token and token not in cleaned:
            cleaned.append(token)
    return cleaned


def _coerce_required_str(value: object, field: str, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or default
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_int(value: object, field: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            return int(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_float(value: object, field: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            return float(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_bool(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in {"true", "1", "yes", "on"}:
            return True
        if cleaned in {"false", "0", "no", "off"}:
            return False
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
