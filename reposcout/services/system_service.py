"""Logic helpers for diagnostics and editor launching."""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..cache import data_dir
from ..config import config_file_path
from ..models import Editor
from ..text import Messages
from ..utils import plural
from .backend_service import DiscoveryBackend

logger = logging.getLogger(__name__)

EDITOR_COMMANDS: dict[Editor, str] = {
    Editor.CURSOR: "cursor",
    Editor.VSCODE: "code",
}
EDITOR_ICONS: dict[Editor, str] = {
    Editor.CURSOR: "cursor.png",
    Editor.VSCODE: "vscode.png",
}


@dataclass
class DoctorCheckResult:
    """Result of a single doctor check."""

    name: str
    passed: bool
    message: str
    detail: str | None = None


def editor_command(editor: str) -> str:
    return EDITOR_COMMANDS[Editor(editor)]


def editor_icon(editor: str) -> str:
    return EDITOR_ICONS[Editor(editor)]


def check_backend_available(backend: DiscoveryBackend, command: str) -> DoctorCheckResult:
    """Check that the discovery backend answers its availability check."""
    if backend.is_available():
        return DoctorCheckResult(
            name="Backend",
            passed=True,
            message=Messages.DOCTOR_BACKEND_READY.format(command=command),
        )
    return DoctorCheckResult(
        name="Backend",
        passed=False,
        message=Messages.DOCTOR_BACKEND_MISSING.format(command=command),
        detail=Messages.ERROR_BACKEND_MISSING_DETAIL.format(command=command),
    )


def check_config_exists() -> DoctorCheckResult:
    """Check if config file exists and parses."""
    config_file = config_file_path()
    if not config_file.exists():
        return DoctorCheckResult(
            name="Config",
            passed=True,
            message=Messages.DOCTOR_CONFIG_DEFAULT,
            detail=str(config_file),
        )
    try:
        json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return DoctorCheckResult(
            name="Config",
            passed=False,
            message=Messages.DOCTOR_CONFIG_INVALID.format(path=config_file),
            detail=str(exc),
        )
    return DoctorCheckResult(
        name="Config",
        passed=True,
        message=Messages.DOCTOR_CONFIG_EXISTS.format(path=config_file),
    )


def check_data_directory() -> DoctorCheckResult:
    """Check if the data directory exists and is writable."""
    directory = data_dir()

    if not directory.exists():
        try:
            directory.mkdir(parents=True, exist_ok=True)
            return DoctorCheckResult(
                name="Data Dir",
                passed=True,
                message=Messages.DOCTOR_DATA_CREATED.format(path=directory),
            )
        except OSError as exc:
            return DoctorCheckResult(
                name="Data Dir",
                passed=False,
                message=Messages.DOCTOR_DATA_CANNOT_CREATE.format(path=directory),
                detail=str(exc),
            )

    test_file = directory / ".doctor_test"
    try:
        test_file.write_text("test", encoding="utf-8")
        test_file.unlink()
        return DoctorCheckResult(
            name="Data Dir",
            passed=True,
            message=Messages.DOCTOR_DATA_WRITABLE.format(path=directory),
        )
    except OSError as exc:
        return DoctorCheckResult(
            name="Data Dir",
            passed=False,
            message=Messages.DOCTOR_DATA_NOT_WRITABLE.format(path=directory),
            detail=str(exc),
        )


def check_editor_on_path(editor: str) -> DoctorCheckResult:
    command = editor_command(editor)
    path = find_command_on_path(command)
    if path:
        return DoctorCheckResult(
            name="Editor",
            passed=True,
            message=Messages.DOCTOR_EDITOR_FOUND.format(command=command, path=path),
        )
    return DoctorCheckResult(
        name="Editor",
        passed=False,
        message=Messages.DOCTOR_EDITOR_MISSING.format(command=command),
    )


def check_search_paths(search_paths: Sequence[str]) -> DoctorCheckResult:
    for raw in search_paths:
        if not Path(raw).expanduser().is_dir():
            return DoctorCheckResult(
                name="Search Paths",
                passed=False,
                message=Messages.DOCTOR_SEARCH_PATHS_MISSING.format(path=raw),
            )
    count = len(search_paths)
    return DoctorCheckResult(
        name="Search Paths",
        passed=count > 0,
        message=Messages.DOCTOR_SEARCH_PATHS_OK.format(count=count, plural=plural(count)),
    )


def run_all_doctor_checks(
    backend: DiscoveryBackend,
    *,
    backend_command: str,
    editor: str,
    search_paths: Sequence[str],
) -> list[DoctorCheckResult]:
    """Run all doctor checks and return results."""
    return [
        check_backend_available(backend, backend_command),
        check_config_exists(),
        check_data_directory(),
        check_editor_on_path(editor),
        check_search_paths(search_paths),
    ]


def find_command_on_path(command: str) -> Optional[str]:
    """Return the resolved path for *command* if present on PATH."""

    return shutil.which(command)


def launch_editor(command: str, target: str) -> subprocess.Popen:
    """Start *command* on *target* detached from this process; raises OSError on failure."""

    args = [find_command_on_path(command) or command, os.fspath(target)]
    logger.debug("Launching %s", " ".join(args))
    return subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
