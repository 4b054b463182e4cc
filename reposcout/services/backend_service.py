"""Invocation of the external indexed path-search backend."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

from ..config import DEFAULT_BACKEND_COMMAND, DEFAULT_AVAILABILITY_TIMEOUT, DEFAULT_SEARCH_TIMEOUT

logger = logging.getLogger(__name__)

GIT_FOLDER_QUERY = "folder:.git"
WORKSPACE_QUERY = "ext:code-workspace"
WORKSPACE_EXTENSION = ".code-workspace"


class DiscoveryBackend(Protocol):
    """Anything able to resolve a path-scoped query into absolute paths."""

    def is_available(self) -> bool:
        raise NotImplementedError  # pragma: no cover

    def search(self, root: str, query: str) -> list[str]:
        raise NotImplementedError  # pragma: no cover


@dataclass(slots=True)
class CommandLineBackend:
    """Backend driven through an Everything-compatible command (``es``).

    Runs ``<command> -path <root> <query>`` and reads one absolute path per
    output line. A missing executable, non-zero exit or timeout yields no
    results.
    """

    command: str = DEFAULT_BACKEND_COMMAND
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT
    availability_timeout: float = DEFAULT_AVAILABILITY_TIMEOUT

    def is_available(self) -> bool:
        completed = self._run([self.command, "-version"], self.availability_timeout)
        return completed is not None and completed.returncode == 0

    def search(self, root: str, query: str) -> list[str]:
        completed = self._run([self.command, "-path", root, query], self.search_timeout)
        if completed is None or completed.returncode != 0:
            return []
        return parse_output_lines(completed.stdout)

    def _run(
        self, args: Sequence[str], timeout: float
    ) -> subprocess.CompletedProcess[str] | None:
        try:
            return subprocess.run(
                list(args),
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout,
                stdin=subprocess.DEVNULL,
            )
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            logger.debug("Backend command %s failed: %s", args[0], exc)
            return None


def parse_output_lines(output: str | None) -> list[str]:
    if not output:
        return []
    results: list[str] = []
    for line in output.splitlines():
        cleaned = line.strip()
        if cleaned:
            results.append(cleaned)
    return results
