"""Helpers for formatting CLI output safely across terminals."""

from __future__ import annotations

import sys

from rich.console import Console

from .models import RankedResult, ResultKind

KIND_LABELS = {
    ResultKind.GIT_REPOSITORY: "repo",
    ResultKind.WORKSPACE: "workspace",
}


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except (LookupError, UnicodeEncodeError):
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "✓✗•"
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def format_status_icon(passed: bool, console: Console | None = None) -> str:
    if supports_unicode_output(console):
        return "[green]✓[/green]" if passed else "[red]✗[/red]"
    return "[green]OK[/green]" if passed else "[red]X[/red]"


def format_kind(result: RankedResult) -> str:
    if result.entry is None:
        return "-"
    return KIND_LABELS.get(result.entry.kind, str(result.entry.kind.value))


def format_languages(result: RankedResult) -> str:
    if result.entry is None or result.entry.kind is not ResultKind.GIT_REPOSITORY:
        return "-"
    return ", ".join(result.entry.languages)


def format_remote(result: RankedResult) -> str:
    if result.entry is None or not result.entry.remote_url:
        return "-"
    return result.entry.remote_url


def escape_porcelain_field(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
