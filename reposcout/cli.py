"""Command line interface for reposcout."""

from __future__ import annotations

import json
import logging
import shlex
import sys
from difflib import get_close_matches
from enum import Enum
from typing import Sequence

import click
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from . import __version__, config as config_module
from .api import QueryResponse, RepoScoutClient, RepoScoutError
from .cache import clear_all_cache
from .config import Config, load_config, normalize_sort_policy
from .models import RankedResult
from .output import (
    escape_porcelain_field,
    format_kind,
    format_languages,
    format_remote,
    format_status_icon,
)
from .services.backend_service import CommandLineBackend, DiscoveryBackend
from .services.refresh_service import repository_paths
from .services.system_service import DoctorCheckResult, run_all_doctor_checks
from .text import Messages, Styles
from .utils import ensure_positive, format_path, plural

console = Console()


class DefaultSearchGroup(TyperGroup):
    """Treat unknown subcommands as search queries."""

    def resolve_command(
        self,
        ctx: click.Context,
        args: list[str],
    ) -> tuple[str | None, click.Command | None, list[str]]:
        original_args = list(args)
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError:
            if not original_args:
                raise
            token = original_args[0]
            if token.startswith("-"):
                raise
            if self.suggest_commands and self.commands:
                matches = get_close_matches(
                    token,
                    list(self.commands.keys()),
                    cutoff=0.8,
                )
                if matches:
                    raise
            command = self.get_command(ctx, "search")
            if command is None:
                raise
            return "search", command, original_args


app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    cls=DefaultSearchGroup,
)


class SearchOutputFormat(str, Enum):
    rich = "rich"
    porcelain = "porcelain"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"reposcout v{__version__}")
        raise typer.Exit()


def _verbose_callback(value: bool) -> None:
    if value:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _build_backend(config: Config) -> DiscoveryBackend:
    return CommandLineBackend(
        command=config.backend_command,
        search_timeout=config.search_timeout,
        availability_timeout=config.availability_timeout,
    )


def _load_config_or_exit() -> Config:
    try:
        return load_config()
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        console.print(_styled(Messages.ERROR_CONFIG_JSON_INVALID, Styles.ERROR))
        raise typer.Exit(code=1)


def _build_client(config: Config | None = None) -> RepoScoutClient:
    config = config or _load_config_or_exit()
    return RepoScoutClient(config, backend=_build_backend(config))


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        callback=_verbose_callback,
        is_eager=True,
        help=Messages.HELP_VERBOSE,
    ),
) -> None:
    """Global Typer callback for shared options."""
    return None


@app.command()
def search(
    query: list[str] | None = typer.Argument(None, help=Messages.HELP_QUERY),
    sort: str | None = typer.Option(None, "--sort", "-s", help=Messages.HELP_SEARCH_SORT),
    top: int | None = typer.Option(None, "--top", "-k", help=Messages.HELP_SEARCH_TOP),
    refresh: bool = typer.Option(False, "--refresh", help=Messages.HELP_SEARCH_REFRESH),
    remote: bool = typer.Option(False, "--remote", help=Messages.HELP_SEARCH_REMOTE),
    wait: bool = typer.Option(False, "--wait", help=Messages.HELP_SEARCH_WAIT),
    output_format: SearchOutputFormat = typer.Option(
        SearchOutputFormat.rich,
        "--format",
        help=Messages.HELP_SEARCH_FORMAT,
    ),
) -> None:
    """Find repositories and workspaces matching the query."""
    tokens = list(query or [])
    if remote:
        tokens.append("--remote")
    raw_query = " ".join(tokens)

    try:
        sort_policy = normalize_sort_policy(sort) if sort is not None else None
        if top is not None:
            ensure_positive(top, "top")
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    client = _build_client()
    try:
        try:
            response = client.query(
                raw_query, sort_policy=sort_policy, top=top, refresh=refresh
            )
        except RepoScoutError as exc:
            console.print(_styled(str(exc), Styles.ERROR))
            raise typer.Exit(code=1)
        if wait:
            client.wait()
    finally:
        client.close()

    if not response.backend_available:
        _print_message(response.results[0], Styles.ERROR)
        raise typer.Exit(code=1)
    if response.is_empty:
        _print_message(response.results[0], Styles.WARNING)
        return
    if output_format == SearchOutputFormat.porcelain:
        _render_results_porcelain(response.results)
        return
    _render_results(response)


@app.command("open")
def open_target(
    target: str = typer.Argument(..., help=Messages.HELP_OPEN_TARGET),
    editor: str | None = typer.Option(None, "--editor", "-e", help=Messages.HELP_OPEN_EDITOR),
    dry_run: bool = typer.Option(False, "--dry-run", help=Messages.HELP_OPEN_DRY_RUN),
) -> None:
    """Record usage of a repository and open it in the editor."""
    client = _build_client()
    try:
        command = client.open(target, editor=editor, dry_run=dry_run)
    except RepoScoutError as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)
    finally:
        client.close()
    if dry_run:
        console.print(
            _styled(Messages.INFO_OPEN_DRY_RUN.format(command=_format_command(command)), Styles.INFO)
        )
        return
    console.print(
        _styled(
            Messages.INFO_OPENING.format(path=format_path(command[1]), command=command[0]),
            Styles.SUCCESS,
        )
    )


@app.command(help=Messages.HELP_REFRESH)
def refresh() -> None:
    config = _load_config_or_exit()
    count = len(config.search_paths)
    console.print(
        _styled(
            Messages.INFO_REFRESH_RUNNING.format(count=count, plural=plural(count)),
            Styles.INFO,
        )
    )
    client = _build_client(config)
    try:
        report = client.refresh()
    finally:
        client.close()
    if not report.backend_available:
        console.print(_styled(Messages.ERROR_BACKEND_MISSING, Styles.ERROR))
        console.print(
            _styled(
                Messages.ERROR_BACKEND_MISSING_DETAIL.format(command=config.backend_command),
                Styles.INFO,
            )
        )
        raise typer.Exit(code=1)
    console.print(
        _styled(
            Messages.INFO_REFRESH_DONE.format(
                found=report.discovered,
                found_plural=plural(report.discovered, "y", "ies"),
                refreshed=report.classified,
                removed=report.removed,
                removed_plural=plural(report.removed),
            ),
            Styles.SUCCESS,
        )
    )


@app.command(help=Messages.HELP_REBUILD)
def rebuild() -> None:
    client = _build_client()
    try:
        known = len(repository_paths(client.discovery.get_results(trigger_refresh=False)))
        if known:
            console.print(
                _styled(
                    Messages.INFO_REBUILD_RUNNING.format(
                        count=known, plural=plural(known, "y", "ies")
                    ),
                    Styles.INFO,
                )
            )
        report = client.rebuild_all()
    finally:
        client.close()
    console.print(
        _styled(
            Messages.INFO_REBUILD_DONE.format(
                count=report.classified, plural=plural(report.classified, "y", "ies")
            ),
            Styles.SUCCESS,
        )
    )


@app.command(help=Messages.HELP_CONFIG)
def config(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
    add_path: list[str] | None = typer.Option(None, "--add-path", help=Messages.HELP_ADD_PATH),
    remove_path: list[str] | None = typer.Option(
        None, "--remove-path", help=Messages.HELP_REMOVE_PATH
    ),
    set_backend: str | None = typer.Option(None, "--set-backend", help=Messages.HELP_SET_BACKEND),
    set_editor: str | None = typer.Option(None, "--set-editor", help=Messages.HELP_SET_EDITOR),
    set_sort: str | None = typer.Option(None, "--set-sort", help=Messages.HELP_SET_SORT),
    set_max_results: int | None = typer.Option(
        None, "--set-max-results", help=Messages.HELP_SET_MAX_RESULTS
    ),
    set_stale_hours: float | None = typer.Option(
        None, "--set-stale-hours", help=Messages.HELP_SET_STALE_HOURS
    ),
    add_ignored: list[str] | None = typer.Option(
        None, "--add-ignored", help=Messages.HELP_ADD_IGNORED
    ),
    remove_ignored: list[str] | None = typer.Option(
        None, "--remove-ignored", help=Messages.HELP_REMOVE_IGNORED
    ),
    clear_cache: bool = typer.Option(False, "--clear-cache", help=Messages.HELP_CLEAR_CACHE),
) -> None:
    requested = clear_cache or any(
        value
        for value in (add_path, remove_path, add_ignored, remove_ignored)
    ) or any(
        value is not None
        for value in (set_backend, set_editor, set_sort, set_max_results, set_stale_hours)
    )
    changed = False
    try:
        for path in add_path or ():
            changed = config_module.add_search_path(path) or changed
        for path in remove_path or ():
            changed = config_module.remove_search_path(path) or changed
        if set_backend is not None:
            config_module.set_backend_command(set_backend)
            changed = True
        if set_editor is not None:
            config_module.set_editor(set_editor)
            changed = True
        if set_sort is not None:
            config_module.set_sort_policy(set_sort)
            changed = True
        if set_max_results is not None:
            config_module.set_max_results(ensure_positive(set_max_results, "max_results"))
            changed = True
        if set_stale_hours is not None:
            if set_stale_hours <= 0:
                raise ValueError(Messages.ERROR_POSITIVE.format(name="stale_hours"))
            config_module.set_stale_hours(set_stale_hours)
            changed = True
        for name in add_ignored or ():
            changed = config_module.add_ignored_directory(name) or changed
        for name in remove_ignored or ():
            changed = config_module.remove_ignored_directory(name) or changed
    except json.JSONDecodeError:
        console.print(_styled(Messages.ERROR_CONFIG_JSON_INVALID, Styles.ERROR))
        raise typer.Exit(code=1)
    except (OSError, ValueError) as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)

    if clear_cache:
        removed = clear_all_cache()
        if removed:
            console.print(
                _styled(
                    Messages.INFO_CACHE_CLEARED.format(count=removed, plural=plural(removed)),
                    Styles.SUCCESS,
                )
            )
        else:
            console.print(_styled(Messages.INFO_CACHE_CLEAR_NONE, Styles.INFO))
    if requested and (changed or not clear_cache):
        message = Messages.INFO_CONFIG_UPDATED if changed else Messages.INFO_CONFIG_UNCHANGED
        console.print(_styled(message, Styles.SUCCESS if changed else Styles.INFO))
    if show or not requested:
        _print_config_summary(_load_config_or_exit())


@app.command(help=Messages.HELP_DOCTOR)
def doctor() -> None:
    console.print(_styled(Messages.DOCTOR_TITLE.format(version=__version__), Styles.TITLE))
    console.print()

    results: list[DoctorCheckResult] = []
    try:
        cfg = load_config()
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        cfg = Config()
        results.append(
            DoctorCheckResult(
                name="Config JSON",
                passed=False,
                message=Messages.DOCTOR_CONFIG_INVALID.format(
                    path=config_module.config_file_path()
                ),
                detail=str(exc),
            )
        )

    results.extend(
        run_all_doctor_checks(
            _build_backend(cfg),
            backend_command=cfg.backend_command,
            editor=cfg.editor,
            search_paths=cfg.search_paths,
        )
    )

    has_failure = False
    for result in results:
        icon = format_status_icon(result.passed, console=console)
        if not result.passed:
            has_failure = True
        console.print(f"  {icon} [bold]{result.name}:[/bold] {result.message}")
        if result.detail:
            console.print(f"      [dim]{result.detail}[/dim]")

    console.print()
    if has_failure:
        console.print(_styled(Messages.DOCTOR_SOME_FAILED, Styles.WARNING))
        raise typer.Exit(code=1)
    console.print(_styled(Messages.DOCTOR_ALL_PASSED, Styles.SUCCESS))


def _print_message(result: RankedResult, style: str) -> None:
    console.print(_styled(escape(result.title), style))
    console.print(_styled(escape(result.subtitle), Styles.INFO))


def _print_config_summary(cfg: Config) -> None:
    console.print(
        Messages.INFO_CONFIG_SUMMARY.format(
            paths=", ".join(cfg.search_paths) or "-",
            backend=cfg.backend_command,
            editor=cfg.editor,
            sort=cfg.sort_policy,
            max_results=cfg.max_results,
            stale_hours=cfg.stale_hours,
            ignored=", ".join(cfg.ignored_directories) or "-",
        ),
        markup=False,
    )


def _render_results(response: QueryResponse) -> None:
    console.print(_styled(Messages.TABLE_TITLE, Styles.TITLE))
    if not response.query:
        console.print(
            _styled(f"{Messages.TABLE_SORT_PREFIX}{response.sort_policy.value}", Styles.INFO)
        )
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_INDEX, justify="right")
    table.add_column(Messages.TABLE_HEADER_NAME)
    table.add_column(Messages.TABLE_HEADER_KIND)
    table.add_column(Messages.TABLE_HEADER_LANGUAGES)
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_REMOTE, overflow="fold")
    for idx, result in enumerate(response.results, start=1):
        table.add_row(
            str(idx),
            escape(result.title),
            format_kind(result),
            format_languages(result),
            escape(format_path(result.target)),
            escape(format_remote(result)),
        )
    console.print(table)
    if response.refreshing:
        console.print(_styled(Messages.INFO_REFRESHING_IN_BACKGROUND, Styles.INFO))


def _render_results_porcelain(results: Sequence[RankedResult]) -> None:
    for idx, result in enumerate(results, start=1):
        fields = (
            str(idx),
            result.title,
            format_kind(result),
            format_languages(result),
            result.target,
            format_remote(result),
        )
        typer.echo("\t".join(escape_porcelain_field(field) for field in fields))


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _format_command(parts: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in parts)


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app()
    else:
        app(args=list(argv))


if __name__ == "__main__":  # pragma: no cover
    run(sys.argv[1:])
