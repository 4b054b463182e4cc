"""Public Python API for reposcout."""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from .cache import ClassificationCache, UsageStore, data_dir_context
from .cache import set_data_dir as _set_cache_data_dir
from .classifier import PathClassifier
from .config import (
    Config,
    config_dir_context,
    load_config,
    normalize_editor,
    normalize_sort_policy,
    set_config_dir,
)
from .models import RankedResult, RepositoryEntry, ResultKind, SortPolicy
from .services.backend_service import CommandLineBackend, DiscoveryBackend
from .services.discovery_service import DiscoveryCache
from .services.ranking_service import (
    FuzzyMatcher,
    DefaultFuzzyMatcher,
    RankingEngine,
    build_backend_missing_result,
    build_no_results_result,
)
from .services.refresh_service import RefreshReport, RefreshScheduler
from .services.system_service import editor_command, editor_icon, launch_editor
from .text import Messages
from .utils import ensure_positive, path_exists

logger = logging.getLogger(__name__)

__all__ = [
    "QueryResponse",
    "RepoScoutClient",
    "RepoScoutError",
    "search",
    "set_config_dir",
    "set_data_dir",
]


class RepoScoutError(ValueError):
    """Raised when the reposcout public API input is invalid."""


@dataclass(slots=True)
class QueryResponse:
    query: str
    sort_policy: SortPolicy
    results: list[RankedResult] = field(default_factory=list)
    backend_available: bool = True
    refreshing: bool = False

    @property
    def is_empty(self) -> bool:
        return all(result.is_message for result in self.results)


@contextmanager
def _dir_context(data_dir: Path | str | None, config_dir: Path | str | None):
    effective_config_dir = config_dir if config_dir is not None else data_dir
    with ExitStack() as stack:
        stack.enter_context(config_dir_context(effective_config_dir))
        stack.enter_context(data_dir_context(data_dir))
        yield


def set_data_dir(path: Path | str | None) -> None:
    """Set the base directory for config and cache data."""
    set_config_dir(path)
    _set_cache_data_dir(path)


class RepoScoutClient:
    """Session-style wrapper owning the caches, scheduler and ranking engine.

    ``query`` runs entirely on the caller's thread: snapshot copy, lazy
    classification of repositories missing from the cache, then ranking. It
    never waits for a background refresh except on a cold start, when there is
    nothing to serve yet.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        backend: DiscoveryBackend | None = None,
        matcher: FuzzyMatcher | None = None,
        data_dir: Path | str | None = None,
        config_dir: Path | str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        with _dir_context(data_dir, config_dir):
            if config is None:
                try:
                    config = load_config()
                except ValueError as exc:
                    raise RepoScoutError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
            self.config = config
            self.backend = backend or CommandLineBackend(
                command=config.backend_command,
                search_timeout=config.search_timeout,
                availability_timeout=config.availability_timeout,
            )
            self.matcher = matcher or DefaultFuzzyMatcher(config.fuzzy_threshold)
            self.classification = ClassificationCache(
                classifier=PathClassifier(
                    config.ignored_directories,
                    file_budget=config.file_budget,
                    significance_threshold=config.significance_threshold,
                    signature_detection=config.signature_detection,
                ),
                stale_after=timedelta(hours=config.stale_hours),
                batch_size=config.batch_size,
            )
            self.usage = UsageStore()
            self.discovery = DiscoveryCache(
                self.backend,
                config.search_paths,
                ignored_directories=config.ignored_directories,
                ttl_seconds=config.discovery_ttl_seconds,
                clock=clock,
            )
        self.scheduler = RefreshScheduler(
            self.discovery,
            self.classification,
            self.backend,
            usage=self.usage,
            startup_delay=config.startup_delay,
        )
        self._clock = clock
        self._availability_lock = threading.Lock()
        self._backend_ready_at: float | None = None

    def __enter__(self) -> "RepoScoutClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def query(
        self,
        raw_query: str | None = "",
        *,
        sort_policy: SortPolicy | str | None = None,
        top: int | None = None,
        refresh: bool = False,
    ) -> QueryResponse:
        """Rank discovered repositories against *raw_query*."""

        policy = self._resolve_sort_policy(sort_policy)
        limit = self._resolve_top(top)
        clean_query = (raw_query or "").strip()
        icon = editor_icon(self.config.editor)

        if not self._backend_available():
            return QueryResponse(
                query=clean_query,
                sort_policy=policy,
                results=[build_backend_missing_result(self.config.backend_command, icon)],
                backend_available=False,
            )

        entries = self._current_entries(refresh)
        self._hydrate(entries)
        engine = RankingEngine(
            matcher=self.matcher,
            max_results=limit,
            last_opened=self.usage.get_last_opened,
            editor_icon=icon,
        )
        results = engine.rank(entries, clean_query, policy)
        if not results:
            results = [build_no_results_result(clean_query, icon)]
        return QueryResponse(
            query=clean_query,
            sort_policy=policy,
            results=results,
            refreshing=self.discovery.is_refreshing,
        )

    def record_open(self, target: Path | str) -> datetime:
        return self.usage.record_open(target)

    def open(
        self,
        target: Path | str,
        *,
        editor: str | None = None,
        dry_run: bool = False,
    ) -> list[str]:
        """Record usage of *target* and launch the editor on it."""

        target_path = os.path.abspath(Path(target).expanduser())
        if not path_exists(target_path):
            raise RepoScoutError(Messages.ERROR_TARGET_MISSING.format(path=target_path))
        try:
            resolved_editor = normalize_editor(editor or self.config.editor)
        except ValueError as exc:
            raise RepoScoutError(str(exc)) from exc
        command = editor_command(resolved_editor)
        self.record_open(target_path)
        if not dry_run:
            try:
                launch_editor(command, target_path)
            except OSError as exc:
                raise RepoScoutError(Messages.ERROR_EDITOR_LAUNCH.format(reason=exc)) from exc
        return [command, target_path]

    def refresh(self) -> RefreshReport:
        """Rediscover, refresh stale classifications and prune missing paths."""
        return self.scheduler.run_once()

    def rebuild_all(self) -> RefreshReport:
        return self.scheduler.rebuild_all()

    def start(self, delay: float | None = None) -> threading.Thread:
        """Start the background refresh scheduler."""
        return self.scheduler.start(delay)

    def subscribe(self, callback: Callable[[], None]) -> None:
        self.discovery.subscribe(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        self.discovery.unsubscribe(callback)

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for background discovery and scheduled runs to finish."""
        discovery_done = self.discovery.wait_for_refresh(timeout)
        return self.scheduler.wait(timeout) and discovery_done

    def close(self, timeout: float | None = 5.0) -> None:
        self.scheduler.stop(timeout)
        self.discovery.wait_for_refresh(timeout)
        self.classification.save()
        self.usage.save()

    def _resolve_sort_policy(self, value: SortPolicy | str | None) -> SortPolicy:
        raw = value if value is not None else self.config.sort_policy
        if isinstance(raw, SortPolicy):
            return raw
        try:
            return SortPolicy(normalize_sort_policy(raw))
        except ValueError as exc:
            raise RepoScoutError(str(exc)) from exc

    def _resolve_top(self, top: int | None) -> int:
        if top is None:
            return self.config.max_results
        try:
            return ensure_positive(top, "top")
        except ValueError as exc:
            raise RepoScoutError(str(exc)) from exc

    def _backend_available(self) -> bool:
        # A positive availability check is trusted for one discovery TTL.
        with self._availability_lock:
            now = self._clock()
            ready_at = self._backend_ready_at
            if ready_at is not None and now - ready_at <= self.config.discovery_ttl_seconds:
                return True
            available = self.backend.is_available()
            self._backend_ready_at = now if available else None
            return available

    def _current_entries(self, refresh: bool) -> list[RepositoryEntry]:
        if refresh:
            return self.discovery.force_refresh()
        entries = self.discovery.get_results(trigger_refresh=False)
        if not entries:
            return self.discovery.force_refresh()
        if self.discovery.is_stale():
            self.discovery.refresh_in_background()
        return entries

    def _hydrate(self, entries: list[RepositoryEntry]) -> None:
        for entry in entries:
            if entry.kind is not ResultKind.GIT_REPOSITORY:
                continue
            if entry.path not in self.classification:
                self.classification.detect_and_cache(entry.path)
            entry.languages = self.classification.get_languages(entry.path)
            entry.remote_url = self.classification.get_remote_url(entry.path)
        if self.classification.is_dirty:
            self.classification.save()


def search(
    query: str | None = "",
    *,
    sort_policy: SortPolicy | str | None = None,
    top: int | None = None,
    refresh: bool = False,
    config: Config | None = None,
    data_dir: Path | str | None = None,
    config_dir: Path | str | None = None,
) -> QueryResponse:
    """Run one query with a short-lived client."""
    client = RepoScoutClient(config, data_dir=data_dir, config_dir=config_dir)
    try:
        return client.query(query, sort_policy=sort_policy, top=top, refresh=refresh)
    finally:
        client.close()
