"""Discovery of git repositories and workspace files, with a short-lived cache."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from threading import Lock
from typing import Callable, Iterable, Sequence

from ..cache import SEARCH_CACHE_FILENAME, cache_file, load_snapshot, store_snapshot
from ..config import DEFAULT_DISCOVERY_TTL_SECONDS
from ..models import RepositoryEntry, ResultKind
from ..utils import (
    build_ignore_spec,
    has_ignored_component,
    normalize_path_key,
    unique_paths,
)
from .backend_service import (
    GIT_FOLDER_QUERY,
    WORKSPACE_EXTENSION,
    WORKSPACE_QUERY,
    DiscoveryBackend,
)

logger = logging.getLogger(__name__)


def git_root_for(hit: str) -> str | None:
    """Map a discovered ``.git`` folder to its repository root."""

    trimmed = hit.rstrip("/\\")
    if os.path.basename(trimmed).lower() != ".git":
        return None
    parent = os.path.dirname(trimmed)
    return parent or None


def _relative_to_root(path: str, root: str) -> str:
    try:
        return os.path.relpath(path, root)
    except ValueError:
        return path


def discover(
    search_paths: Iterable[str],
    backend: DiscoveryBackend,
    *,
    ignored_directories: Sequence[str] = (),
    cancel_event: threading.Event | None = None,
) -> list[RepositoryEntry]:
    """Run one discovery pass over *search_paths*.

    Entries keep the backend's order per root and are deduplicated by kind and
    normalized path, since overlapping roots report the same repository twice.
    """

    spec = build_ignore_spec(ignored_directories)
    seen: set[tuple[ResultKind, str]] = set()
    entries: list[RepositoryEntry] = []

    def _add(path: str, kind: ResultKind) -> None:
        key = (kind, normalize_path_key(path))
        if key in seen:
            return
        seen.add(key)
        entries.append(RepositoryEntry(path=path, kind=kind))

    for root in search_paths:
        if cancel_event is not None and cancel_event.is_set():
            break
        root = os.path.expanduser(root)
        if not os.path.isdir(root):
            logger.debug("Skipping missing search root %s", root)
            continue
        for hit in backend.search(root, GIT_FOLDER_QUERY):
            if has_ignored_component(spec, _relative_to_root(hit, root)):
                continue
            repo_root = git_root_for(hit)
            if repo_root is not None and os.path.isdir(repo_root):
                _add(repo_root, ResultKind.GIT_REPOSITORY)
        for hit in backend.search(root, WORKSPACE_QUERY):
            if not hit.lower().endswith(WORKSPACE_EXTENSION):
                continue
            if has_ignored_component(spec, _relative_to_root(hit, root)):
                continue
            if os.path.isfile(hit):
                _add(hit, ResultKind.WORKSPACE)
    return entries


class DiscoveryCache:
    """Hold the last discovery snapshot and refresh it off the caller's thread."""

    def __init__(
        self,
        backend: DiscoveryBackend,
        search_paths: Sequence[str],
        *,
        ignored_directories: Sequence[str] = (),
        ttl_seconds: float = DEFAULT_DISCOVERY_TTL_SECONDS,
        snapshot_path: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.search_paths = tuple(unique_paths(search_paths))
        self.ignored_directories = tuple(ignored_directories)
        self.ttl_seconds = float(ttl_seconds)
        self.snapshot_path = (
            snapshot_path if snapshot_path is not None else cache_file(SEARCH_CACHE_FILENAME)
        )
        self._clock = clock
        self._lock = Lock()
        self._save_lock = Lock()
        self._entries: list[RepositoryEntry] = load_snapshot(self.snapshot_path)
        # A snapshot loaded from disk is served but treated as stale.
        self._last_refresh: float | None = None
        self._refresh_thread: threading.Thread | None = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def is_refreshing(self) -> bool:
        thread = self._refresh_thread
        return thread is not None and thread.is_alive()

    def is_stale(self) -> bool:
        with self._lock:
            return self._is_stale_locked()

    def _is_stale_locked(self) -> bool:
        if not self._entries or self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh > self.ttl_seconds

    def get_results(self, trigger_refresh: bool = True) -> list[RepositoryEntry]:
        """Return a copy of the snapshot; start a background refresh if stale."""

        with self._lock:
            results = [entry.copy() for entry in self._entries]
            stale = self._is_stale_locked()
        if trigger_refresh and stale:
            self.refresh_in_background()
        return results

    def refresh_in_background(self) -> bool:
        """Start one background refresh; no-op while another is in flight."""

        with self._lock:
            if self._refresh_thread is not None and self._refresh_thread.is_alive():
                return False
            thread = threading.Thread(
                target=self._background_refresh,
                name="reposcout-discovery",
                daemon=True,
            )
            self._refresh_thread = thread
            thread.start()
        return True

    def _background_refresh(self) -> None:
        try:
            self.force_refresh()
        except Exception:
            logger.exception("Background discovery refresh failed")

    def force_refresh(self, cancel_event: threading.Event | None = None) -> list[RepositoryEntry]:
        """Run discovery now and block until the snapshot is replaced."""

        entries = discover(
            self.search_paths,
            self.backend,
            ignored_directories=self.ignored_directories,
            cancel_event=cancel_event,
        )
        if cancel_event is not None and cancel_event.is_set():
            # A partial pass never replaces the snapshot.
            logger.debug("Discovery cancelled; keeping the previous snapshot")
            with self._lock:
                return [entry.copy() for entry in self._entries]
        with self._lock:
            self._entries = entries
            self._last_refresh = self._clock()
            results = [entry.copy() for entry in entries]
        with self._save_lock:
            store_snapshot(entries, self.snapshot_path)
        logger.debug("Discovery found %d entr%s", len(entries), "y" if len(entries) == 1 else "ies")
        self._notify()
        return results

    def wait_for_refresh(self, timeout: float | None = None) -> bool:
        """Join an in-flight background refresh; True once none is running."""

        thread = self._refresh_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def subscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception("Discovery update listener failed")
