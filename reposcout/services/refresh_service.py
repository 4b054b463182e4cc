"""Background re-classification of discovered repositories."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from ..cache import ClassificationCache, UsageStore
from ..config import DEFAULT_STARTUP_DELAY
from ..models import RepositoryEntry, ResultKind
from .backend_service import DiscoveryBackend
from .discovery_service import DiscoveryCache

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RefreshReport:
    """Outcome of one scheduled or manual refresh run."""

    backend_available: bool = True
    discovered: int = 0
    classified: int = 0
    removed: int = 0
    cancelled: bool = False


class TaskSupervisor:
    """Run at most one background task; a new start cancels and supersedes the old."""

    def __init__(self, name: str = "reposcout-refresh") -> None:
        self.name = name
        self._lock = Lock()
        self._thread: threading.Thread | None = None
        self._cancel: threading.Event | None = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self, target: Callable[[threading.Event], object]) -> threading.Thread:
        with self._lock:
            self._cancel_and_join_locked()
            cancel_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(target, cancel_event),
                name=self.name,
                daemon=True,
            )
            self._thread = thread
            self._cancel = cancel_event
            thread.start()
        return thread

    def cancel(self) -> None:
        cancel_event = self._cancel
        if cancel_event is not None:
            cancel_event.set()

    def join(self, timeout: float | None = None) -> bool:
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def stop(self, timeout: float | None = None) -> bool:
        self.cancel()
        return self.join(timeout)

    def _cancel_and_join_locked(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self, target: Callable[[threading.Event], object], cancel_event: threading.Event) -> None:
        try:
            target(cancel_event)
        except Exception:
            logger.exception("Background task %s failed", self.name)


class RefreshScheduler:
    """Keep discovery and classification caches warm in the background.

    A run checks the backend, rediscovers the path universe, reclassifies stale
    repositories and prunes records for paths that vanished. Only one run is in
    flight; triggering another cancels the previous one first.
    """

    def __init__(
        self,
        discovery: DiscoveryCache,
        classification: ClassificationCache,
        backend: DiscoveryBackend,
        *,
        usage: UsageStore | None = None,
        startup_delay: float = DEFAULT_STARTUP_DELAY,
    ) -> None:
        self.discovery = discovery
        self.classification = classification
        self.backend = backend
        self.usage = usage
        self.startup_delay = max(float(startup_delay), 0.0)
        self.last_report: RefreshReport | None = None
        self._supervisor = TaskSupervisor()
        self._listeners: list[Callable[[RefreshReport], None]] = []
        self._listener_lock = Lock()

    @property
    def is_running(self) -> bool:
        return self._supervisor.is_running

    def start(self, delay: float | None = None) -> threading.Thread:
        """Schedule one refresh run after the startup delay."""

        wait_for = self.startup_delay if delay is None else max(float(delay), 0.0)

        def _delayed(cancel_event: threading.Event) -> None:
            if wait_for and cancel_event.wait(wait_for):
                return
            self.run_once(cancel_event)

        return self._supervisor.start(_delayed)

    def trigger_refresh(self) -> threading.Thread:
        return self._supervisor.start(self.run_once)

    def trigger_rebuild_all(self) -> threading.Thread:
        return self._supervisor.start(self.rebuild_all)

    def wait(self, timeout: float | None = None) -> bool:
        return self._supervisor.join(timeout)

    def stop(self, timeout: float | None = None) -> bool:
        return self._supervisor.stop(timeout)

    def run_once(self, cancel_event: threading.Event | None = None) -> RefreshReport:
        if not self.backend.is_available():
            logger.info("Discovery backend unavailable; skipping refresh")
            return self._finish(RefreshReport(backend_available=False))
        entries = self.discovery.force_refresh(cancel_event)
        report = RefreshReport(discovered=len(entries))
        if _cancelled(cancel_event):
            report.cancelled = True
            return self._finish(report)
        report.classified = self.classification.refresh_stale_entries(
            repository_paths(entries), cancel_event
        )
        if _cancelled(cancel_event):
            report.cancelled = True
            return self._finish(report)
        report.removed = self.classification.cleanup_missing_paths()
        if self.usage is not None:
            self.usage.cleanup_missing_paths()
        return self._finish(report)

    def rebuild_all(self, cancel_event: threading.Event | None = None) -> RefreshReport:
        entries = self.discovery.get_results(trigger_refresh=False)
        if not entries:
            entries = self.discovery.force_refresh(cancel_event)
        report = RefreshReport(discovered=len(entries))
        report.classified = self.classification.rebuild_all(
            repository_paths(entries), cancel_event
        )
        report.cancelled = _cancelled(cancel_event)
        return self._finish(report)

    def subscribe(self, callback: Callable[[RefreshReport], None]) -> None:
        with self._listener_lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[RefreshReport], None]) -> None:
        with self._listener_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _finish(self, report: RefreshReport) -> RefreshReport:
        self.last_report = report
        with self._listener_lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(report)
            except Exception:
                logger.exception("Refresh listener failed")
        return report


def repository_paths(entries: list[RepositoryEntry]) -> list[str]:
    return [entry.path for entry in entries if entry.kind is ResultKind.GIT_REPOSITORY]


def _cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()
