"""Persistent JSON caches for classification, usage and discovery snapshots."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Callable, Generic, Iterable, Sequence, TypeVar

from .classifier import PathClassifier, read_remote_url
from .config import DEFAULT_BATCH_SIZE, DEFAULT_STALE_HOURS
from .models import (
    ClassificationRecord,
    RepositoryEntry,
    UNKNOWN_LANGUAGES,
    UsageRecord,
)
from .utils import normalize_path_key, path_exists

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(os.path.expanduser("~")) / ".reposcout"
DATA_DIR = DEFAULT_DATA_DIR
_DATA_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "reposcout_data_dir_override",
    default=None,
)
LANGUAGE_CACHE_FILENAME = "language_cache.json"
USAGE_CACHE_FILENAME = "usage_cache.json"
SEARCH_CACHE_FILENAME = "search_cache.json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_data_dir() -> Path:
    override = _DATA_DIR_OVERRIDE.get()
    return override if override is not None else DATA_DIR


@contextmanager
def data_dir_context(path: Path | str | None):
    """Temporarily override the data directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _DATA_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _DATA_DIR_OVERRIDE.reset(token)


def set_data_dir(path: Path | str | None) -> None:
    global DATA_DIR
    if path is None:
        DATA_DIR = DEFAULT_DATA_DIR
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    DATA_DIR = dir_path


def data_dir() -> Path:
    return _resolve_data_dir()


def cache_file(filename: str) -> Path:
    return _resolve_data_dir() / filename


def read_json_file(path: Path) -> object | None:
    """Return the decoded JSON document at *path*, or None if missing or corrupt."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not read cache file %s: %s", path, exc)
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Discarding corrupt cache file %s: %s", path, exc)
        return None


def write_json_atomic(path: Path, data: object) -> bool:
    """Replace *path* with an indented JSON document; False if the write failed."""

    tmp_path: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
        tmp_path = None
        return True
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to save cache file %s: %s", path, exc)
        return False
    finally:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


R = TypeVar("R", ClassificationRecord, UsageRecord)


class _JsonStore(Generic[R]):
    """In-memory map of path keys to records backed by one JSON file.

    Readers never lock. Mutations take ``_update_lock`` for the single key
    update; ``save`` takes ``_save_lock`` for the copy-and-replace step.
    """

    filename = ""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else cache_file(self.filename)
        self._records: dict[str, R] = {}
        self._update_lock = Lock()
        self._save_lock = Lock()
        self._dirty = False
        self._load()

    @staticmethod
    def _decode(raw: dict) -> R:  # pragma: no cover - overridden
        raise NotImplementedError

    def _load(self) -> None:
        raw = read_json_file(self.path)
        if not isinstance(raw, dict):
            self._records = {}
            return
        records: dict[str, R] = {}
        try:
            for key, value in raw.items():
                records[normalize_path_key(key)] = self._decode(value)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Resetting cache %s after load failure: %s", self.path, exc)
            records = {}
        self._records = records

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        return normalize_path_key(path) in self._records

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def keys(self) -> list[str]:
        return list(self._records)

    def get(self, path: Path | str) -> R | None:
        return self._records.get(normalize_path_key(path))

    def upsert(self, path: Path | str, record: R) -> None:
        with self._update_lock:
            self._records[normalize_path_key(path)] = record
            self._dirty = True

    def discard(self, path: Path | str) -> bool:
        with self._update_lock:
            removed = self._records.pop(normalize_path_key(path), None)
            if removed is not None:
                self._dirty = True
        return removed is not None

    def save(self) -> bool:
        """Persist the store if it changed since the last successful save."""

        with self._save_lock:
            with self._update_lock:
                if not self._dirty:
                    return False
                snapshot = {key: record.to_dict() for key, record in self._records.items()}
                self._dirty = False
            if write_json_atomic(self.path, snapshot):
                return True
            with self._update_lock:
                self._dirty = True
            return False

    def cleanup_missing_paths(self) -> int:
        """Drop records whose path is neither a file nor a directory."""

        missing = [key for key in self.keys() if not path_exists(key)]
        if not missing:
            return 0
        with self._update_lock:
            for key in missing:
                self._records.pop(key, None)
            self._dirty = True
        logger.debug("Pruned %d missing path(s) from %s", len(missing), self.path)
        self.save()
        return len(missing)

    def clear(self) -> None:
        with self._update_lock:
            self._records = {}
            self._dirty = True
        self.save()


class ClassificationCache(_JsonStore[ClassificationRecord]):
    """Language and remote URL records with a staleness threshold."""

    filename = LANGUAGE_CACHE_FILENAME

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        classifier: PathClassifier | None = None,
        stale_after: timedelta | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        remote_reader: Callable[[str], str] = read_remote_url,
    ) -> None:
        self.classifier = classifier or PathClassifier()
        self.stale_after = (
            stale_after if stale_after is not None else timedelta(hours=DEFAULT_STALE_HOURS)
        )
        self.batch_size = max(int(batch_size), 1)
        self._remote_reader = remote_reader
        super().__init__(path)

    @staticmethod
    def _decode(raw: dict) -> ClassificationRecord:
        return ClassificationRecord.from_dict(raw)

    def get_languages(self, path: Path | str) -> tuple[str, ...]:
        record = self.get(path)
        return record.languages if record is not None else UNKNOWN_LANGUAGES

    def get_remote_url(self, path: Path | str) -> str:
        record = self.get(path)
        return record.remote_url if record is not None else ""

    def is_stale(self, path: Path | str) -> bool:
        record = self.get(path)
        if record is None:
            return True
        return _utcnow() - record.detected_at > self.stale_after

    def detect_and_cache(self, path: Path | str) -> tuple[str, ...]:
        """Classify *path* now and store the result with the current time."""

        path = os.fspath(path)
        languages = self.classifier.classify(path)
        remote_url = self._remote_reader(path)
        self.upsert(
            path,
            ClassificationRecord(
                languages=languages,
                remote_url=remote_url,
                detected_at=_utcnow(),
            ),
        )
        return languages

    def force_rebuild(self, path: Path | str) -> tuple[str, ...]:
        self.discard(path)
        return self.detect_and_cache(path)

    def rebuild_all(
        self,
        paths: Iterable[str],
        cancel_event: threading.Event | None = None,
    ) -> int:
        """Reclassify every path; returns the number of paths rebuilt."""

        return self._bulk_detect(paths, cancel_event, only_stale=False)

    def refresh_stale_entries(
        self,
        paths: Iterable[str],
        cancel_event: threading.Event | None = None,
    ) -> int:
        """Reclassify the stale subset of *paths*; returns the number refreshed."""

        return self._bulk_detect(paths, cancel_event, only_stale=True)

    def rebuild_all_async(
        self,
        paths: Sequence[str],
        cancel_event: threading.Event | None = None,
    ) -> threading.Thread:
        return self._start_thread(self.rebuild_all, list(paths), cancel_event)

    def refresh_stale_entries_async(
        self,
        paths: Sequence[str],
        cancel_event: threading.Event | None = None,
    ) -> threading.Thread:
        return self._start_thread(self.refresh_stale_entries, list(paths), cancel_event)

    def _bulk_detect(
        self,
        paths: Iterable[str],
        cancel_event: threading.Event | None,
        *,
        only_stale: bool,
    ) -> int:
        processed = 0
        for path in paths:
            if cancel_event is not None and cancel_event.is_set():
                logger.debug("Classification run cancelled after %d path(s)", processed)
                break
            if only_stale and not self.is_stale(path):
                continue
            if only_stale:
                self.detect_and_cache(path)
            else:
                self.force_rebuild(path)
            processed += 1
            if processed % self.batch_size == 0:
                self.save()
        if self._dirty:
            self.save()
        return processed

    @staticmethod
    def _start_thread(target, paths: list[str], cancel_event) -> threading.Thread:
        thread = threading.Thread(
            target=target,
            args=(paths, cancel_event),
            name="reposcout-classify",
            daemon=True,
        )
        thread.start()
        return thread


class UsageStore(_JsonStore[UsageRecord]):
    """Write-through record of when each path was last opened."""

    filename = USAGE_CACHE_FILENAME

    @staticmethod
    def _decode(raw: dict) -> UsageRecord:
        return UsageRecord.from_dict(raw)

    def record_open(self, path: Path | str) -> datetime:
        opened_at = _utcnow()
        self.upsert(path, UsageRecord(last_opened_at=opened_at))
        self.save()
        return opened_at

    def get_last_opened(self, path: Path | str) -> datetime | None:
        record = self.get(path)
        return record.last_opened_at if record is not None else None


def load_snapshot(path: Path | None = None) -> list[RepositoryEntry]:
    """Load the persisted discovery snapshot; empty when missing or corrupt."""

    target = path if path is not None else cache_file(SEARCH_CACHE_FILENAME)
    raw = read_json_file(target)
    if not isinstance(raw, list):
        return []
    try:
        return [RepositoryEntry.from_snapshot(item) for item in raw]
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("Resetting discovery snapshot %s: %s", target, exc)
        return []


def store_snapshot(entries: Sequence[RepositoryEntry], path: Path | None = None) -> bool:
    target = path if path is not None else cache_file(SEARCH_CACHE_FILENAME)
    return write_json_atomic(target, [entry.to_snapshot() for entry in entries])


def clear_all_cache() -> int:
    """Remove every cache file in the data directory; returns files removed."""

    removed = 0
    for filename in (LANGUAGE_CACHE_FILENAME, USAGE_CACHE_FILENAME, SEARCH_CACHE_FILENAME):
        target = cache_file(filename)
        try:
            target.unlink()
        except FileNotFoundError:
            continue
        removed += 1
    return removed
