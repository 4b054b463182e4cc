from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone

import reposcout.cache as cache
from reposcout.cache import ClassificationCache, UsageStore
from reposcout.models import ClassificationRecord, RepositoryEntry, ResultKind

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class CountingClassifier:
    def __init__(self, languages=("Python",)) -> None:
        self.languages = tuple(languages)
        self.calls: list[str] = []

    def classify(self, path):
        self.calls.append(str(path))
        return self.languages


def _make_cache(tmp_path, **kwargs) -> ClassificationCache:
    kwargs.setdefault("classifier", CountingClassifier())
    kwargs.setdefault("remote_reader", lambda path: "https://example.com/acme/app")
    return ClassificationCache(tmp_path / "language_cache.json", **kwargs)


def _freeze(monkeypatch, moment):
    monkeypatch.setattr(cache, "_utcnow", lambda: moment)


def _record(detected_at, languages=("Go",)):
    return ClassificationRecord(languages=languages, remote_url="", detected_at=detected_at)


def test_lookups_default_on_miss(tmp_path):
    store = _make_cache(tmp_path)

    assert store.get_languages(tmp_path / "unknown") == ("Unknown",)
    assert store.get_remote_url(tmp_path / "unknown") == ""
    assert store.is_stale(tmp_path / "unknown") is True


def test_is_stale_uses_threshold(tmp_path, monkeypatch):
    _freeze(monkeypatch, NOW)
    store = _make_cache(tmp_path)
    store.upsert("/repos/old", _record(NOW - timedelta(hours=25)))
    store.upsert("/repos/fresh", _record(NOW - timedelta(hours=23)))

    assert store.is_stale("/repos/old") is True
    assert store.is_stale("/repos/fresh") is False


def test_detect_and_cache_persists_record(tmp_path, monkeypatch):
    _freeze(monkeypatch, NOW)
    repo = tmp_path / "repo"
    repo.mkdir()
    store = _make_cache(tmp_path)

    assert store.detect_and_cache(repo) == ("Python",)
    assert store.is_dirty is True
    assert store.save() is True
    assert store.is_dirty is False

    payload = json.loads((tmp_path / "language_cache.json").read_text())
    (key, value), = payload.items()
    assert value["languages"] == ["Python"]
    assert value["remote_url"] == "https://example.com/acme/app"
    assert value["detected_at"] == NOW.isoformat()

    reloaded = _make_cache(tmp_path)
    assert reloaded.get_languages(repo) == ("Python",)
    assert reloaded.get_remote_url(repo) == "https://example.com/acme/app"


def test_force_rebuild_refreshes_timestamp(tmp_path, monkeypatch):
    repo = tmp_path / "repo"
    repo.mkdir()
    classifier = CountingClassifier(("Rust",))
    store = _make_cache(tmp_path, classifier=classifier)
    _freeze(monkeypatch, NOW - timedelta(hours=30))
    store.detect_and_cache(repo)
    _freeze(monkeypatch, NOW)

    assert store.is_stale(repo) is True
    store.force_rebuild(repo)

    assert store.get(repo).detected_at == NOW
    assert store.is_stale(repo) is False
    assert len(classifier.calls) == 2


def test_cleanup_missing_paths_removes_only_vanished(tmp_path, monkeypatch):
    _freeze(monkeypatch, NOW)
    kept = tmp_path / "kept"
    gone = tmp_path / "gone"
    kept.mkdir()
    gone.mkdir()
    store = _make_cache(tmp_path)
    store.detect_and_cache(kept)
    store.detect_and_cache(gone)
    store.save()
    gone.rmdir()

    assert store.cleanup_missing_paths() == 1
    assert kept in store
    assert gone not in store
    assert store.cleanup_missing_paths() == 0
    assert len(json.loads((tmp_path / "language_cache.json").read_text())) == 1


def test_corrupt_file_resets_to_empty(tmp_path):
    (tmp_path / "language_cache.json").write_text("{not json")

    store = _make_cache(tmp_path)

    assert len(store) == 0


def test_malformed_records_reset_to_empty(tmp_path):
    (tmp_path / "language_cache.json").write_text(
        json.dumps({"/a": {"languages": ["Go"]}})
    )

    assert len(_make_cache(tmp_path)) == 0


def test_refresh_stale_entries_only_touches_stale(tmp_path, monkeypatch):
    _freeze(monkeypatch, NOW)
    fresh = tmp_path / "fresh"
    stale = tmp_path / "stale"
    fresh.mkdir()
    stale.mkdir()
    classifier = CountingClassifier()
    store = _make_cache(tmp_path, classifier=classifier)
    store.upsert(fresh, _record(NOW - timedelta(hours=1)))
    store.upsert(stale, _record(NOW - timedelta(hours=48)))

    refreshed = store.refresh_stale_entries([str(fresh), str(stale)])

    assert refreshed == 1
    assert classifier.calls == [str(stale)]
    assert store.is_dirty is False


def test_rebuild_all_saves_in_batches(tmp_path, monkeypatch):
    _freeze(monkeypatch, NOW)
    paths = []
    for idx in range(5):
        repo = tmp_path / f"repo{idx}"
        repo.mkdir()
        paths.append(str(repo))
    store = _make_cache(tmp_path, batch_size=2)
    saves = []
    original_save = store.save

    def counting_save():
        saves.append(len(store))
        return original_save()

    monkeypatch.setattr(store, "save", counting_save)

    assert store.rebuild_all(paths) == 5
    assert saves == [2, 4, 5]


def test_bulk_operations_stop_when_cancelled(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    classifier = CountingClassifier()
    store = _make_cache(tmp_path, classifier=classifier)
    cancel = threading.Event()
    cancel.set()

    assert store.rebuild_all([str(repo)], cancel) == 0
    assert store.refresh_stale_entries([str(repo)], cancel) == 0
    assert classifier.calls == []


def test_rebuild_all_async_runs_on_thread(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    store = _make_cache(tmp_path)

    thread = store.rebuild_all_async([str(repo)])
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.daemon is True
    assert store.get_languages(repo) == ("Python",)


def test_clear_drops_records(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    store = _make_cache(tmp_path)
    store.detect_and_cache(repo)

    store.clear()

    assert len(store) == 0
    assert json.loads((tmp_path / "language_cache.json").read_text()) == {}


def test_usage_store_write_through(tmp_path, monkeypatch):
    _freeze(monkeypatch, NOW)
    repo = tmp_path / "repo"
    repo.mkdir()
    store = UsageStore(tmp_path / "usage_cache.json")

    assert store.get_last_opened(repo) is None
    assert store.record_open(repo) == NOW
    assert store.is_dirty is False

    reloaded = UsageStore(tmp_path / "usage_cache.json")
    assert reloaded.get_last_opened(repo) == NOW


def test_usage_store_overwrites_and_cleans(tmp_path, monkeypatch):
    repo = tmp_path / "repo"
    repo.mkdir()
    store = UsageStore(tmp_path / "usage_cache.json")
    _freeze(monkeypatch, NOW)
    store.record_open(repo)
    later = NOW + timedelta(minutes=5)
    _freeze(monkeypatch, later)
    store.record_open(repo)

    assert store.get_last_opened(repo) == later
    repo.rmdir()
    assert store.cleanup_missing_paths() == 1
    assert store.get_last_opened(repo) is None


def test_snapshot_round_trip_and_corruption(tmp_path):
    target = tmp_path / "search_cache.json"
    entries = [
        RepositoryEntry(path="/code/app", kind=ResultKind.GIT_REPOSITORY),
        RepositoryEntry(
            path="/code/team.code-workspace",
            kind=ResultKind.WORKSPACE,
            custom_icon_path="team.png",
        ),
    ]

    assert cache.store_snapshot(entries, target) is True
    loaded = cache.load_snapshot(target)
    assert [(entry.path, entry.kind, entry.custom_icon_path) for entry in loaded] == [
        ("/code/app", ResultKind.GIT_REPOSITORY, None),
        ("/code/team.code-workspace", ResultKind.WORKSPACE, "team.png"),
    ]

    target.write_text('[{"path": "/x", "kind": "Folder"}]')
    assert cache.load_snapshot(target) == []
    target.write_text("garbage")
    assert cache.load_snapshot(target) == []


def test_data_dir_context_and_clear_all_cache(tmp_path):
    with cache.data_dir_context(tmp_path):
        assert cache.cache_file("x.json") == tmp_path.resolve() / "x.json"
        cache.write_json_atomic(cache.cache_file(cache.USAGE_CACHE_FILENAME), {})
        cache.write_json_atomic(cache.cache_file(cache.SEARCH_CACHE_FILENAME), [])

        assert cache.clear_all_cache() == 2
        assert list(tmp_path.iterdir()) == []


def test_write_json_atomic_reports_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory")

    assert cache.write_json_atomic(blocker / "nested" / "out.json", {"a": 1}) is False
    assert cache.read_json_file(tmp_path / "missing.json") is None
