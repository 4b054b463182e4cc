import json

import pytest

from reposcout import config as config_module


def _prepare_config(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    return config_file


def test_load_config_defaults(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    cfg = config_module.load_config()

    assert cfg.backend_command == "es"
    assert cfg.editor == "cursor"
    assert cfg.sort_policy == "recency"
    assert cfg.max_results == 50
    assert cfg.stale_hours == 24.0
    assert cfg.discovery_ttl_seconds == 30.0
    assert cfg.file_budget == 500
    assert cfg.significance_threshold == 0.2
    assert cfg.signature_detection is True
    assert "node_modules" in cfg.ignored_directories
    assert len(cfg.search_paths) == 1


def test_save_and_load_round_trip(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)

    config_module.save_config(
        config_module.Config(search_paths=["/code"], editor="vscode", max_results=7)
    )

    stored = json.loads(config_file.read_text())
    assert stored["search_paths"] == ["/code"]
    assert stored["editor"] == "vscode"
    cfg = config_module.load_config()
    assert cfg.max_results == 7
    assert cfg.search_paths == ["/code"]


def test_load_config_keeps_defaults_for_invalid_fields(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    config_file.parent.mkdir(parents=True)
    config_file.write_text(
        json.dumps({"max_results": "lots", "editor": "vscode", "stale_hours": "12"})
    )

    cfg = config_module.load_config()

    assert cfg.max_results == config_module.DEFAULT_MAX_RESULTS
    assert cfg.editor == "vscode"
    assert cfg.stale_hours == 12.0


def test_typed_setters_persist(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)

    config_module.set_backend_command("/opt/es.exe")
    config_module.set_editor("code")
    config_module.set_sort_policy("last-opened")
    config_module.set_max_results(10)
    config_module.set_stale_hours(6)

    stored = json.loads(config_file.read_text())
    assert stored["backend_command"] == "/opt/es.exe"
    assert stored["editor"] == "vscode"
    assert stored["sort_policy"] == "last_opened"
    assert stored["max_results"] == 10
    assert stored["stale_hours"] == 6


def test_search_path_add_and_remove(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    code = tmp_path / "code"
    code.mkdir()

    assert config_module.add_search_path(str(code)) is True
    assert config_module.add_search_path(str(code)) is False
    assert str(code.resolve()) in config_module.load_config().search_paths

    assert config_module.remove_search_path(str(code)) is True
    assert config_module.remove_search_path(str(code)) is False


def test_removing_last_search_path_restores_home(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    config_module.save_config(config_module.Config(search_paths=["/only"]))

    config_module.remove_search_path("/only")

    assert config_module.load_config().search_paths == config_module._default_search_paths()


def test_ignored_directory_add_and_remove(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    assert config_module.add_ignored_directory("generated") is True
    assert config_module.add_ignored_directory("generated") is False
    assert config_module.remove_ignored_directory("node_modules") is True
    cfg = config_module.load_config()
    assert "generated" in cfg.ignored_directories
    assert "node_modules" not in cfg.ignored_directories


def test_normalizers_reject_unknown_values():
    assert config_module.normalize_editor("VS-Code") == "vscode"
    assert config_module.normalize_sort_policy("recency_of_discovery") == "recency"
    with pytest.raises(ValueError):
        config_module.normalize_editor("emacs")
    with pytest.raises(ValueError):
        config_module.normalize_sort_policy("alphabetical")


def test_config_from_json_is_strict():
    cfg = config_module.config_from_json('{"fuzzy_threshold": 70, "signature_detection": "off"}')

    assert cfg.fuzzy_threshold == 70
    assert cfg.signature_detection is False
    with pytest.raises(ValueError):
        config_module.config_from_json({"max_results": 1.5})
    with pytest.raises(ValueError):
        config_module.config_from_json("[1, 2]")
    with pytest.raises(ValueError):
        config_module.config_from_json("{not json")


def test_update_config_from_json_merges_and_saves(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    config_module.set_editor("vscode")

    cfg = config_module.update_config_from_json({"batch_size": 5})

    assert cfg.batch_size == 5
    assert cfg.editor == "vscode"
    assert json.loads(config_file.read_text())["batch_size"] == 5


def test_config_dir_context_overrides_location(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    override = tmp_path / "override"

    with config_module.config_dir_context(override):
        config_module.set_max_results(3)
        assert config_module.config_file_path() == override.resolve() / "config.json"

    assert json.loads((override / "config.json").read_text())["max_results"] == 3
    assert config_module.load_config().max_results == config_module.DEFAULT_MAX_RESULTS


def test_set_config_dir_rejects_files(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    target = tmp_path / "file"
    target.write_text("x")

    with pytest.raises(NotADirectoryError):
        config_module.set_config_dir(target)


def test_add_search_path_rejects_missing_directory(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    with pytest.raises(FileNotFoundError):
        config_module.add_search_path(str(tmp_path / "missing"))
