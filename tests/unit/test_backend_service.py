from __future__ import annotations

import subprocess

from reposcout.services import backend_service
from reposcout.services.backend_service import CommandLineBackend, parse_output_lines


def _completed(args, returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr="")


def test_search_builds_path_scoped_command(monkeypatch):
    captured = {}

    def fake_run(args, **kwargs):
        captured["args"] = args
        captured["timeout"] = kwargs["timeout"]
        return _completed(args, stdout="C:\\code\\app\\.git\r\n\r\nC:\\code\\lib\\.git\n")

    monkeypatch.setattr(backend_service.subprocess, "run", fake_run)
    backend = CommandLineBackend(command="es", search_timeout=3)

    hits = backend.search("C:\\code", "folder:.git")

    assert captured["args"] == ["es", "-path", "C:\\code", "folder:.git"]
    assert captured["timeout"] == 3
    assert hits == ["C:\\code\\app\\.git", "C:\\code\\lib\\.git"]


def test_search_returns_nothing_on_failure(monkeypatch):
    monkeypatch.setattr(
        backend_service.subprocess,
        "run",
        lambda args, **kwargs: _completed(args, returncode=2, stdout="partial"),
    )

    assert CommandLineBackend().search("/code", "folder:.git") == []


def test_missing_executable_and_timeout_are_soft_failures(monkeypatch):
    def missing(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(backend_service.subprocess, "run", missing)
    assert CommandLineBackend(command="nope").is_available() is False
    assert CommandLineBackend(command="nope").search("/code", "x") == []

    def slow(args, **kwargs):
        raise subprocess.TimeoutExpired(args, kwargs["timeout"])

    monkeypatch.setattr(backend_service.subprocess, "run", slow)
    assert CommandLineBackend().is_available() is False


def test_availability_check_uses_version_flag(monkeypatch):
    captured = {}

    def fake_run(args, **kwargs):
        captured["args"] = args
        captured["timeout"] = kwargs["timeout"]
        return _completed(args, stdout="1.1.0.27")

    monkeypatch.setattr(backend_service.subprocess, "run", fake_run)

    assert CommandLineBackend(availability_timeout=1.5).is_available() is True
    assert captured == {"args": ["es", "-version"], "timeout": 1.5}


def test_parse_output_lines_handles_empty_output():
    assert parse_output_lines(None) == []
    assert parse_output_lines("") == []
    assert parse_output_lines("  /a/.git  \n") == ["/a/.git"]
