from __future__ import annotations

from datetime import datetime, timedelta, timezone

from reposcout.models import RepositoryEntry, ResultKind, SortPolicy
from reposcout.services.ranking_service import (
    DefaultFuzzyMatcher,
    MatchResult,
    RankingEngine,
    build_backend_missing_result,
    build_no_results_result,
    parse_query,
)
from reposcout.text import Messages

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _repo(path, languages=("Unknown",), remote=""):
    return RepositoryEntry(
        path=path,
        kind=ResultKind.GIT_REPOSITORY,
        languages=tuple(languages),
        remote_url=remote,
    )


def _titles(results):
    return [result.title for result in results]


def test_parse_query_extracts_language_and_remote_flag():
    parsed = parse_query("  LANG:Rust   auth  --remote ")

    assert parsed.text == "auth"
    assert parsed.language == "Rust"
    assert parsed.remote_only is True


def test_parse_query_uses_first_language_and_strips_all():
    parsed = parse_query("lang:go api lang:rust")

    assert parsed.language == "go"
    assert parsed.text == "api"
    assert parsed.remote_only is False


def test_parse_query_keeps_plain_text():
    assert parse_query("slang:x").text == "slang:x"
    assert parse_query(None).text == ""
    assert parse_query("lang:c# tool").language == "c#"


def test_language_filter_and_text_match():
    entries = [
        _repo("/code/auth-service", ["Rust"]),
        _repo("/code/auth-ui", ["TypeScript"]),
        _repo("/code/billing", ["Rust"]),
    ]

    results = RankingEngine().rank(entries, "lang:rust auth")

    assert _titles(results) == ["auth-service"]


def test_language_filter_is_substring_match():
    entries = [
        _repo("/code/web", ["TypeScript", "JavaScript"]),
        _repo("/code/cli", ["Go"]),
    ]

    results = RankingEngine().rank(entries, "lang:script")

    assert _titles(results) == ["web"]


def test_remote_filter_excludes_local_only_repos():
    entries = [
        _repo("/code/local"),
        _repo("/code/hosted", remote="https://github.com/acme/hosted"),
    ]

    assert _titles(RankingEngine().rank(entries, "--remote")) == ["hosted"]


def test_text_results_ordered_by_score_then_title():
    entries = [
        _repo("/code/my-api"),
        _repo("/code/api-gateway"),
        _repo("/code/api"),
        _repo("/code/zeta-api"),
        _repo("/code/unrelated"),
    ]

    results = RankingEngine().rank(entries, "api")

    assert _titles(results) == ["api", "api-gateway", "my-api", "zeta-api"]
    assert results[0].score == 100.0
    assert results[0].highlight == (0, 1, 2)


def test_recency_policy_preserves_discovery_order():
    entries = [_repo("/code/c"), _repo("/code/a"), _repo("/code/b")]

    results = RankingEngine().rank(entries, "", SortPolicy.RECENCY_OF_DISCOVERY)

    assert _titles(results) == ["c", "a", "b"]


def test_last_opened_policy_puts_opened_first():
    opened = {
        "/code/x": NOW - timedelta(hours=2),
        "/code/z": NOW - timedelta(minutes=5),
    }
    entries = [_repo("/code/x"), _repo("/code/y"), _repo("/code/z"), _repo("/code/w")]
    engine = RankingEngine(last_opened=opened.get)

    results = engine.rank(entries, "", SortPolicy.LAST_OPENED)

    assert _titles(results) == ["z", "x", "y", "w"]


def test_results_truncated_to_max_results():
    entries = [_repo(f"/code/repo{idx}") for idx in range(5)]

    results = RankingEngine(max_results=2).rank(entries, "")

    assert _titles(results) == ["repo0", "repo1"]


def test_repository_result_display_fields():
    entry = _repo("/code/engine", ["Rust", "C"])
    unknown = _repo("/code/notes")

    engine = RankingEngine()
    result, plain = engine.rank([entry, unknown], "")

    assert result.subtitle == "/code/engine • Rust, C"
    assert result.icon == "lang_rust.png"
    assert result.target == "/code/engine"
    assert result.entry is entry
    assert plain.subtitle == "/code/notes"
    assert plain.icon == "lang_unknown.png"


def test_custom_icon_wins_for_repositories():
    entry = _repo("/code/brand", ["Go"])
    entry.custom_icon_path = "/icons/brand.png"

    (result,) = RankingEngine().rank([entry], "")

    assert result.icon == "/icons/brand.png"


def test_workspace_result_uses_editor_icon():
    entry = RepositoryEntry(path="/code/team.code-workspace", kind=ResultKind.WORKSPACE)

    (result,) = RankingEngine(editor_icon="vscode.png").rank([entry], "")

    assert result.title == "team.code-workspace"
    assert result.subtitle == "/code/team.code-workspace"
    assert result.icon == "vscode.png"


def test_custom_matcher_is_used():
    class FirstLetterMatcher:
        def match(self, query, title):
            hit = title.startswith(query[0])
            return MatchResult(score=len(title) if hit else 0, matched=hit)

    entries = [_repo("/code/bb"), _repo("/code/bbbb"), _repo("/code/cc")]

    results = RankingEngine(matcher=FirstLetterMatcher()).rank(entries, "b")

    assert _titles(results) == ["bbbb", "bb"]


def test_default_matcher_tiers():
    matcher = DefaultFuzzyMatcher()

    exact = matcher.match("Auth", "auth")
    prefix = matcher.match("auth", "auth-service")
    substring = matcher.match("service", "auth-service")
    tokens = matcher.match("service auth", "auth-service")
    subsequence = matcher.match("asvc", "auth-service")
    miss = matcher.match("zzz", "auth-service")

    assert exact.score == 100.0
    assert 80 < prefix.score < 90
    assert 60 < substring.score < 70
    assert 55 < tokens.score <= 65
    assert 50 <= subsequence.score < 60
    assert all(result.matched for result in (exact, prefix, substring, tokens, subsequence))
    assert miss.matched is False


def test_default_matcher_threshold_is_configurable():
    assert DefaultFuzzyMatcher(threshold=90).match("auth", "auth-service").matched is False
    assert DefaultFuzzyMatcher(threshold=0).match("", "auth").matched is False


def test_message_results():
    missing = build_backend_missing_result("es", "cursor.png")
    empty = build_no_results_result("", "cursor.png")
    query = build_no_results_result(" foo ", "cursor.png")

    assert missing.title == Messages.ERROR_BACKEND_MISSING
    assert "`es`" in missing.subtitle
    assert missing.is_message is True
    assert empty.subtitle == Messages.INFO_NO_RESULTS_EMPTY_QUERY
    assert query.subtitle == "No codebases matching 'foo'"
