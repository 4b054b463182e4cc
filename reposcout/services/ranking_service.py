"""Query parsing, fuzzy scoring and ordering of discovered repositories."""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Protocol, Sequence

from ..classifier import icon_for_language
from ..config import DEFAULT_FUZZY_THRESHOLD, DEFAULT_MAX_RESULTS
from ..models import Language, RankedResult, RepositoryEntry, ResultKind, SortPolicy
from ..text import Messages

LANG_FILTER_RE = re.compile(r"(?<![\w-])lang:([\w#+]+)", re.IGNORECASE)
REMOTE_FLAG_RE = re.compile(r"(?<!\S)--remote(?!\S)", re.IGNORECASE)
SUBTITLE_SEPARATOR = " • "


@dataclass(frozen=True, slots=True)
class ParsedQuery:
    text: str
    language: str | None = None
    remote_only: bool = False


def parse_query(raw: str | None) -> ParsedQuery:
    """Split ``lang:<name>`` and ``--remote`` out of the raw query text."""

    text = raw or ""
    language = None
    match = LANG_FILTER_RE.search(text)
    if match:
        language = match.group(1)
        text = LANG_FILTER_RE.sub(" ", text)
    remote_only = bool(REMOTE_FLAG_RE.search(text))
    if remote_only:
        text = REMOTE_FLAG_RE.sub(" ", text)
    return ParsedQuery(
        text=" ".join(text.split()),
        language=language,
        remote_only=remote_only,
    )


@dataclass(slots=True)
class MatchResult:
    score: float
    matched: bool
    match_data: tuple[int, ...] = field(default_factory=tuple)


class FuzzyMatcher(Protocol):
    """Scores how well a query matches a result title."""

    def match(self, query: str, title: str) -> MatchResult:
        raise NotImplementedError  # pragma: no cover


class DefaultFuzzyMatcher:
    """Tiered matcher scoring 0-100: exact, prefix, substring, tokens, subsequence."""

    def __init__(self, threshold: float = DEFAULT_FUZZY_THRESHOLD) -> None:
        self.threshold = float(threshold)

    def match(self, query: str, title: str) -> MatchResult:
        score, positions = self._score(query.strip().lower(), title.lower())
        return MatchResult(
            score=score,
            matched=score > 0 and score >= self.threshold,
            match_data=tuple(positions),
        )

    @staticmethod
    def _score(query: str, title: str) -> tuple[float, list[int]]:
        if not query or not title:
            return 0.0, []
        coverage = min(len(query) / len(title), 1.0)
        if query == title:
            return 100.0, list(range(len(title)))
        index = title.find(query)
        if index == 0:
            return 80.0 + coverage * 10, list(range(len(query)))
        if index > 0:
            return 60.0 + coverage * 10, list(range(index, index + len(query)))

        tokens = query.split()
        if len(tokens) > 1 and all(token in title for token in tokens):
            positions: set[int] = set()
            for token in tokens:
                start = title.find(token)
                positions.update(range(start, start + len(token)))
            return 55.0 + coverage * 10, sorted(positions)

        compact = query.replace(" ", "")
        positions_list: list[int] = []
        cursor = 0
        for char in compact:
            found = title.find(char, cursor)
            if found < 0:
                positions_list = []
                break
            positions_list.append(found)
            cursor = found + 1
        if positions_list:
            return 50.0 + min(len(compact) / len(title), 1.0) * 10, positions_list

        matcher = difflib.SequenceMatcher(None, query, title)
        positions = set()
        for block in matcher.get_matching_blocks():
            positions.update(range(block.b, block.b + block.size))
        return matcher.ratio() * 60.0, sorted(positions)


def _entry_title(entry: RepositoryEntry) -> str:
    return entry.name


def _build_repository_result(entry: RepositoryEntry, editor_icon: str) -> RankedResult:
    subtitle = entry.path
    if entry.primary_language != Language.UNKNOWN:
        subtitle = f"{entry.path}{SUBTITLE_SEPARATOR}{', '.join(entry.languages)}"
    icon = entry.custom_icon_path or icon_for_language(entry.primary_language)
    return RankedResult(
        title=_entry_title(entry),
        subtitle=subtitle,
        icon=icon,
        target=entry.path,
        entry=entry,
    )


def _build_workspace_result(entry: RepositoryEntry, editor_icon: str) -> RankedResult:
    return RankedResult(
        title=_entry_title(entry),
        subtitle=entry.path,
        icon=entry.custom_icon_path or editor_icon,
        target=entry.path,
        entry=entry,
    )


RESULT_BUILDERS: dict[ResultKind, Callable[[RepositoryEntry, str], RankedResult]] = {
    ResultKind.GIT_REPOSITORY: _build_repository_result,
    ResultKind.WORKSPACE: _build_workspace_result,
}

LastOpenedLookup = Callable[[str], "datetime | None"]


def _order_by_discovery(
    results: list[RankedResult], last_opened: LastOpenedLookup | None
) -> list[RankedResult]:
    return list(results)


def _order_by_last_opened(
    results: list[RankedResult], last_opened: LastOpenedLookup | None
) -> list[RankedResult]:
    if last_opened is None:
        return list(results)
    opened: list[tuple[datetime, RankedResult]] = []
    never_opened: list[RankedResult] = []
    for result in results:
        stamp = last_opened(result.target)
        if stamp is None:
            never_opened.append(result)
        else:
            opened.append((stamp, result))
    opened.sort(key=lambda item: item[0], reverse=True)
    return [result for _, result in opened] + never_opened


SORT_HANDLERS: dict[
    SortPolicy,
    Callable[[list[RankedResult], LastOpenedLookup | None], list[RankedResult]],
] = {
    SortPolicy.RECENCY_OF_DISCOVERY: _order_by_discovery,
    SortPolicy.LAST_OPENED: _order_by_last_opened,
}


class RankingEngine:
    """Filter, score and order entries into a capped list of display rows."""

    def __init__(
        self,
        *,
        matcher: FuzzyMatcher | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        last_opened: LastOpenedLookup | None = None,
        editor_icon: str = "cursor.png",
    ) -> None:
        self.matcher = matcher or DefaultFuzzyMatcher()
        self.max_results = max(int(max_results), 1)
        self.last_opened = last_opened
        self.editor_icon = editor_icon

    def rank(
        self,
        entries: Sequence[RepositoryEntry],
        raw_query: str | None,
        sort_policy: SortPolicy = SortPolicy.RECENCY_OF_DISCOVERY,
    ) -> list[RankedResult]:
        query = parse_query(raw_query)
        candidates = [entry for entry in entries if self._passes_filters(entry, query)]
        results = [RESULT_BUILDERS[entry.kind](entry, self.editor_icon) for entry in candidates]
        if query.text:
            ordered = self._order_by_score(results, query.text)
        else:
            ordered = SORT_HANDLERS[SortPolicy(sort_policy)](results, self.last_opened)
        return ordered[: self.max_results]

    @staticmethod
    def _passes_filters(entry: RepositoryEntry, query: ParsedQuery) -> bool:
        if query.language:
            needle = query.language.lower()
            if not any(needle in language.lower() for language in entry.languages):
                return False
        if query.remote_only and not entry.remote_url:
            return False
        return True

    def _order_by_score(self, results: list[RankedResult], text: str) -> list[RankedResult]:
        matched: list[RankedResult] = []
        for result in results:
            outcome = self.matcher.match(text, result.title)
            if not outcome.matched:
                continue
            result.score = outcome.score
            result.highlight = outcome.match_data
            matched.append(result)
        matched.sort(key=lambda item: (-item.score, item.title))
        return matched


def build_backend_missing_result(command: str, editor_icon: str) -> RankedResult:
    return RankedResult(
        title=Messages.ERROR_BACKEND_MISSING,
        subtitle=Messages.ERROR_BACKEND_MISSING_DETAIL.format(command=command),
        icon=editor_icon,
    )


def build_no_results_result(query: str, editor_icon: str) -> RankedResult:
    clean_query = (query or "").strip()
    subtitle = (
        Messages.INFO_NO_RESULTS_QUERY.format(query=clean_query)
        if clean_query
        else Messages.INFO_NO_RESULTS_EMPTY_QUERY
    )
    return RankedResult(
        title=Messages.INFO_NO_RESULTS_TITLE,
        subtitle=subtitle,
        icon=editor_icon,
    )
