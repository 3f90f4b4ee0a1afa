"""
Access to parsed history for the metric algorithms.

HistorySource holds the raw text of each git query, either as a string
or as a zero-argument callable the command layer supplies. HistoryLoader
parses each query at most once and applies the analysis filters.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from repo_vitals.config import AnalysisOptions
from repo_vitals.models import Commit, Contributor, Tag
from repo_vitals.parsing import LogParser
from repo_vitals.time_window import TimeWindow
from repo_vitals.metrics.flow import is_merge_subject

logger = logging.getLogger(__name__)

TextProvider = Union[str, Callable[[], Optional[str]], None]

QUERIES = ("commits", "commit_stats", "file_changes", "contributors", "tags", "branches")

BOT_RE = re.compile(
    r"\[bot\]|dependabot|renovate|github-actions|(^|[\s._-])bot($|[\s._@-])",
    re.IGNORECASE,
)


def is_bot(name: Optional[str], email: Optional[str] = None) -> bool:
    return any(BOT_RE.search(value) for value in (name, email) if value)


@dataclass
class HistorySource:
    """
    Raw output of each git query.

    None, an empty string, or a provider returning None all mean "no
    data". A provider that raises propagates to the metric being
    computed.
    """

    commits: TextProvider = None
    commit_stats: TextProvider = None
    file_changes: TextProvider = None
    contributors: TextProvider = None
    tags: TextProvider = None
    branches: TextProvider = None

    def fetch(self, query: str) -> str:
        if query not in QUERIES:
            raise KeyError(query)
        provider = getattr(self, query)
        text = provider() if callable(provider) else provider
        return text or ""


class HistoryLoader:
    """Parses and filters history on demand, memoizing each query"""

    def __init__(
        self,
        source: HistorySource,
        window: TimeWindow,
        options: Optional[AnalysisOptions] = None,
        parser: Optional[LogParser] = None,
    ):
        self.source = source
        self.window = window
        self.options = options or AnalysisOptions()
        self.parser = parser or LogParser()
        self._cache: Dict[str, object] = {}
        self._allowed = {name.lower() for name in self.options.contributors}

    def _memoized(self, key: str, build: Callable[[], object]):
        if key not in self._cache:
            self._cache[key] = build()
        return self._cache[key]

    # ========================================================================
    # Filters
    # ========================================================================

    def _author_allowed(self, name: str, email: Optional[str]) -> bool:
        if self.options.exclude_bots and is_bot(name, email):
            return False
        if not self._allowed:
            return True
        candidates = {name.lower()}
        if email:
            candidates.add(email.lower())
            candidates.add(f"{name} <{email}>".lower())
        return bool(candidates & self._allowed)

    def _keep_commit(self, commit: Commit, include_merges: bool) -> bool:
        if not self.window.contains(commit.timestamp):
            return False
        if not include_merges and is_merge_subject(commit.subject):
            return False
        return self._author_allowed(commit.author_name, commit.author_email)

    def _filter(self, commits: List[Commit], include_merges: Optional[bool]) -> List[Commit]:
        if include_merges is None:
            include_merges = self.options.include_merge_commits
        return [c for c in commits if self._keep_commit(c, include_merges)]

    # ========================================================================
    # Queries
    # ========================================================================

    def _parsed_commits(self) -> List[Commit]:
        return self._memoized(
            "commits", lambda: self.parser.parse_commits(self.source.fetch("commits"))
        )

    def _parsed_stats(self) -> List[Commit]:
        return self._memoized(
            "commit_stats",
            lambda: self.parser.parse_commit_stats(self.source.fetch("commit_stats")),
        )

    def commits(self, include_merges: Optional[bool] = None) -> List[Commit]:
        """Commit headers inside the window that pass the filters"""
        return self._filter(self._parsed_commits(), include_merges)

    def commit_stats(self, include_merges: Optional[bool] = None) -> List[Commit]:
        """Commits with numstat file changes, filtered like ``commits``"""
        return self._filter(self._parsed_stats(), include_merges)

    def file_changes(self) -> Dict[str, List[str]]:
        """
        Filename -> hashes of commits touching it.

        Uses the dedicated file-change query when available, keeping only
        hashes of commits that pass the author and merge filters (judged
        from the commit headers, or the commit stats when headers are
        missing). Without headers or stats the mapping is used as given,
        since the command layer has already bounded it to the window.
        Otherwise derives the mapping from the filtered commit stats.
        """

        def build():
            text = self.source.fetch("file_changes")
            if text:
                mapping = self.parser.parse_file_changes(text)
                known = self._parsed_commits() or self._parsed_stats()
                if not known:
                    return mapping
                kept = {commit.hash for commit in self._filter(known, None)}
                filtered: Dict[str, List[str]] = {}
                for filename, hashes in mapping.items():
                    remaining = [h for h in hashes if h in kept]
                    if remaining:
                        filtered[filename] = remaining
                return filtered
            derived: Dict[str, List[str]] = {}
            for commit in self.commit_stats():
                for filename in commit.filenames:
                    derived.setdefault(filename, []).append(commit.hash)
            return derived

        return self._memoized("file_changes", build)

    def contributors(self) -> List[Contributor]:
        """Shortlog contributors, or per-identity counts over the commits"""

        def build():
            text = self.source.fetch("contributors")
            if text:
                return [
                    c
                    for c in self.parser.parse_contributors(text)
                    if self._author_allowed(c.name, c.email)
                ]
            counts: Dict[tuple, int] = {}
            for commit in self.commits():
                identity = (commit.author_name, commit.author_email)
                counts[identity] = counts.get(identity, 0) + 1
            return [
                Contributor(name=name, email=email, commit_count=count)
                for (name, email), count in counts.items()
            ]

        return self._memoized("contributors", build)

    def tags(self) -> List[Tag]:
        return self._memoized(
            "tags", lambda: self.parser.parse_tags(self.source.fetch("tags"))
        )

    def branches(self) -> List[str]:
        return self._memoized(
            "branches", lambda: self.parser.parse_branches(self.source.fetch("branches"))
        )
