"""
Code churn metrics: per-file change volume, authorship, ownership
concentration and co-change coupling.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from itertools import combinations
from typing import Dict, List, Optional, Set

from repo_vitals.models import Commit
from repo_vitals.stats import percent
from repo_vitals.time_window import TimeWindow
from repo_vitals.values import KEYED_TABLE, KeyedTable
from repo_vitals.metrics.base import MetricAlgorithm

HIGH_CHURN_THRESHOLD = 1000
MEDIUM_CHURN_THRESHOLD = 100

HOTSPOT_MIN_PAIRS = 3
HOTSPOT_MIN_STRENGTH = 0.3


def _sorted_entries(entries: Dict[str, Dict], sort_key: str) -> Dict[str, Dict]:
    """Order entries descending by ``sort_key``, ties keep insertion order"""
    return dict(sorted(entries.items(), key=lambda item: -item[1][sort_key]))


# ============================================================================
# FILE CHURN
# ============================================================================


@dataclass
class FileChurnStats:
    additions: int = 0
    deletions: int = 0
    commits: int = 0
    authors: List[str] = field(default_factory=list)

    def record(self, commit: Commit, additions: int, deletions: int):
        self.additions += additions
        self.deletions += deletions
        self.commits += 1
        if commit.author_name not in self.authors:
            self.authors.append(commit.author_name)

    @property
    def total_churn(self) -> int:
        return self.additions + self.deletions

    def to_entry(self) -> Dict:
        total = self.total_churn
        return {
            "total_churn": total,
            "additions": self.additions,
            "deletions": self.deletions,
            "net_changes": self.additions - self.deletions,
            "commits": self.commits,
            "authors_count": len(self.authors),
            "authors": list(self.authors),
            "avg_churn_per_commit": round(total / self.commits, 2) if self.commits else 0.0,
            "churn_ratio": percent(self.deletions, total),
        }


class FileChurn(MetricAlgorithm):
    name = "file_churn"
    category = "code_churn"
    description = "Lines added and deleted per file"
    value_kind = KEYED_TABLE
    data_points_label = "files"

    def compute(self, data: List[Commit], window: TimeWindow):
        files: Dict[str, FileChurnStats] = {}
        for commit in data:
            for change in commit.file_changes:
                stats = files.setdefault(change.filename, FileChurnStats())
                stats.record(commit, change.additions, change.deletions)

        if not files:
            return self.empty()

        entries = _sorted_entries(
            {filename: stats.to_entry() for filename, stats in files.items()},
            "total_churn",
        )
        churn_values = [entry["total_churn"] for entry in entries.values()]
        total_file_changes = sum(entry["commits"] for entry in entries.values())
        high = sum(1 for churn in churn_values if churn > HIGH_CHURN_THRESHOLD)
        medium = sum(
            1
            for churn in churn_values
            if MEDIUM_CHURN_THRESHOLD < churn <= HIGH_CHURN_THRESHOLD
        )

        return self.outcome(
            KeyedTable(entries=entries),
            len(entries),
            total_files_changed=len(entries),
            total_file_changes=total_file_changes,
            avg_changes_per_file=round(total_file_changes / len(entries), 2),
            high_churn_files=high,
            medium_churn_files=medium,
            low_churn_files=len(entries) - high - medium,
            hotspot_percentage=percent(high, len(entries)),
        )


# ============================================================================
# AUTHORS PER FILE
# ============================================================================


def bus_factor_risk(author_count: int) -> str:
    if author_count <= 1:
        return "HIGH"
    if author_count <= 3:
        return "MEDIUM"
    return "LOW"


def ownership_by_author_count(author_count: int) -> str:
    if author_count <= 1:
        return "SINGLE_OWNER"
    if author_count <= 3:
        return "SHARED"
    if author_count <= 10:
        return "COLLABORATIVE"
    return "HIGHLY_COLLABORATIVE"


def collaboration_score(author_counts: List[int]) -> float:
    """
    ((shared*50 + collaborative*100 - single_owner*10) / files), clamped
    to [0, 100].
    """
    if not author_counts:
        return 0.0
    single = sum(1 for count in author_counts if count == 1)
    shared = sum(1 for count in author_counts if 1 < count <= 3)
    collaborative = sum(1 for count in author_counts if count > 3)
    raw = (shared * 50 + collaborative * 100 - single * 10) / len(author_counts)
    return round(min(max(raw, 0), 100), 1)


class AuthorsPerFile(MetricAlgorithm):
    name = "authors_per_file"
    category = "code_churn"
    description = "Distinct authors per file (bus factor analysis)"
    value_kind = KEYED_TABLE
    data_points_label = "files"

    def compute(self, data: List[Commit], window: TimeWindow):
        file_authors: Dict[str, Set[str]] = {}
        for commit in data:
            for filename in commit.filenames:
                file_authors.setdefault(filename, set()).add(commit.author_name)

        if not file_authors:
            return self.empty()

        entries = _sorted_entries(
            {
                filename: {
                    "author_count": len(authors),
                    "authors": sorted(authors),
                    "bus_factor_risk": bus_factor_risk(len(authors)),
                    "ownership_type": ownership_by_author_count(len(authors)),
                }
                for filename, authors in file_authors.items()
            },
            "author_count",
        )

        counts = [entry["author_count"] for entry in entries.values()]
        total = len(counts)
        single = sum(1 for count in counts if count == 1)

        return self.outcome(
            KeyedTable(entries=entries),
            total,
            total_files_analyzed=total,
            avg_authors_per_file=round(sum(counts) / total, 2),
            max_authors_per_file=max(counts),
            min_authors_per_file=min(counts),
            single_author_files=single,
            shared_files=sum(1 for count in counts if 1 < count <= 3),
            highly_shared_files=sum(1 for count in counts if count > 3),
            bus_factor_risk_percentage=percent(single, total),
            collaboration_score=collaboration_score(counts),
        )


# ============================================================================
# FILE OWNERSHIP
# ============================================================================


def herfindahl_index(percentages: List[float]) -> float:
    """HHI on a 0-100 scale: sum((pct/100)^2) * 100"""
    return sum((pct / 100) ** 2 for pct in percentages) * 100


def ownership_by_share(top_percentage: float, contributor_count: int) -> str:
    if contributor_count <= 1:
        return "SINGLE_OWNER"
    if top_percentage >= 80:
        return "DOMINANT_OWNER"
    if top_percentage >= 60:
        return "PRIMARY_OWNER"
    if top_percentage >= 40:
        return "SHARED_OWNERSHIP"
    return "DISTRIBUTED_OWNERSHIP"


@dataclass
class FileOwnershipStats:
    changes_by_author: Dict[str, int] = field(default_factory=dict)
    commits_by_author: Dict[str, int] = field(default_factory=dict)
    total_changes: int = 0
    total_commits: int = 0
    last_modified_by: Optional[str] = None
    last_modified_date: Optional[datetime] = None

    def record(self, commit: Commit, changes: int):
        author = commit.author_name
        self.changes_by_author[author] = self.changes_by_author.get(author, 0) + changes
        self.commits_by_author[author] = self.commits_by_author.get(author, 0) + 1
        self.total_changes += changes
        self.total_commits += 1
        if self.last_modified_date is None or commit.timestamp >= self.last_modified_date:
            self.last_modified_by = author
            self.last_modified_date = commit.timestamp

    def shares(self) -> Dict[str, float]:
        """
        Per-author percentage of changed lines, descending.

        Files whose changes are all binary (0 lines) are attributed by
        commit count instead.
        """
        weights, total = self.changes_by_author, self.total_changes
        if total == 0:
            weights, total = self.commits_by_author, self.total_commits
        shares = {author: weight / total * 100 for author, weight in weights.items()}
        return dict(sorted(shares.items(), key=lambda item: -item[1]))

    def to_entry(self) -> Dict:
        shares = self.shares()
        contributor_count = len(shares)
        primary_owner, primary_pct = next(iter(shares.items()))
        if contributor_count <= 1:
            concentration = 100.0
        else:
            concentration = round(herfindahl_index(list(shares.values())), 1)
        return {
            "primary_owner": primary_owner,
            "primary_owner_percentage": round(primary_pct, 1),
            "ownership_concentration": concentration,
            "ownership_type": ownership_by_share(primary_pct, contributor_count),
            "contributor_count": contributor_count,
            "ownership_distribution": {
                author: round(pct, 1) for author, pct in shares.items()
            },
            "total_commits": self.total_commits,
            "total_changes": self.total_changes,
            "last_modified_by": self.last_modified_by,
            "last_modified_date": self.last_modified_date.isoformat(),
        }


class FileOwnership(MetricAlgorithm):
    name = "file_ownership"
    category = "code_churn"
    description = "Per-file ownership concentration (Herfindahl-Hirschman Index)"
    value_kind = KEYED_TABLE
    data_points_label = "files"

    def compute(self, data: List[Commit], window: TimeWindow):
        files: Dict[str, FileOwnershipStats] = {}
        for commit in sorted(data, key=lambda c: c.timestamp):
            for change in commit.file_changes:
                stats = files.setdefault(change.filename, FileOwnershipStats())
                stats.record(commit, change.total_changes)

        if not files:
            return self.empty()

        entries = _sorted_entries(
            {filename: stats.to_entry() for filename, stats in files.items()},
            "ownership_concentration",
        )
        concentrations = [entry["ownership_concentration"] for entry in entries.values()]
        total = len(entries)

        return self.outcome(
            KeyedTable(entries=entries),
            total,
            total_files_analyzed=total,
            avg_ownership_concentration=round(sum(concentrations) / total, 1),
            highly_concentrated_files=sum(1 for c in concentrations if c > 80),
            moderately_concentrated_files=sum(1 for c in concentrations if 50 < c <= 80),
            distributed_ownership_files=sum(1 for c in concentrations if c <= 50),
            single_owner_files=sum(
                1 for entry in entries.values() if entry["contributor_count"] == 1
            ),
        )


# ============================================================================
# CO-CHANGE PAIRS
# ============================================================================


def pair_key(file_a: str, file_b: str) -> str:
    first, second = sorted((file_a, file_b))
    return f"{first} <-> {second}"


def jaccard(co_changes: int, total_a: int, total_b: int) -> float:
    if total_a == 0 or total_b == 0:
        return 0.0
    union = total_a + total_b - co_changes
    if union <= 0:
        return 0.0
    return co_changes / union


def coupling_category(strength: float) -> str:
    if strength >= 0.5:
        return "HIGH"
    if strength >= 0.2:
        return "MEDIUM"
    if strength >= 0.1:
        return "LOW"
    return "MINIMAL"


def commit_file_sets(file_commits: Dict[str, List[str]]) -> Dict[str, List[str]]:
    """Invert filename -> hashes into hash -> sorted unique filenames"""
    by_commit: Dict[str, Set[str]] = {}
    for filename, hashes in file_commits.items():
        for commit_hash in hashes:
            by_commit.setdefault(commit_hash, set()).add(filename)
    return {commit_hash: sorted(files) for commit_hash, files in by_commit.items()}


class CoChangePairs(MetricAlgorithm):
    name = "co_change_pairs"
    category = "code_churn"
    description = "Files that change together (Jaccard coupling)"
    value_kind = KEYED_TABLE
    data_points_label = "file pairs"

    def collect(self, history):
        return history.file_changes()

    def compute(self, data: Dict[str, List[str]], window: TimeWindow):
        if not data:
            return self.empty()

        file_totals = {filename: len(set(hashes)) for filename, hashes in data.items()}
        pair_counts: Counter = Counter()
        for files in commit_file_sets(data).values():
            for file_a, file_b in combinations(files, 2):
                pair_counts[(file_a, file_b)] += 1

        if not pair_counts:
            return self.empty()

        entries = {}
        for (file_a, file_b), co_changes in pair_counts.items():
            total_a, total_b = file_totals[file_a], file_totals[file_b]
            strength = round(jaccard(co_changes, total_a, total_b), 3)
            entries[pair_key(file_a, file_b)] = {
                "file1": file_a,
                "file2": file_b,
                "co_changes": co_changes,
                "file1_total_changes": total_a,
                "file2_total_changes": total_b,
                "coupling_strength": strength,
                "coupling_percentage": percent(co_changes, min(total_a, total_b)),
                "coupling_category": coupling_category(strength),
            }
        entries = _sorted_entries(entries, "coupling_strength")

        strengths = [entry["coupling_strength"] for entry in entries.values()]
        return self.outcome(
            KeyedTable(entries=entries),
            len(entries),
            total_file_pairs=len(entries),
            avg_coupling_strength=round(sum(strengths) / len(strengths), 3),
            max_coupling_strength=max(strengths),
            high_coupling_pairs=sum(1 for s in strengths if s > 0.5),
            medium_coupling_pairs=sum(1 for s in strengths if 0.2 < s <= 0.5),
            low_coupling_pairs=sum(1 for s in strengths if s <= 0.2),
            architectural_hotspots=self._hotspots(entries),
        )

    @staticmethod
    def _hotspots(entries: Dict[str, Dict]) -> List[Dict]:
        """Files in at least three pairs with strength above 0.3"""
        counts: Counter = Counter()
        for entry in entries.values():
            if entry["coupling_strength"] > HOTSPOT_MIN_STRENGTH:
                counts[entry["file1"]] += 1
                counts[entry["file2"]] += 1
        return [
            {"file": filename, "coupled_files": count}
            for filename, count in counts.most_common()
            if count >= HOTSPOT_MIN_PAIRS
        ]
