"""
Reliability metrics: reverted work and bug-fix share from commit
subjects, oversized commits from numstat sizes.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Set

from repo_vitals.models import Commit
from repo_vitals.stats import percent, percentile, stddev
from repo_vitals.time_window import TimeWindow
from repo_vitals.values import Summary
from repo_vitals.metrics.activity import WEEKDAY_NAMES, first_max
from repo_vitals.metrics.base import MetricAlgorithm

REVERT_PATTERNS = (
    re.compile(r"^Revert\s+", re.IGNORECASE),
    re.compile(r"^This reverts commit", re.IGNORECASE),
    re.compile(r"reverts?\s+commit", re.IGNORECASE),
    re.compile(r"^Rollback", re.IGNORECASE),
    re.compile(r"^Undo\s+", re.IGNORECASE),
)
REVERTED_HASH_RE = re.compile(r"([a-f0-9]{7,40})", re.IGNORECASE)

# First match wins, checked in this order
REVERT_REASONS = (
    ("Bug fixes", re.compile(r"bug|error|fix|issue|problem")),
    ("Test issues", re.compile(r"test|spec|failing")),
    ("Breaking changes", re.compile(r"break|broken|regression")),
    ("Performance issues", re.compile(r"performance|slow|timeout")),
    ("Security concerns", re.compile(r"security|vulnerability")),
)

BUGFIX_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"^fix\b",
        r"^bugfix",
        r"\bfix\s+(bug|issue|error|problem)",
        r"\b(bug|error|issue)\s+fix",
        r"\bresol(ve|ution)\b",
        r"\bhotfix",
        r"\bpatch",
        r"\bcorrect",
        r"\brepair",
        r"\bhandle\s+(error|exception)",
    )
)
FEATURE_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"^feat\b",
        r"^feature",
        r"^add\b",
        r"^implement",
        r"^create",
        r"^new\s+",
        r"\benhance",
        r"\bimprove",
        r"\bupgrade",
        r"\bextend",
    )
)
MAINTENANCE_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"^refactor",
        r"^clean",
        r"^update",
        r"^chore",
        r"^style",
        r"^format",
        r"^lint",
        r"^test",
        r"^spec",
        r"\bdocument",
        r"\bcomment",
        r"\btypo",
        r"\bwhitespace",
        r"\breorg",
        r"\bmove\s",
        r"\brename",
    )
)

URGENT_KEYWORDS = ("urgent", "critical", "hotfix", "emergency", "immediate", "asap")
SEVERITY_KEYWORDS = ("critical", "major", "minor", "trivial", "blocker")

HIGH_RISK_REVERTED_RATE = 5.0
HIGH_BUGFIX_RATIO = 30.0


def _stability(reverted: int, total: int) -> float:
    if total == 0:
        return 1.0
    return round(max(1.0 - reverted / total, 0.0), 3)


def _summaries(commits: List[Commit], limit: int = 10) -> List[Dict]:
    return [
        {
            "hash": commit.hash,
            "author": commit.author_name,
            "date": commit.timestamp.isoformat(),
            "message": commit.subject,
        }
        for commit in commits[:limit]
    ]


def _time_patterns(commits: List[Commit]) -> Dict:
    by_hour = Counter(commit.timestamp.hour for commit in commits)
    by_day = Counter(WEEKDAY_NAMES[commit.timestamp.weekday()] for commit in commits)
    by_month = Counter(commit.timestamp.strftime("%Y-%m") for commit in commits)
    return {
        "by_hour_of_day": dict(by_hour),
        "by_day_of_week": dict(by_day),
        "by_month": dict(by_month),
        "peak_hour": first_max(by_hour)[0] if by_hour else None,
        "peak_day": first_max(by_day)[0] if by_day else None,
    }


def _half_change(monthly: Dict[str, int]) -> float:
    """Percent change between the first and second half of the months"""
    months = sorted(monthly)
    if len(months) < 2:
        return 0.0
    half = len(months) // 2
    first_avg = sum(monthly[m] for m in months[:half]) / half
    second_avg = sum(monthly[m] for m in months[-half:]) / half
    if first_avg == 0:
        return 0.0
    return round((second_avg - first_avg) / first_avg * 100, 1)


# ============================================================================
# REVERT RATE
# ============================================================================


def is_revert(commit: Commit) -> bool:
    message = commit.subject.strip()
    return any(pattern.search(message) for pattern in REVERT_PATTERNS)


def revert_reason(message: str) -> str:
    lowered = message.lower()
    for reason, pattern in REVERT_REASONS:
        if pattern.search(lowered):
            return reason
    return "Other"


@dataclass
class AuthorRevertStats:
    total_commits: int = 0
    reverts_made: int = 0
    commits_reverted: int = 0

    def to_dict(self) -> Dict:
        return {
            "total_commits": self.total_commits,
            "reverts_made": self.reverts_made,
            "commits_reverted": self.commits_reverted,
            "revert_rate": percent(self.reverts_made, self.total_commits, 2),
            "reverted_rate": percent(self.commits_reverted, self.total_commits, 2),
            "reliability_score": _stability(self.commits_reverted, self.total_commits),
        }


class RevertRate(MetricAlgorithm):
    name = "revert_rate"
    category = "reliability"
    description = "Share of commits that revert, or are reverted by, other commits"

    def collect(self, history):
        return history.commits()

    @staticmethod
    def reverted_commits(commits: List[Commit], reverts: List[Commit]) -> List[Commit]:
        """Commits whose full or 7-character hash is quoted by a revert"""
        quoted: Set[str] = set()
        for revert in reverts:
            match = REVERTED_HASH_RE.search(revert.subject)
            if match:
                quoted.add(match.group(1).lower())
        return [
            commit
            for commit in commits
            if commit.hash[:7].lower() in quoted or commit.hash.lower() in quoted
        ]

    def compute(self, data: List[Commit], window: TimeWindow):
        if not data:
            return self.empty()

        reverts = [commit for commit in data if is_revert(commit)]
        reverted = self.reverted_commits(data, reverts)

        authors: Dict[str, AuthorRevertStats] = {}
        for commit in data:
            authors.setdefault(commit.author_name, AuthorRevertStats()).total_commits += 1
        for commit in reverts:
            authors[commit.author_name].reverts_made += 1
        for commit in reverted:
            authors[commit.author_name].commits_reverted += 1
        by_author = dict(
            sorted(
                ((name, stats.to_dict()) for name, stats in authors.items()),
                key=lambda item: -item[1]["reverted_rate"],
            )
        )

        total = len(data)
        overall = {
            "total_commits": total,
            "revert_commits": len(reverts),
            "reverted_commits": len(reverted),
            "revert_rate": percent(len(reverts), total, 2),
            "reverted_rate": percent(len(reverted), total, 2),
            "stability_score": _stability(len(reverted), total),
        }
        value = Summary(
            sections={
                "overall": overall,
                "by_author": by_author,
                "revert_details": {
                    "recent_reverts": _summaries(reverts),
                    "recent_reverted": _summaries(reverted),
                    "revert_reasons": dict(
                        Counter(revert_reason(commit.subject) for commit in reverts)
                    ),
                },
                "time_patterns": _time_patterns(reverts) if reverts else {},
            },
            headline="overall",
        )

        most_reverted = first_max(
            {name: stats["reverted_rate"] for name, stats in by_author.items()}
        )
        return self.outcome(
            value,
            total,
            revert_rate=overall["revert_rate"],
            stability_score=overall["stability_score"],
            high_risk_authors=sum(
                1
                for stats in by_author.values()
                if stats["reverted_rate"] > HIGH_RISK_REVERTED_RATE
            ),
            most_reverted_author=most_reverted[0] if most_reverted else None,
        )


# ============================================================================
# BUGFIX RATIO
# ============================================================================

BUGFIX = "bugfix"
FEATURE = "feature"
MAINTENANCE = "maintenance"
OTHER = "other"

CLASSIFICATION_ORDER = (
    (BUGFIX, BUGFIX_PATTERNS),
    (FEATURE, FEATURE_PATTERNS),
    (MAINTENANCE, MAINTENANCE_PATTERNS),
)


def classify_subject(subject: str) -> str:
    """bugfix, feature, maintenance or other; bugfix patterns win first"""
    message = subject.lower().strip()
    for kind, patterns in CLASSIFICATION_ORDER:
        if any(pattern.search(message) for pattern in patterns):
            return kind
    return OTHER


def quality_score(bugfixes: int, features: int) -> float:
    """Feature share of productive commits; 1.0 when there are none"""
    productive = bugfixes + features
    if productive == 0:
        return 1.0
    return round(features / productive, 3)


@dataclass
class AuthorBugfixStats:
    total_commits: int = 0
    bugfix_commits: int = 0
    feature_commits: int = 0
    maintenance_commits: int = 0

    def record(self, kind: str):
        self.total_commits += 1
        if kind == BUGFIX:
            self.bugfix_commits += 1
        elif kind == FEATURE:
            self.feature_commits += 1
        elif kind == MAINTENANCE:
            self.maintenance_commits += 1

    def to_dict(self) -> Dict:
        return {
            "total_commits": self.total_commits,
            "bugfix_commits": self.bugfix_commits,
            "feature_commits": self.feature_commits,
            "maintenance_commits": self.maintenance_commits,
            "bugfix_ratio": percent(self.bugfix_commits, self.total_commits, 2),
            "feature_ratio": percent(self.feature_commits, self.total_commits, 2),
            "quality_score": quality_score(self.bugfix_commits, self.feature_commits),
        }


class BugfixRatio(MetricAlgorithm):
    name = "bugfix_ratio"
    category = "reliability"
    description = "Share of commits that fix bugs versus add features"

    def collect(self, history):
        return history.commits()

    def compute(self, data: List[Commit], window: TimeWindow):
        if not data:
            return self.empty()

        groups: Dict[str, List[Commit]] = {BUGFIX: [], FEATURE: [], MAINTENANCE: [], OTHER: []}
        authors: Dict[str, AuthorBugfixStats] = {}
        for commit in data:
            kind = classify_subject(commit.subject)
            groups[kind].append(commit)
            authors.setdefault(commit.author_name, AuthorBugfixStats()).record(kind)

        by_author = dict(
            sorted(
                ((name, stats.to_dict()) for name, stats in authors.items()),
                key=lambda item: -item[1]["bugfix_ratio"],
            )
        )

        total = len(data)
        bugfixes, features = len(groups[BUGFIX]), len(groups[FEATURE])
        overall = {
            "total_commits": total,
            "bugfix_commits": bugfixes,
            "feature_commits": features,
            "maintenance_commits": len(groups[MAINTENANCE]),
            "bugfix_ratio": percent(bugfixes, total, 2),
            "feature_ratio": percent(features, total, 2),
            "maintenance_ratio": percent(len(groups[MAINTENANCE]), total, 2),
            "quality_score": quality_score(bugfixes, features),
        }

        time_patterns = {}
        if groups[BUGFIX]:
            time_patterns = _time_patterns(groups[BUGFIX])
            time_patterns["urgency_indicators"] = self._urgency(groups[BUGFIX])

        value = Summary(
            sections={
                "overall": overall,
                "by_author": by_author,
                "commit_categories": {
                    kind: _summaries(groups[kind]) for kind in (BUGFIX, FEATURE, MAINTENANCE)
                },
                "time_patterns": time_patterns,
            },
            headline="overall",
        )

        most_reliable = first_max(
            {name: stats["quality_score"] for name, stats in by_author.items()}
        )
        return self.outcome(
            value,
            total,
            bugfix_ratio=overall["bugfix_ratio"],
            quality_score=overall["quality_score"],
            high_bugfix_authors=sum(
                1 for stats in by_author.values() if stats["bugfix_ratio"] > HIGH_BUGFIX_RATIO
            ),
            most_reliable_author=most_reliable[0] if most_reliable else None,
            bugfix_trend=_half_change(time_patterns.get("by_month", {})),
        )

    @staticmethod
    def _urgency(bugfixes: List[Commit]) -> Dict:
        urgency: Counter = Counter()
        severity: Counter = Counter()
        for commit in bugfixes:
            message = commit.subject.lower()
            urgency.update(keyword for keyword in URGENT_KEYWORDS if keyword in message)
            severity.update(keyword for keyword in SEVERITY_KEYWORDS if keyword in message)
        urgent = sum(urgency.values())
        return {
            "urgency_keywords": dict(urgency),
            "severity_keywords": dict(severity),
            "urgent_fixes": urgent,
            "urgent_ratio": percent(urgent, len(bugfixes), 2),
        }


# ============================================================================
# LARGE COMMITS
# ============================================================================

# Weight of each touched file in the commit size
FILE_SIZE_WEIGHT = 10
SIZE_PERCENTILES = (("small", 25), ("medium", 50), ("large", 75), ("huge", 90))

HIGH_RISK_SCORE = 20.0
MANY_FILES = 20
EXCESSIVE_FILES = 50
VAGUE_MESSAGE_LENGTH = 10
LARGEST_COMMITS_LIMIT = 20

AND_RE = re.compile(r"\band\b")


def commit_size(commit: Commit) -> int:
    """Lines added and deleted plus a fixed weight per touched file"""
    return commit.additions + commit.deletions + FILE_SIZE_WEIGHT * len(commit.file_changes)


def size_thresholds(sizes: List[int]) -> Dict[str, int]:
    ordered = sorted(sizes)
    return {label: percentile(ordered, p) for label, p in SIZE_PERCENTILES}


def risk_score(large: int, huge: int, total: int) -> float:
    """One point per large commit and three per huge one, over three points per commit"""
    if total == 0:
        return 0.0
    return round((large + 3 * huge) / (3 * total) * 100, 2)


def risk_factors(commit: Commit, size: int, thresholds: Dict[str, int]) -> List[str]:
    factors = []
    if size >= thresholds["huge"]:
        factors.append("HUGE_SIZE")
    if size >= thresholds["large"]:
        factors.append("LARGE_SIZE")
    files = len(commit.file_changes)
    if files > MANY_FILES:
        factors.append("MANY_FILES")
    if files > EXCESSIVE_FILES:
        factors.append("EXCESSIVE_FILES")
    message = commit.subject.lower()
    if "merge" in message:
        factors.append("MERGE_COMMIT")
    if len(commit.subject) < VAGUE_MESSAGE_LENGTH:
        factors.append("VAGUE_MESSAGE")
    if len(AND_RE.findall(message)) > 1:
        factors.append("MULTIPLE_CONCERNS")
    hour = commit.timestamp.hour
    if hour < 9 or hour > 18:
        factors.append("OFF_HOURS")
    if commit.timestamp.weekday() >= 5:
        factors.append("WEEKEND")
    return factors


@dataclass
class AuthorSizeStats:
    sizes: List[int]
    large_commits: int = 0
    huge_commits: int = 0

    def to_dict(self) -> Dict:
        total = len(self.sizes)
        return {
            "total_commits": total,
            "large_commits": self.large_commits,
            "huge_commits": self.huge_commits,
            "avg_commit_size": round(sum(self.sizes) / total, 1),
            "max_commit_size": max(self.sizes),
            "large_commit_ratio": percent(self.large_commits, total, 2),
            "risk_score": risk_score(self.large_commits, self.huge_commits, total),
        }


class LargeCommits(MetricAlgorithm):
    """
    Flags commits that are large relative to the rest of the window.

    Thresholds are the 25th/50th/75th/90th percentiles of commit size, so
    a commit is "large" at or above the 75th percentile and "huge" at or
    above the 90th; huge commits are counted as large too.
    """

    name = "large_commits"
    category = "reliability"
    description = "Unusually large commits that make changes risky to review"

    def compute(self, data: List[Commit], window: TimeWindow):
        if not data:
            return self.empty()

        sizes = [commit_size(commit) for commit in data]
        thresholds = size_thresholds(sizes)
        large = [
            (commit, size) for commit, size in zip(data, sizes) if size >= thresholds["large"]
        ]
        huge_count = sum(1 for size in sizes if size >= thresholds["huge"])

        authors: Dict[str, AuthorSizeStats] = {}
        for commit, size in zip(data, sizes):
            stats = authors.setdefault(commit.author_name, AuthorSizeStats(sizes=[]))
            stats.sizes.append(size)
            if size >= thresholds["large"]:
                stats.large_commits += 1
            if size >= thresholds["huge"]:
                stats.huge_commits += 1
        by_author = dict(
            sorted(
                ((name, stats.to_dict()) for name, stats in authors.items()),
                key=lambda item: -item[1]["risk_score"],
            )
        )

        total = len(data)
        overall = {
            "total_commits": total,
            "large_commits": len(large),
            "huge_commits": huge_count,
            "large_commit_ratio": percent(len(large), total, 2),
            "huge_commit_ratio": percent(huge_count, total, 2),
            "risk_score": risk_score(len(large), huge_count, total),
            "avg_commit_size": round(sum(sizes) / total, 1),
        }

        largest = sorted(large, key=lambda pair: -pair[1])[:LARGEST_COMMITS_LIMIT]
        value = Summary(
            sections={
                "overall": overall,
                "thresholds": thresholds,
                "by_author": by_author,
                "largest_commits": [
                    self._describe(commit, size, thresholds) for commit, size in largest
                ],
                "size_distribution": self._distribution(sizes),
                "risk_patterns": self._risk_patterns(largest, thresholds),
            },
            headline="overall",
        )

        largest_author = first_max(
            {name: stats["max_commit_size"] for name, stats in by_author.items()}
        )
        return self.outcome(
            value,
            total,
            large_commit_ratio=overall["large_commit_ratio"],
            risk_score=overall["risk_score"],
            avg_commit_size=overall["avg_commit_size"],
            high_risk_authors=sum(
                1 for stats in by_author.values() if stats["risk_score"] > HIGH_RISK_SCORE
            ),
            largest_commit_author=largest_author[0] if largest_author else None,
            size_threshold_large=thresholds["large"],
            size_threshold_huge=thresholds["huge"],
        )

    @staticmethod
    def _describe(commit: Commit, size: int, thresholds: Dict[str, int]) -> Dict:
        return {
            "hash": commit.hash,
            "author": commit.author_name,
            "date": commit.timestamp.isoformat(),
            "message": commit.subject,
            "size": size,
            "files_changed": len(commit.file_changes),
            "size_category": "huge" if size >= thresholds["huge"] else "large",
        }

    @staticmethod
    def _distribution(sizes: List[int]) -> Dict:
        ordered = sorted(sizes)
        return {
            "min": ordered[0],
            "max": ordered[-1],
            "median": percentile(ordered, 50),
            "p75": percentile(ordered, 75),
            "p90": percentile(ordered, 90),
            "p95": percentile(ordered, 95),
            "p99": percentile(ordered, 99),
            "std_deviation": round(stddev(ordered), 2),
        }

    @staticmethod
    def _risk_patterns(largest: List, thresholds: Dict[str, int]) -> Dict:
        risky = []
        factor_counts: Counter = Counter()
        for commit, size in largest:
            factors = risk_factors(commit, size, thresholds)
            factor_counts.update(factors)
            risky.append(
                {
                    "hash": commit.hash,
                    "author": commit.author_name,
                    "size": size,
                    "risk_factors": factors,
                }
            )
        commits = [commit for commit, _ in largest]
        time_patterns = {}
        if commits:
            by_hour = Counter(commit.timestamp.hour for commit in commits)
            by_day = Counter(WEEKDAY_NAMES[commit.timestamp.weekday()] for commit in commits)
            time_patterns = {
                "by_hour_of_day": dict(by_hour),
                "by_day_of_week": dict(by_day),
                "peak_hour": first_max(by_hour)[0],
                "peak_day": first_max(by_day)[0],
            }
        return {
            "risky_commits": risky,
            "common_risk_factors": dict(factor_counts.most_common()),
            "time_patterns": time_patterns,
        }
