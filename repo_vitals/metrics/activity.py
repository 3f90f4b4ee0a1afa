"""
Commit activity metrics: when commits happen, how big they are and who
makes them.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional

from repo_vitals.models import Commit, Contributor
from repo_vitals.stats import coefficient_of_variation, median, percent
from repo_vitals.time_window import TimeWindow
from repo_vitals.values import DISTRIBUTION, TABLE, Distribution, Summary, Table
from repo_vitals.metrics.base import MetricAlgorithm

WEEKDAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

WORKING_HOURS_START = 9
WORKING_HOURS_END = 18  # exclusive

SMALL_COMMIT_MAX = 10
MEDIUM_COMMIT_MAX = 100
LARGE_COMMIT_MAX = 500


def is_working_hours(commit: Commit) -> bool:
    """Monday-Friday, 09:00-17:59 in the commit's own timezone"""
    ts = commit.timestamp
    return ts.weekday() < 5 and WORKING_HOURS_START <= ts.hour < WORKING_HOURS_END


def first_max(counts: Dict) -> Optional[tuple]:
    """(key, count) with the highest count; ties go to the first inserted key"""
    best = None
    for key, count in counts.items():
        if best is None or count > best[1]:
            best = (key, count)
    return best


def daily_counts(commits: List[Commit]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for commit in commits:
        day = commit.timestamp.strftime("%Y-%m-%d")
        counts[day] = counts.get(day, 0) + 1
    return counts


def consistency_score(counts_by_day: Dict[str, int]) -> float:
    """
    0-100 steadiness of daily commit counts.

    ``max(0, 100 - CoV * 50)``; a single active day is perfectly steady.
    """
    if not counts_by_day:
        return 0.0
    if len(counts_by_day) <= 1:
        return 100.0
    cov = coefficient_of_variation(list(counts_by_day.values()))
    return round(max(100 - cov * 50, 0), 1)


# ============================================================================
# COMMIT FREQUENCY
# ============================================================================


class CommitFrequency(MetricAlgorithm):
    name = "commit_frequency"
    category = "commit_activity"
    description = "Commit frequency patterns by day, hour and weekday"

    def collect(self, history):
        return history.commits()

    def compute(self, data: List[Commit], window: TimeWindow):
        if not data:
            return self.empty()

        by_date = daily_counts(data)

        # Counter keeps first-seen order, which decides busiest-hour ties
        hour_counts = Counter(commit.timestamp.hour for commit in data)
        per_hour = {hour: hour_counts.get(hour, 0) for hour in range(24)}

        weekday_counts = Counter(
            WEEKDAY_NAMES[commit.timestamp.weekday()] for commit in data
        )

        working = sum(1 for commit in data if is_working_hours(commit))
        off_hours = len(data) - working

        busiest_day = first_max(by_date)
        busiest_hour = first_max(hour_counts)

        value = Summary(
            sections={
                "total_commits": len(data),
                "commits_per_day": {
                    "by_date": dict(sorted(by_date.items())),
                    "average": round(sum(by_date.values()) / len(by_date), 2),
                    "max": max(by_date.values()),
                    "min": min(by_date.values()),
                },
                "commits_per_hour": per_hour,
                "commits_per_weekday": {
                    day: weekday_counts[day] for day in WEEKDAY_NAMES if day in weekday_counts
                },
                "working_hours_commits": {
                    "working_hours": working,
                    "off_hours": off_hours,
                    "working_hours_percentage": percent(working, len(data)),
                    "off_hours_percentage": percent(off_hours, len(data)),
                },
                "busiest_day": {"date": busiest_day[0], "commits": busiest_day[1]},
                "busiest_hour": f"{busiest_hour[0]}:00",
                "consistency_score": consistency_score(by_date),
            },
            headline="total_commits",
        )

        timestamps = [commit.timestamp for commit in data]
        first, last = min(timestamps), max(timestamps)
        span_days = (last - first).total_seconds() / 86400

        return self.outcome(
            value,
            len(data),
            time_span_days=round(span_days, 1),
            first_commit=first.isoformat(),
            last_commit=last.isoformat(),
            average_commits_per_day=round(len(data) / max(span_days, 1), 2),
        )


# ============================================================================
# COMMIT SIZE
# ============================================================================


def size_bucket(size: int) -> str:
    if size <= SMALL_COMMIT_MAX:
        return "small"
    if size <= MEDIUM_COMMIT_MAX:
        return "medium"
    if size <= LARGE_COMMIT_MAX:
        return "large"
    return "huge"


class CommitSize(MetricAlgorithm):
    name = "commit_size"
    category = "commit_activity"
    description = "Distribution of lines changed per commit"

    def compute(self, data: List[Commit], window: TimeWindow):
        if not data:
            return self.empty()

        sizes = [commit.total_changes for commit in data]
        buckets = Counter(size_bucket(size) for size in sizes)
        total = len(sizes)

        value = Summary(
            sections={
                "total_commits": total,
                "average_size": round(sum(sizes) / total, 2),
                "median_size": round(median(sizes), 2),
                "min_size": min(sizes),
                "max_size": max(sizes),
                "small_commits": buckets["small"],
                "medium_commits": buckets["medium"],
                "large_commits": buckets["large"],
                "huge_commits": buckets["huge"],
                "distribution_percentages": {
                    f"{bucket}_percent": percent(buckets[bucket], total)
                    for bucket in ("small", "medium", "large", "huge")
                },
            },
            headline="average_size",
        )

        additions = sum(commit.additions for commit in data)
        deletions = sum(commit.deletions for commit in data)
        files_touched = sum(len(commit.file_changes) for commit in data)

        return self.outcome(
            value,
            total,
            total_lines_changed=additions + deletions,
            total_additions=additions,
            total_deletions=deletions,
            net_lines=additions - deletions,
            files_per_commit=round(files_touched / total, 2),
        )


# ============================================================================
# COMMITS PER DEVELOPER
# ============================================================================


class CommitsPerDeveloper(MetricAlgorithm):
    name = "commits_per_developer"
    category = "commit_activity"
    description = "Commit count per contributor"
    value_kind = DISTRIBUTION
    data_points_label = "contributors"

    def collect(self, history):
        return history.contributors()

    def compute(self, data: List[Contributor], window: TimeWindow):
        if not data:
            return self.empty()

        # sorted() is stable: equal counts keep input order
        ranked = sorted(data, key=lambda contributor: -contributor.commit_count)
        buckets: Dict[str, int] = {}
        for contributor in ranked:
            buckets[contributor.key] = buckets.get(contributor.key, 0) + contributor.commit_count

        total_commits = sum(contributor.commit_count for contributor in data)
        top = ranked[0]

        return self.outcome(
            Distribution(buckets=buckets),
            len(data),
            total_contributors=len(data),
            total_commits=total_commits,
            avg_commits_per_contributor=round(total_commits / len(data), 2),
            top_contributor=top.name,
        )


# ============================================================================
# LINES CHANGED
# ============================================================================


@dataclass
class AuthorLineStats:
    author_name: str
    author_email: Optional[str]
    additions: int = 0
    deletions: int = 0
    commits: int = 0

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions

    def to_row(self, key: str) -> Dict:
        return {
            "author": key,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "additions": self.additions,
            "deletions": self.deletions,
            "net_changes": self.additions - self.deletions,
            "total_changes": self.total_changes,
            "commits": self.commits,
        }


class LinesChanged(MetricAlgorithm):
    name = "lines_changed"
    category = "commit_activity"
    description = "Lines added and deleted per author"
    value_kind = TABLE

    def compute(self, data: List[Commit], window: TimeWindow):
        if not data:
            return self.empty()

        authors: Dict[str, AuthorLineStats] = {}
        for commit in data:
            stats = authors.get(commit.author_key)
            if stats is None:
                stats = AuthorLineStats(commit.author_name, commit.author_email)
                authors[commit.author_key] = stats
            stats.additions += commit.additions
            stats.deletions += commit.deletions
            stats.commits += 1

        ranked = sorted(authors.items(), key=lambda item: -item[1].total_changes)
        additions = sum(stats.additions for stats in authors.values())
        deletions = sum(stats.deletions for stats in authors.values())

        return self.outcome(
            Table(rows=[stats.to_row(key) for key, stats in ranked]),
            len(data),
            total_additions=additions,
            total_deletions=deletions,
            net_changes=additions - deletions,
            contributing_authors=len(authors),
        )
