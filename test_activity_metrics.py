from datetime import datetime, timezone

import pytest

from repo_vitals.metrics.activity import (
    CommitFrequency,
    CommitSize,
    CommitsPerDeveloper,
    LinesChanged,
    consistency_score,
    size_bucket,
)
from repo_vitals.models import Commit, Contributor
from repo_vitals.values import Distribution, Summary, Table


def make_commit(hour_offset, name="Alice", day=15, hour=10, additions=0, deletions=0):
    return Commit(
        hash=f"{hour_offset:040x}",
        author_name=name,
        author_email=None,
        timestamp=datetime(2024, 1, day, hour, tzinfo=timezone.utc),
        subject="work",
        additions=additions,
        deletions=deletions,
    )


# ============================================================================
# commit_frequency
# ============================================================================


def test_commit_frequency_buckets(commits, window):
    outcome = CommitFrequency().compute(commits, window)
    value = outcome.value
    assert isinstance(value, Summary)
    assert value["total_commits"] == 3

    per_hour = value["commits_per_hour"]
    assert list(per_hour) == list(range(24))
    assert per_hour[10] == 1 and per_hour[14] == 1 and per_hour[20] == 1
    assert sum(per_hour.values()) == 3

    assert value["commits_per_weekday"] == {"Monday": 1, "Tuesday": 1, "Wednesday": 1}
    assert value["commits_per_day"]["by_date"] == {
        "2024-01-15": 1,
        "2024-01-16": 1,
        "2024-01-17": 1,
    }


def test_commit_frequency_ties_go_to_first_seen(commits, window):
    value = CommitFrequency().compute(commits, window).value
    assert value["busiest_day"] == {"date": "2024-01-15", "commits": 1}
    assert value["busiest_hour"] == "10:00"


def test_commit_frequency_working_hours(commits, window):
    split = CommitFrequency().compute(commits, window).value["working_hours_commits"]
    assert split["working_hours"] == 2
    assert split["off_hours"] == 1
    assert split["working_hours_percentage"] == 66.7
    assert split["off_hours_percentage"] == 33.3


def test_commit_frequency_metadata(commits, window):
    metadata = CommitFrequency().compute(commits, window).metadata
    assert metadata["data_points"] == 3
    assert metadata["data_points_label"] == "commits"
    assert metadata["time_span_days"] == 2.4
    assert metadata["average_commits_per_day"] == 1.24
    assert metadata["first_commit"].startswith("2024-01-15T10:00")


def test_consistency_score():
    assert consistency_score({"2024-01-15": 4}) == 100.0
    assert consistency_score({"a": 2, "b": 2, "c": 2}) == 100.0
    # counts 1 and 3: mean 2, stddev 1, CoV 0.5
    assert consistency_score({"a": 1, "b": 3}) == 75.0
    # very uneven days bottom out at 0
    assert consistency_score({"a": 1, "b": 1, "c": 1, "d": 1, "e": 1, "f": 1000}) == 0.0
    assert consistency_score({}) == 0.0


def test_busiest_hour_first_seen_wins_over_lower_hour(window):
    commits = [make_commit(1, hour=15), make_commit(2, hour=9), make_commit(3, hour=15, day=16),
               make_commit(4, hour=9, day=16)]
    value = CommitFrequency().compute(commits, window).value
    assert value["busiest_hour"] == "15:00"


# ============================================================================
# commit_size
# ============================================================================


def test_commit_size(stat_commits, window):
    outcome = CommitSize().compute(stat_commits, window)
    value = outcome.value
    # sizes: 17, 6, 50
    assert value["average_size"] == 24.33
    assert value["median_size"] == 17
    assert value["min_size"] == 6
    assert value["max_size"] == 50
    assert value["small_commits"] == 1
    assert value["medium_commits"] == 2
    assert value["distribution_percentages"] == {
        "small_percent": 33.3,
        "medium_percent": 66.7,
        "large_percent": 0.0,
        "huge_percent": 0.0,
    }
    assert outcome.metadata["total_lines_changed"] == 73
    assert outcome.metadata["net_lines"] == 43
    assert outcome.metadata["files_per_commit"] == 1.67


def test_commit_size_even_median(window):
    commits = [make_commit(i, additions=size) for i, size in enumerate([1, 4, 10, 20])]
    assert CommitSize().compute(commits, window).value["median_size"] == 7.0


@pytest.mark.parametrize(
    "size, bucket",
    [(0, "small"), (10, "small"), (11, "medium"), (100, "medium"), (101, "large"),
     (500, "large"), (501, "huge")],
)
def test_size_buckets(size, bucket):
    assert size_bucket(size) == bucket


# ============================================================================
# commits_per_developer
# ============================================================================


def test_commits_per_developer_sorted_desc(window):
    contributors = [
        Contributor("Bob", None, 3),
        Contributor("Alice", "alice@example.com", 12),
        Contributor("Carol", "carol@example.com", 3),
    ]
    outcome = CommitsPerDeveloper().compute(contributors, window)
    assert isinstance(outcome.value, Distribution)
    assert list(outcome.value.buckets.items()) == [
        ("Alice <alice@example.com>", 12),
        ("Bob", 3),
        ("Carol <carol@example.com>", 3),
    ]
    assert outcome.metadata["top_contributor"] == "Alice"
    assert outcome.metadata["total_commits"] == 18
    assert outcome.metadata["avg_commits_per_contributor"] == 6.0
    assert outcome.metadata["data_points_label"] == "contributors"


# ============================================================================
# lines_changed
# ============================================================================


def test_lines_changed_by_author(stat_commits, window):
    outcome = LinesChanged().compute(stat_commits, window)
    assert isinstance(outcome.value, Table)
    rows = outcome.value.rows
    assert [row["author"] for row in rows] == [
        "Alice <alice@example.com>",
        "Bob <bob@example.com>",
    ]
    alice = rows[0]
    assert alice["additions"] == 55
    assert alice["deletions"] == 12
    assert alice["commits"] == 2
    assert alice["net_changes"] == 43
    assert outcome.metadata["contributing_authors"] == 2
    assert outcome.metadata["total_additions"] == 58


@pytest.mark.parametrize("metric", [CommitFrequency, CommitSize, CommitsPerDeveloper, LinesChanged])
def test_empty_input(metric, window):
    outcome = metric().compute([], window)
    assert outcome.metadata["data_points"] == 0
    assert outcome.value.is_empty()
