import pytest
from datetime import datetime, timezone

from repo_vitals.history import HistoryLoader, HistorySource
from repo_vitals.parsing import LogParser
from repo_vitals.reporting import ProgressReporter
from repo_vitals.time_window import TimeWindow

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40
HASH_D = "d" * 40


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def parser():
    return LogParser()


@pytest.fixture
def window():
    """January 2024, UTC"""
    return TimeWindow(
        datetime(2024, 1, 1, tzinfo=timezone.utc),
        datetime(2024, 2, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def commits_text():
    """Three commits by two authors on three consecutive days (Mon-Wed)."""
    return "\n".join(
        [
            f"{HASH_A}|Alice|alice@example.com|Mon Jan 15 10:00:00 2024 +0000|Add parser",
            f"{HASH_B}|Bob|bob@example.com|Tue Jan 16 14:30:00 2024 +0000|Fix parser bug",
            f"{HASH_C}|Alice|alice@example.com|Wed Jan 17 20:15:00 2024 +0000|Update docs",
        ]
    )


@pytest.fixture
def stats_text():
    """Same commits with numstat lines; one binary file."""
    return (
        f"{HASH_A}|Alice|alice@example.com|Mon Jan 15 10:00:00 2024 +0000|Add parser\n"
        "10\t2\tsrc/parser.py\n"
        "5\t0\tsrc/models.py\n"
        "\n"
        f"{HASH_B}|Bob|bob@example.com|Tue Jan 16 14:30:00 2024 +0000|Fix parser bug\n"
        "3\t3\tsrc/parser.py\n"
        "\n"
        f"{HASH_C}|Alice|alice@example.com|Wed Jan 17 20:15:00 2024 +0000|Update docs\n"
        "-\t-\tdocs/logo.png\n"
        "40\t10\tREADME.md\n"
    )


@pytest.fixture
def file_changes_text():
    """Commits touching {a, b}, {a} and {b, c}."""
    return f"{HASH_A}\na\nb\n\n{HASH_B}\na\n\n{HASH_C}\nb\nc\n"


@pytest.fixture
def tags_text():
    return (
        "v1.1.0|Wed Jan 17 12:00:00 2024 +0000\n"
        "v1.0.0|Mon Jan 15 11:00:00 2024 +0000\n"
        "experiment-42|Tue Jan 16 09:00:00 2024 +0000\n"
    )


@pytest.fixture
def commits(parser, commits_text):
    return parser.parse_commits(commits_text)


@pytest.fixture
def stat_commits(parser, stats_text):
    return parser.parse_commit_stats(stats_text)


@pytest.fixture
def source(commits_text, stats_text, file_changes_text, tags_text):
    return HistorySource(
        commits=commits_text,
        commit_stats=stats_text,
        file_changes=file_changes_text,
        tags=tags_text,
        branches="* main\n  feature/parser\n",
    )


@pytest.fixture
def loader(source, window):
    return HistoryLoader(source, window)
