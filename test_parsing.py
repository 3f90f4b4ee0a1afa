import logging
from datetime import datetime, timezone

import pytest

from repo_vitals.errors import ParseError
from repo_vitals.models import FileChange
from repo_vitals.parsing import LogParser, parse_timestamp
from conftest import HASH_A, HASH_B, HASH_C

# ============================================================================
# parse_commits
# ============================================================================


def test_parse_commits_basic(parser, commits_text):
    commits = parser.parse_commits(commits_text)
    assert [c.hash for c in commits] == [HASH_A, HASH_B, HASH_C]
    first = commits[0]
    assert first.author_name == "Alice"
    assert first.author_email == "alice@example.com"
    assert first.subject == "Add parser"
    assert first.timestamp == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert first.file_changes == ()


def test_parse_commits_subject_keeps_pipes(parser):
    text = f"{HASH_A}|Alice|a@x.io|2024-01-15 10:00:00 +0000|Fix a|b|c parsing"
    commits = parser.parse_commits(text)
    assert commits[0].subject == "Fix a|b|c parsing"


def test_parse_commits_skips_short_and_blank_lines(parser):
    text = "\n".join(
        [
            "",
            "not|enough|fields",
            f"{HASH_A}|Alice|a@x.io|2024-01-15 10:00:00 +0000|Valid",
            "   ",
        ]
    )
    commits = parser.parse_commits(text)
    assert len(commits) == 1
    assert commits[0].subject == "Valid"


def test_parse_commits_empty_email_is_none(parser):
    commits = parser.parse_commits(f"{HASH_A}|Alice||2024-01-15 10:00:00 +0000|x")
    assert commits[0].author_email is None
    assert commits[0].author_key == "Alice"


def test_parse_commits_bad_date_returns_empty(parser, commits_text, caplog):
    text = commits_text + f"\n{HASH_A}|Eve|eve@x.io|garbage|broken"
    with caplog.at_level(logging.WARNING, logger="repo_vitals.parsing"):
        assert parser.parse_commits(text) == []
    assert "Failed to parse commit list" in caplog.text


def test_parse_commits_none_and_empty(parser):
    assert parser.parse_commits(None) == []
    assert parser.parse_commits("") == []


def test_naive_timestamp_is_utc():
    ts = parse_timestamp("2024-01-15 10:00:00")
    assert ts.tzinfo is not None
    assert ts.utcoffset().total_seconds() == 0


def test_parse_timestamp_keeps_offset():
    ts = parse_timestamp("Thu Oct 2 10:00:00 2025 +0200")
    assert ts.hour == 10
    assert ts.utcoffset().total_seconds() == 7200


def test_parse_timestamp_rejects_empty():
    with pytest.raises(ParseError):
        parse_timestamp("  ")


# ============================================================================
# parse_commit_stats
# ============================================================================


def test_parse_commit_stats_accumulates_totals(parser, stats_text):
    commits = parser.parse_commit_stats(stats_text)
    assert len(commits) == 3

    first = commits[0]
    assert first.additions == 15
    assert first.deletions == 2
    assert first.file_changes == (
        FileChange("src/parser.py", 10, 2),
        FileChange("src/models.py", 5, 0),
    )


def test_parse_commit_stats_binary_counts_as_zero(parser, stats_text):
    third = parser.parse_commit_stats(stats_text)[2]
    assert FileChange("docs/logo.png", 0, 0) in third.file_changes
    assert third.additions == 40
    assert third.deletions == 10


def test_numstat_before_header_ignored(parser):
    text = (
        "7\t1\torphan.py\n"
        f"{HASH_A}|Alice|a@x.io|2024-01-15 10:00:00 +0000|First\n"
        "1\t1\tkept.py\n"
    )
    commits = parser.parse_commit_stats(text)
    assert len(commits) == 1
    assert commits[0].filenames == ("kept.py",)


def test_parse_commit_stats_malformed_date_returns_empty(parser, stats_text):
    text = stats_text + f"\n{HASH_A}|Eve|eve@x.io|garbage|broken\n1\t1\tx.py\n"
    assert parser.parse_commit_stats(text) == []


def test_parse_commit_stats_header_without_changes(parser):
    text = f"{HASH_A}|Alice|a@x.io|2024-01-15 10:00:00 +0000|Empty merge\n"
    commits = parser.parse_commit_stats(text)
    assert commits[0].total_changes == 0
    assert commits[0].file_changes == ()


def test_parsing_is_idempotent(parser, stats_text, commits_text):
    assert parser.parse_commit_stats(stats_text) == parser.parse_commit_stats(stats_text)
    assert parser.parse_commits(commits_text) == LogParser().parse_commits(commits_text)


# ============================================================================
# parse_file_changes
# ============================================================================


def test_parse_file_changes(parser, file_changes_text):
    mapping = parser.parse_file_changes(file_changes_text)
    assert mapping == {
        "a": [HASH_A, HASH_B],
        "b": [HASH_A, HASH_C],
        "c": [HASH_C],
    }


def test_parse_file_changes_ignores_files_before_first_hash(parser):
    text = f"stray.txt\n{HASH_A}\nreal.txt\n"
    assert parser.parse_file_changes(text) == {"real.txt": [HASH_A]}


def test_short_hex_line_is_a_filename(parser):
    text = f"{HASH_A}\nabc123\n"
    assert parser.parse_file_changes(text) == {"abc123": [HASH_A]}


# ============================================================================
# parse_contributors / parse_tags / parse_branches
# ============================================================================


def test_parse_contributors(parser):
    text = "    12\tAlice Smith <alice@example.com>\n     3\tBob\ngarbage line\n"
    contributors = parser.parse_contributors(text)
    assert len(contributors) == 2
    assert contributors[0].name == "Alice Smith"
    assert contributors[0].email == "alice@example.com"
    assert contributors[0].commit_count == 12
    assert contributors[0].key == "Alice Smith <alice@example.com>"
    assert contributors[1].email is None
    assert contributors[1].key == "Bob"


def test_parse_tags(parser, tags_text):
    tags = parser.parse_tags(tags_text + "bare-tag\n")
    assert [t.name for t in tags] == ["v1.1.0", "v1.0.0", "experiment-42", "bare-tag"]
    assert tags[1].timestamp == datetime(2024, 1, 15, 11, 0, tzinfo=timezone.utc)
    assert tags[3].timestamp is None


def test_parse_tags_with_commit_hash(parser):
    tags = parser.parse_tags(f"v2.0.0|2024-02-01 09:00:00 +0000|{HASH_B}")
    assert tags[0].commit_hash == HASH_B


def test_parse_tags_bad_date_returns_empty(parser):
    assert parser.parse_tags("v1.0.0|2024-01-01\nv1.1.0|garbage\n") == []


def test_parse_branches(parser):
    text = (
        "* main\n"
        "  feature/x\n"
        "  remotes/origin/main\n"
        "  remotes/origin/HEAD -> origin/main\n"
    )
    assert parser.parse_branches(text) == ["main", "feature/x"]
