import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from repo_vitals.config import AnalysisOptions
from repo_vitals.errors import ExternalCommandError, ValidationError
from repo_vitals.history import HistorySource
from repo_vitals.registry import all_metrics
from repo_vitals.reporting import ProgressReporter
from repo_vitals.runner import MetricResult, MetricRunner
from conftest import HASH_B, HASH_C

REPO = "acme/widgets"


@pytest.fixture
def runner(source, window):
    return MetricRunner(REPO, window, source=source)


# ============================================================================
# Validation
# ============================================================================


@pytest.mark.parametrize("repository", [None, "", "   "])
def test_repository_required(repository, window):
    with pytest.raises(ValidationError):
        MetricRunner(repository, window)


def test_time_window_required():
    with pytest.raises(ValidationError):
        MetricRunner(REPO, "last week")


# ============================================================================
# run / run_metric
# ============================================================================


def test_one_result_per_name(runner):
    report = runner.run(["commits_per_developer", "file_churn", "velocity"])
    assert [r.name for r in report] == ["commits_per_developer", "file_churn", "velocity"]
    assert len(report) == 3
    assert report.succeeded == 2
    assert report.failed == 1
    assert report.errors == {"velocity": "Unknown metric: velocity"}


def test_unknown_metric_result(runner):
    result = runner.run_metric("velocity")
    assert result.failed
    assert result.value is None
    assert result.metadata["error_class"] == "UnknownMetricError"
    assert result.metadata["data_points"] == 0
    assert result.category is None
    assert str(result) == f"velocity: ERROR - Unknown metric: velocity ({REPO})"


def test_all_metrics_succeed(runner, window):
    report = runner.run()
    assert [r.name for r in report] == all_metrics()
    assert report.failed == 0
    for result in report:
        assert result.repository == REPO
        assert result.time_window == window


def test_success_metadata(runner):
    result = runner.run_metric("commits_per_developer")
    assert result.success
    assert result.category == "commit_activity"
    for key in ("computed_at", "options_used", "execution_time", "data_points", "data_points_label"):
        assert key in result.metadata
    assert result.metadata["data_points"] == 2
    assert result.metadata["data_points_label"] == "contributors"
    assert str(result) == f"commits_per_developer: 2 buckets, 3 total ({REPO})"


def test_empty_history_is_not_an_error(window):
    report = MetricRunner(REPO, window).run()
    assert report.failed == 0
    for result in report:
        assert result.metadata["data_points"] == 0
        assert result.value.is_empty()


def test_provider_failure_is_captured(commits_text, window):
    def failing():
        raise ExternalCommandError("git log --numstat", "boom", 1)

    source = HistorySource(commits=commits_text, commit_stats=failing)
    report = MetricRunner(REPO, window, source=source).run(
        ["file_churn", "commit_frequency"]
    )
    churn = report["file_churn"]
    assert churn.failed
    assert churn.metadata["error_class"] == "ExternalCommandError"
    assert churn.metadata["data_points_label"] == "files"
    assert "exit 1" in churn.error
    assert report["commit_frequency"].success


def test_names_from_options(source, window):
    options = AnalysisOptions(categories=["reliability"], exclude_metrics=["bugfix_ratio"])
    report = MetricRunner(REPO, window, source=source, options=options).run()
    assert [r.name for r in report] == ["revert_rate", "large_commits"]

    options = AnalysisOptions(metrics=["lead_time", "file_churn", "lead_time"])
    runner = MetricRunner(REPO, window, source=source, options=options)
    assert runner.resolve_metric_names() == ["lead_time", "file_churn"]


def test_options_used_reported(source, window):
    options = AnalysisOptions(contributors=["Alice"], exclude_bots=True)
    result = MetricRunner(REPO, window, source=source, options=options).run_metric("file_churn")
    assert result.metadata["options_used"] == {
        "contributors": ["Alice"],
        "exclude_bots": True,
        "include_merge_commits": True,
    }
    assert "src/models.py" in result.value
    assert result.value["src/parser.py"]["authors"] == ["Alice"]


def test_result_is_immutable(runner):
    result = runner.run_metric("file_churn")
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.name = "other"


def test_report_serialization(runner):
    report = runner.run(["file_churn", "velocity"])
    data = report.to_dict()
    assert data["summary"]["metrics_run"] == 2
    assert data["summary"]["failed"] == 1
    churn = data["results"]["file_churn"]
    assert churn["value_kind"] == "keyed_table"
    assert churn["success"] is True
    assert churn["time_window"]["start"].startswith("2024-01-01")
    assert data["results"]["velocity"]["value"] is None


def test_report_lookup_missing(runner):
    report = runner.run(["file_churn"])
    with pytest.raises(KeyError):
        report["lead_time"]
    assert isinstance(report.by_name()["file_churn"], MetricResult)


# ============================================================================
# Window from options
# ============================================================================

NOW = datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)


def test_runner_window_from_since_and_until(source):
    options = AnalysisOptions(since="2024-01-16", until="2024-01-31")
    runner = MetricRunner.from_options(REPO, options, source=source, now=NOW)
    assert runner.time_window.start == datetime(2024, 1, 16, tzinfo=timezone.utc)
    assert [c.hash for c in runner.loader.commits()] == [HASH_B, HASH_C]
    assert runner.run_metric("commits_per_developer").metadata["data_points"] == 2


def test_runner_window_defaults_to_thirty_days(source):
    runner = MetricRunner.from_options(REPO, AnalysisOptions(), source=source, now=NOW)
    assert runner.time_window.end == NOW
    assert runner.time_window.duration_days == 30

    week = MetricRunner.from_options(REPO, AnalysisOptions(since="7d"), source=source, now=NOW)
    assert week.time_window.start == NOW - timedelta(days=7)


def test_runner_all_time_window_fetches_commits_once(commits_text):
    calls = []

    def provider():
        calls.append(1)
        return commits_text

    runner = MetricRunner.from_options(
        REPO, AnalysisOptions(since="all"), source=HistorySource(commits=provider), now=NOW
    )
    assert runner.time_window.start == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)
    assert len(runner.loader.commits()) == 3
    assert len(calls) == 1


def test_runner_all_time_window_needs_commits():
    with pytest.raises(ValidationError):
        MetricRunner.from_options(REPO, AnalysisOptions(since="all"), now=NOW)


# ============================================================================
# Progress reporting
# ============================================================================


def test_runner_reports_progress(source, window, capsys):
    reporter = ProgressReporter(use_colors=False)
    MetricRunner(REPO, window, source=source, reporter=reporter).run(["file_churn", "velocity"])
    captured = capsys.readouterr()
    assert f"Computing 2 metrics for {REPO}" in captured.out
    assert "❌ velocity [uncategorized] UnknownMetricError: Unknown metric: velocity" in captured.out
    assert "✅ file_churn" not in captured.out
    assert "METRICS SUMMARY" in captured.out
    assert "code_churn: 1/1" in captured.out
    assert "uncategorized: 0/1" in captured.out
    assert "1 of 2 metrics failed" in captured.err


def test_verbose_reporter_lists_successes(source, window, capsys):
    reporter = ProgressReporter(verbose=True, use_colors=False)
    MetricRunner(REPO, window, source=source, reporter=reporter).run(["file_churn", "lead_time"])
    out = capsys.readouterr().out
    assert "✅ file_churn [code_churn] 4 entries" in out
    assert "✅ lead_time [flow]" in out
    assert "✨ All 2 metrics computed" in out


def test_quiet_reporter_only_shows_errors(quiet_reporter, runner, capsys):
    report = runner.run(["file_churn", "velocity"])
    assert quiet_reporter.create_progress_bar(total=3) is None
    quiet_reporter.batch_start(REPO, runner.time_window, 2)
    for result in report:
        quiet_reporter.metric_result(result)
    quiet_reporter.batch_complete(report)
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "ERROR: 1 of 2 metrics failed" in captured.err


def test_plain_result_lines(runner):
    reporter = ProgressReporter(use_colors=False)
    result = runner.run_metric("file_churn")
    timed = dataclasses.replace(result, metadata={**result.metadata, "execution_time": 0.0126})
    assert reporter.format_result(timed) == "✅ file_churn [code_churn] 4 entries (0.013s)"

    failed = runner.run_metric("velocity")
    failed = dataclasses.replace(failed, metadata={**failed.metadata, "execution_time": 0.0})
    assert reporter.format_result(failed) == (
        "❌ velocity [uncategorized] UnknownMetricError: Unknown metric: velocity (0.000s)"
    )


def test_category_counts(runner):
    report = runner.run(["revert_rate", "file_churn", "velocity", "bugfix_ratio"])
    assert ProgressReporter.category_counts(report) == {
        "reliability": [2, 2],
        "code_churn": [1, 1],
        "uncategorized": [0, 1],
    }
