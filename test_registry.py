import pytest

from repo_vitals.errors import UnknownMetricError
from repo_vitals.metrics import FileChurn
from repo_vitals.registry import (
    all_metrics,
    categories,
    category_for,
    create_metric,
    filter_metrics,
    metrics_for_category,
)


def test_registry_order():
    assert categories() == ["commit_activity", "code_churn", "reliability", "flow"]
    assert len(all_metrics()) == 13
    assert metrics_for_category("flow") == ["lead_time", "deployment_frequency"]


def test_category_lookup():
    assert category_for("co_change_pairs") == "code_churn"
    assert category_for("velocity") is None
    with pytest.raises(UnknownMetricError):
        metrics_for_category("velocity")


def test_create_metric():
    assert isinstance(create_metric("file_churn"), FileChurn)
    with pytest.raises(UnknownMetricError) as excinfo:
        create_metric("velocity")
    assert str(excinfo.value) == "Unknown metric: velocity"


def test_filter_metrics():
    assert filter_metrics() == all_metrics()
    assert filter_metrics(["lead_time", "velocity", "lead_time"]) == ["lead_time", "velocity"]
    assert filter_metrics(category_names=["reliability"]) == [
        "revert_rate",
        "bugfix_ratio",
        "large_commits",
    ]
    assert filter_metrics(
        category_names=["commit_activity"], exclude=["commit_size", "lines_changed"]
    ) == ["commits_per_developer", "commit_frequency"]
