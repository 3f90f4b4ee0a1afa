"""
Registry of available metrics, grouped by category.

Category order and the order of metrics inside each category define the
default execution order of a full run.
"""

from typing import Dict, Iterable, List, Optional, Type

from repo_vitals.errors import UnknownMetricError
from repo_vitals.metrics import (
    AuthorsPerFile,
    BugfixRatio,
    CoChangePairs,
    CommitFrequency,
    CommitSize,
    CommitsPerDeveloper,
    DeploymentFrequency,
    FileChurn,
    FileOwnership,
    LargeCommits,
    LeadTime,
    LinesChanged,
    MetricAlgorithm,
    RevertRate,
)

CATEGORIES: Dict[str, List[Type[MetricAlgorithm]]] = {
    "commit_activity": [CommitsPerDeveloper, CommitSize, CommitFrequency, LinesChanged],
    "code_churn": [FileChurn, AuthorsPerFile, FileOwnership, CoChangePairs],
    "reliability": [RevertRate, BugfixRatio, LargeCommits],
    "flow": [LeadTime, DeploymentFrequency],
}

METRICS: Dict[str, Type[MetricAlgorithm]] = {
    metric.name: metric for metrics in CATEGORIES.values() for metric in metrics
}


def all_metrics() -> List[str]:
    return list(METRICS)


def categories() -> List[str]:
    return list(CATEGORIES)


def metrics_for_category(category: str) -> List[str]:
    if category not in CATEGORIES:
        raise UnknownMetricError(category)
    return [metric.name for metric in CATEGORIES[category]]


def category_for(metric_name: str) -> Optional[str]:
    metric = METRICS.get(metric_name)
    return metric.category if metric else None


def create_metric(metric_name: str) -> MetricAlgorithm:
    """Instantiate a registered metric by name"""
    try:
        return METRICS[metric_name]()
    except KeyError:
        raise UnknownMetricError(metric_name) from None


def filter_metrics(
    requested: Optional[Iterable[str]] = None,
    category_names: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
) -> List[str]:
    """
    Resolve the metric names to run.

    Args:
        requested: Explicit metric names, kept in caller order (unknown
            names are kept so the runner can report them as failures)
        category_names: Categories to expand when no names are requested
        exclude: Names to drop

    Returns:
        Ordered, de-duplicated metric names
    """
    if requested:
        names = list(requested)
    elif category_names:
        names = [name for category in category_names for name in metrics_for_category(category)]
    else:
        names = all_metrics()

    excluded = set(exclude or ())
    resolved = []
    for name in names:
        if name not in excluded and name not in resolved:
            resolved.append(name)
    return resolved
