"""
Metric execution: uniform result envelope and the sequential runner.

A run of N metric names always yields N MetricResults. Failures carry
an error message and an ``error_class`` tag and never stop the rest of
the batch. Invalid inputs raise ValidationError before anything runs.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from repo_vitals.config import AnalysisOptions
from repo_vitals.errors import UnknownMetricError, ValidationError
from repo_vitals.history import HistoryLoader, HistorySource
from repo_vitals.parsing import LogParser
from repo_vitals.registry import category_for, create_metric, filter_metrics
from repo_vitals.reporting import ProgressReporter
from repo_vitals.time_window import TimeWindow, is_all_time
from repo_vitals.values import ComputationFailure, MetricOutcome, MetricValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: Optional[MetricValue]
    repository: str
    time_window: TimeWindow
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        return not self.success

    @property
    def category(self) -> Optional[str]:
        return self.metadata.get("category")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_name": self.name,
            "value": self.value.to_python() if self.value is not None else None,
            "value_kind": self.value.kind if self.value is not None else None,
            "repository": self.repository,
            "time_window": self.time_window.to_dict(),
            "metadata": dict(self.metadata),
            "error": self.error,
            "success": self.success,
        }

    def __str__(self):
        if self.failed:
            return f"{self.name}: ERROR - {self.error} ({self.repository})"
        return f"{self.name}: {self.value.describe()} ({self.repository})"


@dataclass
class RunReport:
    results: List[MetricResult] = field(default_factory=list)
    execution_time: float = 0.0

    def __len__(self):
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __getitem__(self, name: str) -> MetricResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def errors(self) -> Dict[str, str]:
        return {r.name: r.error for r in self.results if r.failed}

    def by_name(self) -> Dict[str, MetricResult]:
        return {result.name: result for result in self.results}

    def summary(self) -> Dict[str, Any]:
        return {
            "metrics_run": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "execution_time": round(self.execution_time, 3),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "results": {r.name: r.to_dict() for r in self.results},
        }


class MetricRunner:
    """Runs metrics sequentially against one repository and time window"""

    def __init__(
        self,
        repository: str,
        time_window: TimeWindow,
        source: Optional[HistorySource] = None,
        options: Optional[AnalysisOptions] = None,
        reporter: Optional[ProgressReporter] = None,
        loader: Optional[HistoryLoader] = None,
    ):
        if repository is None or not str(repository).strip():
            raise ValidationError("Repository is required")
        if not isinstance(time_window, TimeWindow):
            raise ValidationError("A TimeWindow is required")

        self.repository = str(repository)
        self.time_window = time_window
        self.options = options or AnalysisOptions()
        self.reporter = reporter or ProgressReporter(quiet=True)
        self.loader = loader or HistoryLoader(
            source or HistorySource(), time_window, self.options
        )

    @classmethod
    def from_options(
        cls,
        repository: str,
        options: AnalysisOptions,
        source: Optional[HistorySource] = None,
        reporter: Optional[ProgressReporter] = None,
        now: Optional[datetime] = None,
    ) -> "MetricRunner":
        """
        Runner whose window comes from ``options.since`` / ``options.until``.

        ``since="all"`` starts the window at the earliest commit in the
        commits query, which is then fetched once and shared with the
        loader. A missing ``since`` means the last 30 days.
        """
        source = source or HistorySource()
        timestamps = None
        if is_all_time(options.since):
            text = source.fetch("commits")
            source = replace(source, commits=text)
            timestamps = [commit.timestamp for commit in LogParser().parse_commits(text)]
        window = TimeWindow.from_options(options.since, options.until, timestamps, now)
        logger.info("Resolved analysis window %s", window)
        return cls(repository, window, source=source, options=options, reporter=reporter)

    def _success(self, name: str, outcome: MetricOutcome, elapsed: float, category):
        metadata = dict(outcome.metadata)
        metadata.update(
            computed_at=datetime.now(timezone.utc).isoformat(),
            options_used=self.options.filters_used(),
            execution_time=elapsed,
            category=category,
        )
        return MetricResult(
            name=name,
            value=outcome.value,
            repository=self.repository,
            time_window=self.time_window,
            metadata=metadata,
        )

    def _failure(self, name, failure: ComputationFailure, elapsed, category, label):
        return MetricResult(
            name=name,
            value=None,
            repository=self.repository,
            time_window=self.time_window,
            metadata={
                "error_class": failure.error_class,
                "category": category,
                "data_points": 0,
                "data_points_label": label,
                "execution_time": elapsed,
            },
            error=failure.message,
        )

    def run_metric(self, name: str) -> MetricResult:
        """Compute one metric; never raises for computation errors"""
        start = time.perf_counter()
        category = category_for(name)
        label = "records"
        try:
            metric = create_metric(name)
        except UnknownMetricError as e:
            evaluation = ComputationFailure.from_exception(e)
        else:
            label = metric.data_points_label
            evaluation = metric.evaluate(self.loader, self.time_window)
        elapsed = round(time.perf_counter() - start, 3)

        if isinstance(evaluation, ComputationFailure):
            logger.warning("%s failed: %s", name, evaluation.message)
            return self._failure(name, evaluation, elapsed, category, label)
        return self._success(name, evaluation, elapsed, category)

    def resolve_metric_names(self, names: Optional[Iterable[str]] = None) -> List[str]:
        if names is not None:
            return list(names)
        return filter_metrics(
            self.options.metrics,
            self.options.categories,
            self.options.exclude_metrics,
        )

    def run(self, names: Optional[Iterable[str]] = None) -> RunReport:
        """
        Run metrics in order.

        Args:
            names: Metric names; defaults to the names selected by the
                options (explicit metrics, categories, or everything)

        Returns:
            RunReport with one result per name
        """
        metric_names = self.resolve_metric_names(names)
        report = RunReport()
        started = time.perf_counter()

        self.reporter.batch_start(self.repository, self.time_window, len(metric_names))
        progress_bar = self.reporter.create_progress_bar(
            total=len(metric_names), desc="Computing metrics"
        )

        for name in metric_names:
            result = self.run_metric(name)
            report.results.append(result)
            self.reporter.metric_result(result)
            if progress_bar:
                progress_bar.update(1)

        if progress_bar:
            progress_bar.close()

        report.execution_time = time.perf_counter() - started
        self.reporter.batch_complete(report)
        return report
