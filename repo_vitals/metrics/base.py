"""
Base class for all metric algorithms.

Subclasses declare their name, category, value kind and data-point label,
pick their input in ``collect`` and implement ``compute``. ``evaluate``
never raises: a failure comes back as a ComputationFailure.
"""

import logging
from typing import Any

from repo_vitals.time_window import TimeWindow
from repo_vitals.values import (
    SUMMARY,
    ComputationFailure,
    Evaluation,
    MetricOutcome,
    MetricValue,
    empty_value,
)

logger = logging.getLogger(__name__)


class MetricAlgorithm:
    """Base class for metric algorithms"""

    name = ""
    category = ""
    description = ""
    value_kind = SUMMARY
    data_points_label = "commits"

    def collect(self, history) -> Any:
        """Select this metric's input from a HistoryLoader"""
        return history.commit_stats()

    def compute(self, data: Any, window: TimeWindow) -> MetricOutcome:
        """Compute the metric from already parsed records"""
        raise NotImplementedError

    def evaluate(self, history, window: TimeWindow) -> Evaluation:
        """Collect and compute, returning a failure instead of raising"""
        try:
            return self.compute(self.collect(history), window)
        except Exception as e:
            logger.warning("Metric %s failed: %s: %s", self.name, type(e).__name__, e)
            return ComputationFailure.from_exception(e)

    def outcome(self, value: MetricValue, data_points: int, **metadata) -> MetricOutcome:
        meta = {
            "data_points": data_points,
            "data_points_label": self.data_points_label,
        }
        meta.update(metadata)
        return MetricOutcome(value=value, metadata=meta)

    def empty(self) -> MetricOutcome:
        return self.outcome(empty_value(self.value_kind), 0)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"
