"""
repo-vitals: engineering metrics from version-control history.

Raw git text goes through LogParser into typed records, each requested
metric algorithm computes a MetricValue from those records, and the
MetricRunner wraps every computation in a uniform MetricResult.
"""

from repo_vitals.errors import (
    ConfigError,
    ExternalCommandError,
    ParseError,
    RepoVitalsError,
    UnknownMetricError,
    ValidationError,
)
from repo_vitals.history import HistoryLoader, HistorySource
from repo_vitals.models import Commit, Contributor, Deployment, FileChange, Tag
from repo_vitals.parsing import LogParser
from repo_vitals.runner import MetricResult, MetricRunner, RunReport
from repo_vitals.tag_patterns import PRODUCTION_PATTERNS, ProductionTagMatcher
from repo_vitals.time_window import TimeWindow

VERSION = "1.0.0"

__all__ = [
    "Commit",
    "ConfigError",
    "Contributor",
    "Deployment",
    "ExternalCommandError",
    "FileChange",
    "HistoryLoader",
    "HistorySource",
    "LogParser",
    "MetricResult",
    "MetricRunner",
    "PRODUCTION_PATTERNS",
    "ParseError",
    "ProductionTagMatcher",
    "RepoVitalsError",
    "RunReport",
    "Tag",
    "TimeWindow",
    "UnknownMetricError",
    "VERSION",
    "ValidationError",
]
