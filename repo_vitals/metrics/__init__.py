from repo_vitals.metrics.activity import (
    CommitFrequency,
    CommitSize,
    CommitsPerDeveloper,
    LinesChanged,
)
from repo_vitals.metrics.base import MetricAlgorithm
from repo_vitals.metrics.churn import AuthorsPerFile, CoChangePairs, FileChurn, FileOwnership
from repo_vitals.metrics.flow import DeploymentFrequency, FlowInput, LeadTime
from repo_vitals.metrics.reliability import BugfixRatio, LargeCommits, RevertRate

__all__ = [
    "AuthorsPerFile",
    "BugfixRatio",
    "CoChangePairs",
    "CommitFrequency",
    "CommitSize",
    "CommitsPerDeveloper",
    "DeploymentFrequency",
    "FileChurn",
    "FileOwnership",
    "FlowInput",
    "LargeCommits",
    "LeadTime",
    "LinesChanged",
    "MetricAlgorithm",
    "RevertRate",
]
