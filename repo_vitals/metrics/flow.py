"""
Delivery flow metrics: commit-to-release lead time and deployment
cadence.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from repo_vitals.models import MERGE_DEPLOYMENT, PRODUCTION_RELEASE, Commit, Deployment, Tag
from repo_vitals.stats import (
    coefficient_of_variation,
    iqr_outliers,
    mean,
    median,
    percentile,
    stddev,
)
from repo_vitals.tag_patterns import ProductionTagMatcher
from repo_vitals.time_window import TimeWindow
from repo_vitals.values import Summary
from repo_vitals.metrics.activity import WEEKDAY_NAMES, first_max
from repo_vitals.metrics.base import MetricAlgorithm

ONE_WEEK_HOURS = 168

LEAD_TIME_CATEGORIES = (
    ("very_fast", 4),
    ("fast", 24),
    ("moderate", 168),
    ("slow", 672),
)

MERGE_PATTERNS = (
    re.compile(r"^Merge pull request", re.IGNORECASE),
    re.compile(r"^Merge branch", re.IGNORECASE),
    re.compile(r"^Merge remote-tracking branch", re.IGNORECASE),
    re.compile(r"^Merged in", re.IGNORECASE),
)

MAIN_BRANCH_NAMES = ("main", "master", "production", "prod")

SUCCESS_KEYWORDS = ("success", "successful", "deploy", "deployed", "release", "released")
FAILURE_KEYWORDS = ("rollback", "revert", "failed", "error", "issue", "problem")


@dataclass
class FlowInput:
    """Records the flow metrics work from"""

    commits: List[Commit] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    branches: List[str] = field(default_factory=list)


def collect_flow_input(history) -> FlowInput:
    return FlowInput(
        commits=history.commits(include_merges=True),
        tags=history.tags(),
        branches=history.branches(),
    )


def _half_averages(ordered_keys: List[str], values: Dict[str, float]):
    half = len(ordered_keys) // 2
    first = ordered_keys[:half]
    second = ordered_keys[-half:]
    first_avg = sum(values[key] for key in first) / len(first)
    second_avg = sum(values[key] for key in second) / len(second)
    return first_avg, second_avg


# ============================================================================
# LEAD TIME
# ============================================================================


@dataclass(frozen=True)
class CommitLeadTime:
    commit: Commit
    release: Tag
    lead_time_hours: float

    def to_dict(self) -> Dict:
        return {
            "hash": self.commit.hash,
            "author": self.commit.author_name,
            "date": self.commit.timestamp.isoformat(),
            "message": self.commit.subject,
            "lead_time_hours": self.lead_time_hours,
            "lead_time_days": round(self.lead_time_hours / 24, 2),
            "deployed_in_release": self.release.name,
            "deployment_date": self.release.timestamp.isoformat(),
        }


def next_release(commit: Commit, releases: List[Tag]) -> Optional[Tag]:
    """Earliest release strictly after the commit; releases sorted ascending"""
    for release in releases:
        if release.timestamp > commit.timestamp:
            return release
    return None


def lead_time_category(hours: float) -> str:
    for name, upper in LEAD_TIME_CATEGORIES:
        if hours <= upper:
            return name
    return "very_slow"


def flow_efficiency(lead_times: List[float]) -> float:
    """Share of lead times within one week; 1.0 when there are none"""
    if not lead_times:
        return 1.0
    fast = sum(1 for hours in lead_times if hours <= ONE_WEEK_HOURS)
    return round(fast / len(lead_times), 3)


class LeadTime(MetricAlgorithm):
    name = "lead_time"
    category = "flow"
    description = "Time from commit to the production release that ships it"

    def __init__(self, matcher: Optional[ProductionTagMatcher] = None):
        self.matcher = matcher or ProductionTagMatcher()

    def collect(self, history):
        return collect_flow_input(history)

    def compute(self, data: FlowInput, window: TimeWindow):
        if not data.commits:
            return self.empty()

        releases = self.matcher.releases(data.tags)
        measured = []
        for commit in data.commits:
            release = next_release(commit, releases)
            if release is None:
                continue
            seconds = (release.timestamp - commit.timestamp).total_seconds()
            measured.append(CommitLeadTime(commit, release, round(seconds / 3600, 2)))

        lead_times = [item.lead_time_hours for item in measured]
        ordered = sorted(lead_times)
        by_author = self._by_author(data.commits, measured)

        overall = {
            "total_commits": len(data.commits),
            "commits_with_lead_time": len(lead_times),
            "avg_lead_time_hours": round(mean(lead_times), 2),
            "median_lead_time_hours": median(lead_times),
            "p95_lead_time_hours": percentile(ordered, 95),
            "min_lead_time_hours": min(lead_times) if lead_times else 0,
            "max_lead_time_hours": max(lead_times) if lead_times else 0,
            "flow_efficiency": flow_efficiency(lead_times),
        }
        bottlenecks = self._bottlenecks(measured)

        value = Summary(
            sections={
                "overall": overall,
                "by_author": by_author,
                "production_releases": [
                    {"name": tag.name, "date": tag.timestamp.isoformat()}
                    for tag in releases[:10]
                ],
                "lead_time_distribution": self._distribution(ordered),
                "bottleneck_analysis": bottlenecks,
                "trends": self._trends(measured),
            },
            headline="overall",
        )

        slowest = max(by_author.items(), key=lambda item: item[1]["avg_lead_time_hours"], default=None)
        return self.outcome(
            value,
            len(data.commits),
            avg_lead_time_hours=overall["avg_lead_time_hours"],
            median_lead_time_hours=overall["median_lead_time_hours"],
            flow_efficiency=overall["flow_efficiency"],
            fast_authors=sum(
                1 for stats in by_author.values() if stats["avg_lead_time_hours"] < 24
            ),
            slowest_author=slowest[0] if slowest else None,
            bottleneck_count=len(bottlenecks.get("high_lead_time_commits", [])),
        )

    @staticmethod
    def _by_author(commits: List[Commit], measured: List[CommitLeadTime]) -> Dict:
        totals = Counter(commit.author_name for commit in commits)
        hours_by_author: Dict[str, List[float]] = {}
        for item in measured:
            hours_by_author.setdefault(item.commit.author_name, []).append(item.lead_time_hours)

        stats = {}
        for author, hours in hours_by_author.items():
            stats[author] = {
                "total_commits": totals[author],
                "commits_deployed": len(hours),
                "avg_lead_time_hours": round(mean(hours), 2),
                "median_lead_time_hours": median(hours),
                "min_lead_time_hours": min(hours),
                "max_lead_time_hours": max(hours),
                "deployment_rate": round(len(hours) / totals[author] * 100, 2),
            }
        return dict(sorted(stats.items(), key=lambda item: item[1]["avg_lead_time_hours"]))

    @staticmethod
    def _distribution(ordered: List[float]) -> Dict:
        if not ordered:
            return {}
        categories = {name: 0 for name, _ in LEAD_TIME_CATEGORIES}
        categories["very_slow"] = 0
        for hours in ordered:
            categories[lead_time_category(hours)] += 1
        return {
            "quartiles": {
                "q1": percentile(ordered, 25),
                "q2": percentile(ordered, 50),
                "q3": percentile(ordered, 75),
            },
            "percentiles": {
                f"p{p}": percentile(ordered, p) for p in (50, 75, 90, 95, 99)
            },
            "categories": categories,
            "outliers": iqr_outliers(ordered),
        }

    @staticmethod
    def _bottleneck_factors(commits: List[Commit]) -> Dict[str, int]:
        factors: Counter = Counter()
        for commit in commits:
            ts = commit.timestamp
            message = commit.subject.lower()
            if ts.weekday() >= 5:
                factors["weekend_commits"] += 1
            if ts.hour < 9 or ts.hour > 18:
                factors["after_hours_commits"] += 1
            if ts.weekday() == 4:
                factors["friday_commits"] += 1
            if "merge" in message:
                factors["merge_commits"] += 1
            if "fix" in message:
                factors["hotfix_commits"] += 1
            if len(message) > 100:
                factors["large_messages"] += 1
            if len(message) < 20:
                factors["vague_messages"] += 1
        return dict(factors.most_common())

    def _bottlenecks(self, measured: List[CommitLeadTime]) -> Dict:
        if not measured:
            return {}
        threshold = percentile(sorted(item.lead_time_hours for item in measured), 95)
        slow = [item for item in measured if item.lead_time_hours > threshold]
        return {
            "p95_threshold_hours": threshold,
            "high_lead_time_commits": [item.to_dict() for item in slow[:20]],
            "common_bottleneck_factors": self._bottleneck_factors(
                [item.commit for item in slow]
            ),
            "bottleneck_authors": dict(
                Counter(item.commit.author_name for item in slow).most_common()
            ),
        }

    @staticmethod
    def _trends(measured: List[CommitLeadTime]) -> Dict:
        if len(measured) < 10:
            return {}
        monthly: Dict[str, List[float]] = {}
        for item in measured:
            month = item.commit.timestamp.strftime("%Y-%m")
            monthly.setdefault(month, []).append(item.lead_time_hours)
        averages = {month: mean(hours) for month, hours in monthly.items()}
        months = sorted(averages)

        direction, improvement = "stable", 0.0
        if len(months) >= 2:
            first_avg, second_avg = _half_averages(months, averages)
            if second_avg < first_avg * 0.9:
                direction = "improving"
            elif second_avg > first_avg * 1.1:
                direction = "deteriorating"
            first, last = averages[months[0]], averages[months[-1]]
            if first:
                improvement = round((first - last) / first * 100, 1)

        return {
            "monthly_averages": {month: round(averages[month], 2) for month in months},
            "trend_direction": direction,
            "improvement_rate": improvement,
        }


# ============================================================================
# DEPLOYMENT FREQUENCY
# ============================================================================


def is_merge_subject(subject: str) -> bool:
    message = subject.strip()
    return any(pattern.search(message) for pattern in MERGE_PATTERNS)


def has_main_branch(branches: List[str]) -> bool:
    """True when no branch list is known or one of them is main-like"""
    if not branches:
        return True
    return any(branch.rsplit("/", 1)[-1] in MAIN_BRANCH_NAMES for branch in branches)


def deduplicate_by_day(deployments: List[Deployment]) -> List[Deployment]:
    """
    One deployment per calendar day: the first production tag of the day,
    otherwise the latest merge.
    """
    by_day: Dict[str, List[Deployment]] = {}
    for deployment in deployments:
        by_day.setdefault(deployment.timestamp.strftime("%Y-%m-%d"), []).append(deployment)

    unique = []
    for day_deployments in by_day.values():
        tag = next((d for d in day_deployments if d.type == PRODUCTION_RELEASE), None)
        if tag is not None:
            unique.append(tag)
            continue
        merges = [d for d in day_deployments if d.type == MERGE_DEPLOYMENT]
        if merges:
            unique.append(max(merges, key=lambda d: d.timestamp))
    return unique


def interval_days(timestamps: List[datetime]) -> List[float]:
    ordered = sorted(timestamps)
    return [
        round((later - earlier).total_seconds() / 86400, 2)
        for earlier, later in zip(ordered, ordered[1:])
    ]


def frequency_category(per_week: float) -> str:
    if per_week <= 0:
        return "none"
    if per_week <= 0.25:
        return "low"
    if per_week <= 1:
        return "moderate"
    if per_week <= 3:
        return "high"
    return "very_high"


def predictability(consistency: float) -> str:
    if consistency >= 0.8:
        return "highly_predictable"
    if consistency >= 0.6:
        return "moderately_predictable"
    if consistency >= 0.4:
        return "somewhat_predictable"
    return "unpredictable"


def velocity_category(commits_per_deployment: float) -> str:
    if commits_per_deployment <= 5:
        return "small_batches"
    if commits_per_deployment <= 20:
        return "medium_batches"
    if commits_per_deployment <= 50:
        return "large_batches"
    return "very_large_batches"


def batch_size_category(commits_per_deployment: float) -> str:
    if commits_per_deployment <= 1:
        return "SINGLE_COMMIT"
    if commits_per_deployment <= 5:
        return "SMALL_BATCH"
    if commits_per_deployment <= 15:
        return "MEDIUM_BATCH"
    if commits_per_deployment <= 30:
        return "LARGE_BATCH"
    return "VERY_LARGE_BATCH"


class DeploymentFrequency(MetricAlgorithm):
    name = "deployment_frequency"
    category = "flow"
    description = "Deployment frequency and release cadence"
    data_points_label = "deployments"

    def __init__(self, matcher: Optional[ProductionTagMatcher] = None):
        self.matcher = matcher or ProductionTagMatcher()

    def collect(self, history):
        return collect_flow_input(history)

    def identify_deployments(self, data: FlowInput, window: TimeWindow) -> List[Deployment]:
        """Deduplicated deployments inside the window, newest first"""
        deployments = [
            Deployment(
                type=PRODUCTION_RELEASE,
                identifier=tag.name,
                timestamp=tag.timestamp,
                commit_hash=tag.commit_hash,
                method="tag",
            )
            for tag in self.matcher.filter_tags(data.tags)
            if tag.timestamp is not None and window.contains(tag.timestamp)
        ]
        if has_main_branch(data.branches):
            deployments.extend(
                Deployment(
                    type=MERGE_DEPLOYMENT,
                    identifier=commit.short_hash,
                    timestamp=commit.timestamp,
                    commit_hash=commit.hash,
                    method="merge",
                    message=commit.subject,
                )
                for commit in data.commits
                if is_merge_subject(commit.subject)
            )
        unique = deduplicate_by_day(deployments)
        return sorted(unique, key=lambda d: d.timestamp, reverse=True)

    def compute(self, data: FlowInput, window: TimeWindow):
        if not data.commits and not data.tags:
            return self.empty()

        deployments = self.identify_deployments(data, window)
        if not deployments:
            return self.empty()

        overall = self._frequency(deployments, window)
        stability = self._stability(deployments)
        quality = self._quality(deployments, data.commits)

        value = Summary(
            sections={
                "overall": overall,
                "deployments": [d.to_dict() for d in deployments[:20]],
                "patterns": self._patterns(deployments),
                "stability": stability,
                "trends": self._trends(deployments),
                "quality_metrics": quality,
            },
            headline="overall",
        )
        return self.outcome(
            value,
            len(deployments),
            total_deployments=overall["total_deployments"],
            deployments_per_week=overall["deployments_per_week"],
            avg_days_between=overall["avg_days_between_deployments"],
            deployment_consistency=stability["consistency_score"],
            deployment_velocity=quality.get("deployment_velocity"),
            last_deployment_days_ago=overall["days_since_last_deployment"],
        )

    @staticmethod
    def _frequency(deployments: List[Deployment], window: TimeWindow) -> Dict:
        timestamps = sorted(d.timestamp for d in deployments)
        first, last = timestamps[0], timestamps[-1]
        days_span = max(round((last - first).total_seconds() / 86400, 1), 1)
        per_day = round(len(deployments) / days_span, 3)
        intervals = interval_days(timestamps)
        days_since_last = max((window.end - last).total_seconds() / 86400, 0)
        return {
            "total_deployments": len(deployments),
            "days_span": days_span,
            "deployments_per_day": per_day,
            "deployments_per_week": round(per_day * 7, 2),
            "deployments_per_month": round(per_day * 30, 2),
            "avg_days_between_deployments": round(mean(intervals), 2),
            "min_days_between": min(intervals) if intervals else 0,
            "max_days_between": max(intervals) if intervals else 0,
            "days_since_last_deployment": round(days_since_last, 1),
            "frequency_category": frequency_category(per_day * 7),
        }

    @staticmethod
    def _patterns(deployments: List[Deployment]) -> Dict:
        by_hour: Counter = Counter()
        by_day: Counter = Counter()
        by_month: Counter = Counter()
        by_type: Counter = Counter()
        for deployment in deployments:
            ts = deployment.timestamp
            by_hour[ts.hour] += 1
            by_day[WEEKDAY_NAMES[ts.weekday()]] += 1
            by_month[ts.strftime("%Y-%m")] += 1
            by_type[deployment.type] += 1

        total = len(deployments)
        working = sum(by_hour[hour] for hour in range(9, 19))
        weekdays = sum(by_day[day] for day in WEEKDAY_NAMES[:5])
        return {
            "by_hour_of_day": dict(by_hour),
            "by_day_of_week": dict(by_day),
            "by_month": dict(by_month),
            "by_deployment_type": dict(by_type),
            "peak_deployment_hour": first_max(by_hour)[0],
            "peak_deployment_day": first_max(by_day)[0],
            "working_hours_ratio": round(working / total, 3),
            "weekday_ratio": round(weekdays / total, 3),
        }

    @staticmethod
    def _stability(deployments: List[Deployment]) -> Dict:
        intervals = interval_days([d.timestamp for d in deployments])
        if not intervals:
            return {
                "consistency_score": 0,
                "coefficient_of_variation": 0,
                "deployment_predictability": "unknown",
            }
        cov = coefficient_of_variation(intervals)
        consistency = round(max(1.0 - cov, 0.0), 3)
        return {
            "consistency_score": consistency,
            "coefficient_of_variation": round(cov, 3),
            "std_deviation_days": round(stddev(intervals), 2),
            "deployment_predictability": predictability(consistency),
            "longest_gap_days": max(intervals),
            "shortest_gap_days": min(intervals),
        }

    @staticmethod
    def _trends(deployments: List[Deployment]) -> Dict:
        if len(deployments) < 4:
            return {}
        monthly = Counter(d.timestamp.strftime("%Y-%m") for d in deployments)
        months = sorted(monthly)
        if len(months) < 3:
            return {}

        first_avg, second_avg = _half_averages(months, monthly)
        if first_avg == 0 or abs(second_avg - first_avg) < 0.1:
            direction = "stable"
        else:
            direction = "increasing" if second_avg > first_avg else "decreasing"
        change = round((second_avg - first_avg) / first_avg * 100, 1) if first_avg else 0.0

        chronological = {month: monthly[month] for month in months}
        return {
            "monthly_counts": chronological,
            "trend_direction": direction,
            "trend_percentage": change,
            "most_active_month": first_max(chronological)[0],
            "least_active_month": min(chronological.items(), key=lambda item: item[1])[0],
        }

    @staticmethod
    def _success_indicators(deployments: List[Deployment]) -> Dict:
        successes = failures = 0
        for deployment in deployments:
            message = deployment.message.lower()
            if any(keyword in message for keyword in SUCCESS_KEYWORDS):
                successes += 1
            if any(keyword in message for keyword in FAILURE_KEYWORDS):
                failures += 1

        if successes or failures:
            rate = round(successes / (successes + failures) * 100, 2)
        else:
            rate = 100.0
        return {
            "apparent_successes": successes,
            "apparent_failures": failures,
            "success_rate": rate,
        }

    def _quality(self, deployments: List[Deployment], commits: List[Commit]) -> Dict:
        if not commits:
            return {}
        per_deployment = len(commits) / len(deployments)
        weekly_rate = len(deployments) / (len(commits) / 7)
        frequency_score = min(weekly_rate, 5.0) / 5.0
        batch_score = min(20.0 / max(per_deployment, 1.0), 1.0)
        return {
            "commits_per_deployment": round(per_deployment, 2),
            "deployment_velocity": velocity_category(per_deployment),
            "batch_size_category": batch_size_category(per_deployment),
            "success_indicators": self._success_indicators(deployments),
            "deployment_efficiency": round((frequency_score + batch_score) / 2, 3),
        }
