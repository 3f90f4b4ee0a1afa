"""
Time window bounding every history query.

A TimeWindow is an immutable, strictly ordered pair of timezone-aware
datetimes. Naive inputs are taken as UTC.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Union

from dateutil import parser as date_parser

from repo_vitals.errors import ValidationError

DEFAULT_WINDOW_DAYS = 30

RELATIVE_TIME_RE = re.compile(r"^(\d+)([dwmy])$")
RELATIVE_UNIT_DAYS = {"d": 1, "w": 7, "m": 30, "y": 365}

DateLike = Union[datetime, str]


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to a naive datetime, leave aware ones untouched"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def coerce_datetime(value: DateLike, label: str = "timestamp") -> datetime:
    """Turn a datetime or date string into an aware datetime."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str) and value.strip():
        try:
            return ensure_aware(date_parser.parse(value.strip()))
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid {label}: {value!r} ({e})") from e
    raise ValidationError(f"Invalid {label}: {value!r}")


ALL_TIME_OPTIONS = ("all", "all-time")


def is_all_time(value: Optional[DateLike]) -> bool:
    return isinstance(value, str) and value.strip().lower() in ALL_TIME_OPTIONS


def parse_time_option(value: Optional[DateLike], now: Optional[datetime] = None):
    """
    Resolve a since/until option.

    Accepts relative forms such as "30d", "2w", "3m" (30-day months) and
    "1y" (365 days), measured back from ``now``, or any absolute date
    string understood by dateutil. Returns None for None/empty input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)

    text = str(value).strip()
    if not text:
        return None

    match = RELATIVE_TIME_RE.match(text)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        reference = ensure_aware(now) if now else datetime.now(timezone.utc)
        return reference - timedelta(days=amount * RELATIVE_UNIT_DAYS[unit])

    return coerce_datetime(text, "time option")


@dataclass(frozen=True)
class TimeWindow:
    """Immutable [start, end] interval, start strictly before end."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start is None or self.end is None:
            raise ValidationError("Time window requires both start and end")
        start = coerce_datetime(self.start, "start")
        end = coerce_datetime(self.end, "end")
        if start >= end:
            raise ValidationError(
                f"Time window start ({start.isoformat()}) must be before "
                f"end ({end.isoformat()})"
            )
        # frozen dataclass: normalized values are written through object
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def last_days(cls, days: int, now: Optional[datetime] = None) -> "TimeWindow":
        if days <= 0:
            raise ValidationError(f"Window length must be positive, got {days}")
        end = ensure_aware(now) if now else datetime.now(timezone.utc)
        return cls(end - timedelta(days=days), end)

    @classmethod
    def last_week(cls, now: Optional[datetime] = None) -> "TimeWindow":
        return cls.last_days(7, now)

    @classmethod
    def last_month(cls, now: Optional[datetime] = None) -> "TimeWindow":
        return cls.last_days(30, now)

    @classmethod
    def last_quarter(cls, now: Optional[datetime] = None) -> "TimeWindow":
        return cls.last_days(90, now)

    @classmethod
    def last_year(cls, now: Optional[datetime] = None) -> "TimeWindow":
        return cls.last_days(365, now)

    @classmethod
    def all_time(
        cls, timestamps: Iterable[datetime], end: Optional[datetime] = None
    ) -> "TimeWindow":
        """
        Window from the first commit to ``end`` (default: now).

        Args:
            timestamps: Commit timestamps, in any order
            end: Upper bound; defaults to the current time

        Returns:
            TimeWindow starting at the earliest timestamp
        """
        stamps = [ensure_aware(ts) for ts in timestamps]
        if not stamps:
            raise ValidationError("Cannot build an all-time window without commits")
        upper = ensure_aware(end) if end else datetime.now(timezone.utc)
        first = min(stamps)
        if first >= upper:
            upper = first + timedelta(seconds=1)
        return cls(first, upper)

    @classmethod
    def from_options(
        cls,
        since: Optional[DateLike] = None,
        until: Optional[DateLike] = None,
        timestamps: Optional[Iterable[datetime]] = None,
        now: Optional[datetime] = None,
    ) -> "TimeWindow":
        """
        Build a window from pre-resolved since/until values.

        ``since="all"`` (or None with ``timestamps`` given) starts the
        window at the first commit; otherwise a missing ``since`` falls
        back to the default 30-day window.
        """
        reference = ensure_aware(now) if now else datetime.now(timezone.utc)
        end = parse_time_option(until, reference) or reference

        if is_all_time(since):
            return cls.all_time(timestamps or [], end)

        start = parse_time_option(since, reference)
        if start is None:
            if timestamps is not None:
                return cls.all_time(timestamps, end)
            start = end - timedelta(days=DEFAULT_WINDOW_DAYS)
        return cls(start, end)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def contains(self, timestamp: datetime) -> bool:
        return self.start <= ensure_aware(timestamp) <= self.end

    def __contains__(self, timestamp: datetime) -> bool:
        return self.contains(timestamp)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_days(self) -> float:
        return self.duration.total_seconds() / 86400

    def git_since_format(self) -> str:
        return self.start.strftime("%Y-%m-%d")

    def git_until_format(self) -> str:
        return self.end.strftime("%Y-%m-%d")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_days": round(self.duration_days, 2),
        }

    def __str__(self):
        return f"{self.git_since_format()} to {self.git_until_format()}"
