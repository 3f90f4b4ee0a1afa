"""
Metric value shapes and evaluation outcomes.

Every metric declares one value kind up front:

- Scalar: a single number
- Table: ordered list of rows
- KeyedTable: mapping of key -> attribute mapping, in rank order
- Distribution: mapping of bucket -> count
- Summary: named sections of a nested report

An evaluation returns either a MetricOutcome (value + metadata) or a
ComputationFailure (error class + message).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

SCALAR = "scalar"
TABLE = "table"
KEYED_TABLE = "keyed_table"
DISTRIBUTION = "distribution"
SUMMARY = "summary"


@dataclass(frozen=True)
class Scalar:
    number: float = 0
    kind = SCALAR

    def is_empty(self) -> bool:
        return not self.number

    def to_python(self) -> float:
        return self.number

    def describe(self) -> str:
        return str(self.number)


@dataclass(frozen=True)
class Table:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    kind = TABLE

    def __len__(self):
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def is_empty(self) -> bool:
        return not self.rows

    def to_python(self) -> List[Dict[str, Any]]:
        return [dict(row) for row in self.rows]

    def describe(self) -> str:
        return f"{len(self.rows)} rows"


@dataclass(frozen=True)
class KeyedTable:
    entries: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    kind = KEYED_TABLE

    def __len__(self):
        return len(self.entries)

    def __getitem__(self, key: str) -> Dict[str, Any]:
        return self.entries[key]

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def keys(self) -> List[str]:
        return list(self.entries)

    def is_empty(self) -> bool:
        return not self.entries

    def to_python(self) -> Dict[str, Dict[str, Any]]:
        return {key: dict(attrs) for key, attrs in self.entries.items()}

    def describe(self) -> str:
        return f"{len(self.entries)} entries"


@dataclass(frozen=True)
class Distribution:
    buckets: Dict[str, int] = field(default_factory=dict)
    kind = DISTRIBUTION

    def __len__(self):
        return len(self.buckets)

    def __getitem__(self, bucket: str) -> int:
        return self.buckets[bucket]

    @property
    def total(self) -> int:
        return sum(self.buckets.values())

    def is_empty(self) -> bool:
        return not self.buckets

    def to_python(self) -> Dict[str, int]:
        return dict(self.buckets)

    def describe(self) -> str:
        return f"{len(self.buckets)} buckets, {self.total} total"


@dataclass(frozen=True)
class Summary:
    """Nested report; ``headline`` names the section shown in one-line output"""

    sections: Dict[str, Any] = field(default_factory=dict)
    headline: str = ""
    kind = SUMMARY

    def __getitem__(self, section: str) -> Any:
        return self.sections[section]

    def __contains__(self, section: str) -> bool:
        return section in self.sections

    def is_empty(self) -> bool:
        return not self.sections

    def to_python(self) -> Dict[str, Any]:
        return dict(self.sections)

    def describe(self) -> str:
        if self.headline and self.headline in self.sections:
            return f"{self.headline}={self.sections[self.headline]}"
        return f"{len(self.sections)} sections"


MetricValue = Union[Scalar, Table, KeyedTable, Distribution, Summary]

VALUE_TYPES = {
    SCALAR: Scalar,
    TABLE: Table,
    KEYED_TABLE: KeyedTable,
    DISTRIBUTION: Distribution,
    SUMMARY: Summary,
}


def empty_value(kind: str) -> MetricValue:
    """Empty instance of a declared value kind"""
    return VALUE_TYPES[kind]()


@dataclass(frozen=True)
class MetricOutcome:
    value: MetricValue
    metadata: Dict[str, Any] = field(default_factory=dict)
    success = True


@dataclass(frozen=True)
class ComputationFailure:
    error_class: str
    message: str
    success = False

    @classmethod
    def from_exception(cls, error: BaseException) -> "ComputationFailure":
        return cls(error_class=type(error).__name__, message=str(error))


Evaluation = Union[MetricOutcome, ComputationFailure]
