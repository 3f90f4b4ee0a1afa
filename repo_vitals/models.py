"""
Typed records produced by LogParser and consumed by the metric algorithms.

All records are frozen: they are created once per parse call and never
mutated afterwards.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

PRODUCTION_RELEASE = "production_release"
MERGE_DEPLOYMENT = "merge_deployment"


def identity_key(name: str, email: Optional[str]) -> str:
    """Grouping key for a contributor: ``name <email>`` or just the name"""
    if email:
        return f"{name} <{email}>"
    return name


@dataclass(frozen=True)
class FileChange:
    filename: str
    additions: int = 0
    deletions: int = 0

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class Commit:
    """
    One commit header, optionally with its numstat file changes.

    ``additions`` and ``deletions`` are the totals over ``file_changes``
    when the commit came from a stats blob, 0 otherwise.
    """

    hash: str
    author_name: str
    author_email: Optional[str]
    timestamp: datetime
    subject: str
    file_changes: Tuple[FileChange, ...] = ()
    additions: int = 0
    deletions: int = 0

    @property
    def author_key(self) -> str:
        return identity_key(self.author_name, self.author_email)

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions

    @property
    def filenames(self) -> Tuple[str, ...]:
        return tuple(change.filename for change in self.file_changes)

    @property
    def short_hash(self) -> str:
        return self.hash[:8]


@dataclass(frozen=True)
class Contributor:
    name: str
    email: Optional[str] = None
    commit_count: int = 0

    @property
    def key(self) -> str:
        return identity_key(self.name, self.email)


@dataclass(frozen=True)
class Tag:
    name: str
    timestamp: Optional[datetime] = None
    commit_hash: Optional[str] = None


@dataclass(frozen=True)
class Deployment:
    """A production tag or main-branch merge treated as a release event."""

    type: str
    identifier: str
    timestamp: datetime
    commit_hash: Optional[str] = None
    method: str = ""
    message: str = ""

    @property
    def is_tag(self) -> bool:
        return self.type == PRODUCTION_RELEASE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "identifier": self.identifier,
            "timestamp": self.timestamp.isoformat(),
            "commit_hash": self.commit_hash,
            "method": self.method,
            "message": self.message,
        }
