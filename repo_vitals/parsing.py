"""
Parsing of raw git command output into typed records.

Every parse operation tolerates blank and malformed lines, which are
skipped. A timestamp that cannot be parsed aborts the whole call: the
operation logs a warning and returns an empty container, never a
partial result.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from dateutil import parser as date_parser

from repo_vitals.errors import ParseError
from repo_vitals.models import Commit, Contributor, FileChange, Tag
from repo_vitals.time_window import ensure_aware

logger = logging.getLogger(__name__)

# Formats the command layer is expected to request
COMMIT_FORMAT = "%H|%an|%ae|%ad|%s"
TAG_FORMAT = "%(refname:short)|%(creatordate)"

COMMIT_FIELD_COUNT = 5
NUMSTAT_RE = re.compile(r"^(\d+|-)\s+(\d+|-)\s+(.+)$")
COMMIT_HASH_RE = re.compile(r"^[a-f0-9]{40}$")
SHORTLOG_RE = re.compile(r"^\s*(\d+)\s+(.+)$")
NAME_EMAIL_RE = re.compile(r"^(.+)\s+<(.+)>$")


def parse_timestamp(value: str) -> datetime:
    """
    Parse a git date string such as ``Thu Oct 2 10:00:00 2025 +0200``.

    Raises:
        ParseError: if the value is empty or not a recognizable date
    """
    text = (value or "").strip()
    if not text:
        raise ParseError("Empty date field")
    try:
        return ensure_aware(date_parser.parse(text))
    except (ValueError, OverflowError) as e:
        raise ParseError(f"Unparseable date {text!r}: {e}") from e


@dataclass
class _CommitBuilder:
    """Mutable header record that numstat lines accumulate onto."""

    hash: str
    author_name: str
    author_email: Optional[str]
    timestamp: datetime
    subject: str
    file_changes: List[FileChange] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0

    def add_change(self, change: FileChange):
        self.file_changes.append(change)
        self.additions += change.additions
        self.deletions += change.deletions

    def build(self) -> Commit:
        return Commit(
            hash=self.hash,
            author_name=self.author_name,
            author_email=self.author_email,
            timestamp=self.timestamp,
            subject=self.subject,
            file_changes=tuple(self.file_changes),
            additions=self.additions,
            deletions=self.deletions,
        )


class LogParser:
    """Converts the text output of git queries into records."""

    # ========================================================================
    # Line-level helpers
    # ========================================================================

    @staticmethod
    def _split_header(line: str) -> Optional[List[str]]:
        """Split ``hash|author|email|date|subject``; None if too few fields"""
        parts = line.split("|", COMMIT_FIELD_COUNT - 1)
        if len(parts) < COMMIT_FIELD_COUNT:
            logger.debug("Skipping malformed commit line: %r", line)
            return None
        return parts

    def _parse_header(self, line: str) -> Optional[_CommitBuilder]:
        parts = self._split_header(line)
        if parts is None:
            return None
        commit_hash, author_name, author_email, date_text, subject = parts
        return _CommitBuilder(
            hash=commit_hash.strip(),
            author_name=author_name.strip(),
            author_email=author_email.strip() or None,
            timestamp=parse_timestamp(date_text),
            subject=subject.strip(),
        )

    @staticmethod
    def _parse_numstat_line(line: str) -> Optional[FileChange]:
        """Parse ``<added>\\t<deleted>\\t<filename>``; binary ``-`` counts as 0"""
        match = NUMSTAT_RE.match(line)
        if not match:
            return None
        added, deleted, filename = match.groups()
        return FileChange(
            filename=filename.strip(),
            additions=int(added) if added != "-" else 0,
            deletions=int(deleted) if deleted != "-" else 0,
        )

    @staticmethod
    def _is_header_line(line: str) -> bool:
        return line.count("|") >= COMMIT_FIELD_COUNT - 1

    # ========================================================================
    # Parse operations
    # ========================================================================

    def parse_commits(self, text: Optional[str]) -> List[Commit]:
        """
        Parse ``git log --format=%H|%an|%ae|%ad|%s`` output.

        Returns:
            Commits in source order, or [] if any date is unparseable
        """
        if not text:
            return []
        try:
            commits = []
            for raw_line in text.splitlines():
                line = raw_line.strip()
                if not line:
                    continue
                builder = self._parse_header(line)
                if builder is not None:
                    commits.append(builder.build())
            return commits
        except Exception as e:
            logger.warning("Failed to parse commit list: %s", e)
            return []

    def parse_commit_stats(self, text: Optional[str]) -> List[Commit]:
        """
        Parse ``git log --numstat`` output with the commit header format.

        Numstat lines attach to the most recent header and accumulate its
        addition/deletion totals. Numstat lines before any header are
        ignored.
        """
        if not text:
            return []
        try:
            builders = []
            current = None
            for raw_line in text.splitlines():
                line = raw_line.strip()
                if not line:
                    continue

                if self._is_header_line(line):
                    current = self._parse_header(line)
                    if current is not None:
                        builders.append(current)
                    continue

                change = self._parse_numstat_line(line)
                if change is not None and current is not None:
                    current.add_change(change)
            return [builder.build() for builder in builders]
        except Exception as e:
            logger.warning("Failed to parse commit stats: %s", e)
            return []

    def parse_file_changes(self, text: Optional[str]) -> Dict[str, List[str]]:
        """
        Parse ``git log --name-only --format=%H`` output.

        Returns:
            Mapping of filename -> hashes of the commits that touched it
        """
        if not text:
            return {}
        try:
            file_commits: Dict[str, List[str]] = {}
            current_hash = None
            for raw_line in text.splitlines():
                line = raw_line.strip()
                if not line:
                    continue
                if COMMIT_HASH_RE.match(line):
                    current_hash = line
                elif current_hash is not None:
                    file_commits.setdefault(line, []).append(current_hash)
            return file_commits
        except Exception as e:
            logger.warning("Failed to parse file changes: %s", e)
            return {}

    def parse_contributors(self, text: Optional[str]) -> List[Contributor]:
        """Parse ``git shortlog -sne`` output"""
        if not text:
            return []
        try:
            contributors = []
            for raw_line in text.splitlines():
                match = SHORTLOG_RE.match(raw_line)
                if not match:
                    continue
                count, identity = match.groups()
                identity = identity.strip()
                name_email = NAME_EMAIL_RE.match(identity)
                if name_email:
                    name, email = name_email.group(1).strip(), name_email.group(2).strip()
                else:
                    name, email = identity, None
                contributors.append(
                    Contributor(name=name, email=email, commit_count=int(count))
                )
            return contributors
        except Exception as e:
            logger.warning("Failed to parse contributors: %s", e)
            return []

    def parse_tags(self, text: Optional[str]) -> List[Tag]:
        """
        Parse tag listings: ``name``, ``name|date`` or ``name|date|hash``.

        A bare tag name yields a Tag without timestamp.
        """
        if not text:
            return []
        try:
            tags = []
            for raw_line in text.splitlines():
                line = raw_line.strip()
                if not line:
                    continue
                parts = [part.strip() for part in line.split("|", 2)]
                name = parts[0]
                if not name:
                    continue
                timestamp = None
                if len(parts) > 1 and parts[1]:
                    timestamp = parse_timestamp(parts[1])
                commit_hash = parts[2] if len(parts) > 2 and parts[2] else None
                tags.append(Tag(name=name, timestamp=timestamp, commit_hash=commit_hash))
            return tags
        except Exception as e:
            logger.warning("Failed to parse tags: %s", e)
            return []

    def parse_branches(self, text: Optional[str]) -> List[str]:
        """Parse ``git branch -a`` output into unique branch names"""
        if not text:
            return []
        try:
            branches = []
            seen = set()
            for raw_line in text.splitlines():
                name = raw_line.strip().lstrip("*").strip()
                if not name or "->" in name:
                    continue
                if name.startswith("remotes/"):
                    name = name.split("/", 2)[-1]
                if name not in seen:
                    seen.add(name)
                    branches.append(name)
            return branches
        except Exception as e:
            logger.warning("Failed to parse branches: %s", e)
            return []
