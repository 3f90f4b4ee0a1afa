"""
Production release tag detection.

PRODUCTION_PATTERNS is plain data; ProductionTagMatcher takes the table
at construction so alternate pattern sets can be swapped in.
"""

import re
from typing import Iterable, List, Optional, Pattern, Sequence

from repo_vitals.models import Tag

_PRE_RELEASE = r"[-_](alpha|beta|rc\d*)"

PRODUCTION_PATTERNS: Sequence[Pattern] = (
    # Semantic versions: v1.2.3, 1.2.3
    re.compile(r"^v?\d+\.\d+\.\d+$"),
    re.compile(r"^v?\d+\.\d+\.\d+" + _PRE_RELEASE, re.IGNORECASE),
    # Release branches cut as tags: release-v1.2
    re.compile(r"^release[-_]v?\d+\.\d+"),
    # Environment markers
    re.compile(r"^prod[-_]", re.IGNORECASE),
    re.compile(r"^production[-_]", re.IGNORECASE),
    re.compile(r"[-_]prod$", re.IGNORECASE),
    re.compile(r"[-_]release$", re.IGNORECASE),
    re.compile(r"^deploy[-_]", re.IGNORECASE),
    re.compile(r"[-_]deploy$", re.IGNORECASE),
    # Date versions: v2025.10.02, v2025.10.02.1
    re.compile(r"^v\d{4}\.\d{2}\.\d{2}(\.\d+)?$"),
    re.compile(r"^v\d{4}\.\d{2}\.\d{2}(\.\d+)?" + _PRE_RELEASE, re.IGNORECASE),
    # Compact dates: v20250630, v20250630.1
    re.compile(r"^v\d{8}(\.\d+)?$"),
    re.compile(r"^v\d{8}(\.\d+)?" + _PRE_RELEASE, re.IGNORECASE),
    re.compile(r"^v\d{8}[-_]\d+$"),
    # Build numbers: v31
    re.compile(r"^v\d+$"),
)


class ProductionTagMatcher:
    """Classifies tag names as production releases."""

    def __init__(self, patterns: Optional[Iterable[Pattern]] = None):
        table = PRODUCTION_PATTERNS if patterns is None else patterns
        self.patterns = tuple(
            re.compile(pattern) if isinstance(pattern, str) else pattern
            for pattern in table
        )

    def is_production(self, tag_name: Optional[str]) -> bool:
        """Match the name as given; surrounding whitespace is not trimmed"""
        if not tag_name:
            return False
        return any(pattern.search(tag_name) for pattern in self.patterns)

    def filter_tags(self, tags: Iterable[Tag]) -> List[Tag]:
        """Production tags in input order"""
        return [tag for tag in tags if self.is_production(tag.name)]

    def releases(self, tags: Iterable[Tag]) -> List[Tag]:
        """Timestamped production tags, ascending by timestamp"""
        dated = [tag for tag in self.filter_tags(tags) if tag.timestamp is not None]
        return sorted(dated, key=lambda tag: tag.timestamp)
