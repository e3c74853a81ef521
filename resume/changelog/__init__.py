"""Commit classification and changelog aggregation."""

from resume.changelog.aggregator import Aggregator, capture_snapshot
from resume.changelog.models import (
    ChangelogAssembly,
    ChangelogEntry,
    CommitType,
    GroupKey,
    TraversalTarget,
)
from resume.changelog.parser import CommitParser, parse_commit, split_message
from resume.changelog.walker import VisitedSet, walk

__all__ = [
    "Aggregator",
    "ChangelogAssembly",
    "ChangelogEntry",
    "CommitParser",
    "CommitType",
    "GroupKey",
    "TraversalTarget",
    "VisitedSet",
    "capture_snapshot",
    "parse_commit",
    "split_message",
    "walk",
]
