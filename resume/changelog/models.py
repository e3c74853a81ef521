"""Data models for classified commits and the grouped changelog."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from resume.errors import ChangelogWarning


class CommitType(str, Enum):
    """Conventional Commits types, in changelog section order."""

    feat = "feat"
    fix = "fix"
    perf = "perf"
    refactor = "refactor"
    docs = "docs"
    style = "style"
    test = "test"
    build = "build"
    ci = "ci"
    chore = "chore"
    revert = "revert"
    other = "other"

    @classmethod
    def from_token(cls, token: str) -> CommitType | None:
        """Map a subject prefix to a type; ``None`` when unrecognized."""
        try:
            return cls(token.strip().lower())
        except ValueError:
            return None

    @property
    def heading(self) -> str:
        return _TITLES[self]

    @property
    def order(self) -> int:
        return _ORDER[self]


_TITLES: dict[CommitType, str] = {
    CommitType.feat: "New Features",
    CommitType.fix: "Bug Fixes",
    CommitType.perf: "Performance",
    CommitType.refactor: "Refactoring",
    CommitType.docs: "Documentation",
    CommitType.style: "Style",
    CommitType.test: "Tests",
    CommitType.build: "Build",
    CommitType.ci: "Continuous Integration",
    CommitType.chore: "Chores",
    CommitType.revert: "Reverts",
    CommitType.other: "Other Changes",
}

_ORDER: dict[CommitType, int] = {t: i for i, t in enumerate(CommitType)}


class ChangelogEntry(BaseModel):
    """One classified commit. Never mutated; use ``with_source`` to re-tag."""

    model_config = ConfigDict(frozen=True)

    commit_hash: str = Field(min_length=1)
    type: CommitType = CommitType.other
    scope: str | None = None
    breaking: bool = False
    summary: str = ""
    body: str | None = None
    team: str | None = None
    source_project: str | None = None
    source_branch: str | None = None
    author: str = ""
    timestamp: datetime = Field(
        default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc)
    )

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7]

    def with_source(self, project: str | None, branch: str | None) -> ChangelogEntry:
        return self.model_copy(update={"source_project": project, "source_branch": branch})


class GroupKey(NamedTuple):
    type: CommitType
    team: str | None = None


class TraversalTarget(BaseModel):
    """A (project, branch) pair to walk, optionally with a known head."""

    model_config = ConfigDict(frozen=True)

    project: str
    branch: str
    start_hash: str | None = None

    @property
    def label(self) -> str:
        return f"{self.project}@{self.branch}"


@dataclass
class ChangelogAssembly:
    """Grouped, ordered result of one aggregation run.

    Every distinct commit contributes exactly one entry. A breaking entry is
    referenced from both its type group and ``breaking``.
    """

    groups: dict[GroupKey, list[ChangelogEntry]] = field(default_factory=dict)
    breaking: list[ChangelogEntry] = field(default_factory=list)
    warnings: list[ChangelogWarning] = field(default_factory=list)
    targets_processed: list[TraversalTarget] = field(default_factory=list)
    cancelled: bool = False
    ordered: list[ChangelogEntry] = field(default_factory=list, repr=False)

    def iter_groups(self) -> Iterator[tuple[GroupKey, list[ChangelogEntry]]]:
        yield from self.groups.items()

    def get(self, type: CommitType, team: str | None = None) -> list[ChangelogEntry]:
        return self.groups.get(GroupKey(type, team), [])

    def entries(self) -> Iterator[ChangelogEntry]:
        """Each distinct entry once, in discovery order."""
        yield from self.ordered

    def __len__(self) -> int:
        return len(self.ordered)

    def __bool__(self) -> bool:
        return True
