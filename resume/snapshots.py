"""Recorded branch heads, used as a "since" baseline between changelog runs."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from resume.errors import ResumeError

logger = logging.getLogger(__name__)

# branch name -> head commit hash
RepositorySnapshot = dict[str, str]


class SnapshotError(ResumeError):
    """A snapshot file exists but cannot be read."""


def compute_snapshot_hash(repositories: Mapping[str, Mapping[str, str]]) -> str:
    """SHA-256 over sorted origins, branches and heads, truncated to 12 hex chars."""
    hasher = hashlib.sha256()
    for origin in sorted(repositories):
        hasher.update(origin.encode() + b"\0")
        branches = repositories[origin]
        for branch in sorted(branches):
            hasher.update(branch.encode() + b"\0")
            hasher.update(branches[branch].encode() + b"\0")
    return hasher.hexdigest()[:12]


class Snapshot(BaseModel):
    """Heads of every tracked branch, per repository origin."""

    hash: str
    repositories: dict[str, RepositorySnapshot] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, origin: str) -> RepositorySnapshot | None:
        return self.repositories.get(origin)

    def heads(self, origins: Iterable[str] | None = None) -> list[str]:
        """Recorded head hashes, optionally limited to *origins*, in sorted order."""
        wanted = set(origins) if origins is not None else None
        return [
            self.repositories[origin][branch]
            for origin in sorted(self.repositories)
            if wanted is None or origin in wanted
            for branch in sorted(self.repositories[origin])
        ]


class SnapshotBuilder:
    def __init__(self) -> None:
        self.repositories: dict[str, RepositorySnapshot] = {}

    def add_repository_snapshot(self, origin: str, snapshot: Mapping[str, str]) -> None:
        self.repositories[origin] = dict(snapshot)

    def add_head(self, origin: str, branch: str, head: str) -> None:
        self.repositories.setdefault(origin, {})[branch] = head

    def build(self) -> Snapshot:
        return Snapshot(
            hash=compute_snapshot_hash(self.repositories),
            repositories={k: dict(v) for k, v in sorted(self.repositories.items())},
        )


class SnapshotHistory(BaseModel):
    """Append-only list of snapshots, oldest first."""

    snapshots: list[Snapshot] = Field(default_factory=list)

    @classmethod
    def load(cls, path: str | Path) -> SnapshotHistory:
        """Read history from YAML. A missing file is an empty history."""
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise SnapshotError(f"Invalid YAML in {path}: {e}") from e
        if raw is None:
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise SnapshotError(f"Invalid snapshot history in {path}: {e}") from e

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(self.model_dump(mode="json"), default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )
        logger.debug("saved %d snapshot(s) to %s", len(self.snapshots), path)
        return path

    def push(self, snapshot: Snapshot) -> bool:
        """Append *snapshot* unless it matches the latest one. Returns True if appended."""
        last = self.last()
        if last is not None and last.hash == snapshot.hash:
            return False
        self.snapshots.append(snapshot)
        return True

    def last(self) -> Snapshot | None:
        return self.snapshots[-1] if self.snapshots else None

    def get_by_hash(self, snapshot_hash: str) -> Snapshot | None:
        for snapshot in reversed(self.snapshots):
            if snapshot.hash == snapshot_hash:
                return snapshot
        return None

    def get_by_index(self, index: int) -> Snapshot | None:
        """Snapshot *index* steps back from the latest (0 is the latest)."""
        if index < 0 or index >= len(self.snapshots):
            return None
        return self.snapshots[len(self.snapshots) - index - 1]

    def __len__(self) -> int:
        return len(self.snapshots)
