"""History walking with a shared visited set."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator

from resume.errors import CommitNotFound
from resume.vcs.base import VCSBackend
from resume.vcs.models import CommitRecord

logger = logging.getLogger(__name__)

UnreadableCallback = Callable[[str, Exception], None]


class VisitedSet:
    """Commit hashes already emitted or walked past during one run.

    Grows monotonically. One instance is threaded through every walk of an
    aggregation run so that shared ancestry is only ever emitted once.
    """

    def __init__(self, hashes: Iterable[str] = ()) -> None:
        self._hashes: set[str] = set(hashes)

    def add(self, commit_hash: str) -> bool:
        """Record *commit_hash*; return False if it was already present."""
        if commit_hash in self._hashes:
            return False
        self._hashes.add(commit_hash)
        return True

    def seed(self, hashes: Iterable[str]) -> None:
        self._hashes.update(hashes)

    def __contains__(self, commit_hash: object) -> bool:
        return commit_hash in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)

    def __repr__(self) -> str:
        return f"VisitedSet({len(self._hashes)} hashes)"


def walk(
    backend: VCSBackend,
    start_hash: str,
    visited: VisitedSet,
    *,
    on_unreadable: UnreadableCallback | None = None,
    max_commits: int | None = None,
) -> Iterator[CommitRecord]:
    """Lazily yield commits reachable from *start_hash* not yet in *visited*.

    Depth-first, first parent before the remaining parents. A commit is
    marked visited before its parents are explored, so merges reached via
    several paths are emitted once. A hash the backend cannot load is marked
    visited, reported through *on_unreadable*, and not emitted; a commit
    whose parents cannot be listed is emitted and treated as a root.
    """
    stack = [start_hash]
    emitted = 0
    while stack:
        if max_commits is not None and emitted >= max_commits:
            return
        commit_hash = stack.pop()
        if not visited.add(commit_hash):
            continue
        try:
            record = backend.load(commit_hash)
        except CommitNotFound as e:
            logger.debug("pruning history at %s: %s", commit_hash, e)
            if on_unreadable is not None:
                on_unreadable(commit_hash, e)
            continue
        # Abbreviated hashes resolve to a full one that may already be known
        if record.hash != commit_hash and not visited.add(record.hash):
            continue

        yield record
        emitted += 1

        try:
            parents = backend.parents(record.hash)
        except CommitNotFound as e:
            logger.debug("no parents for %s: %s", record.hash, e)
            if on_unreadable is not None:
                on_unreadable(record.hash, e)
            continue
        # Reversed so the first parent is popped next
        stack.extend(parent for parent in reversed(parents) if parent not in visited)


def mark_reachable(
    backend: VCSBackend,
    start_hash: str,
    visited: VisitedSet,
) -> int:
    """Walk from *start_hash* only to grow *visited*; return commits marked.

    Unreadable commits are pruned silently here.
    """
    return sum(1 for _ in walk(backend, start_hash, visited))
