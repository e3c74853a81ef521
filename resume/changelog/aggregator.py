"""Walks every traversal target and assembles the changelog."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from resume.changelog.models import (
    ChangelogAssembly,
    ChangelogEntry,
    CommitType,
    GroupKey,
    TraversalTarget,
)
from resume.changelog.parser import CommitParser
from resume.changelog.walker import VisitedSet, mark_reachable, walk
from resume.errors import (
    AllTargetsFailed,
    ChangelogWarning,
    UnreadableCommit,
    UnresolvableTarget,
)
from resume.snapshots import Snapshot, SnapshotBuilder
from resume.vcs.base import VCSBackend

logger = logging.getLogger(__name__)

TargetLike = TraversalTarget | tuple[str, str] | tuple[str, str, str | None]


class CancelSignal(Protocol):
    """Anything with ``is_set()``: threading.Event or asyncio.Event."""

    def is_set(self) -> bool: ...


def _coerce_target(target: TargetLike) -> TraversalTarget:
    if isinstance(target, TraversalTarget):
        return target
    if len(target) == 2:
        project, branch = target
        return TraversalTarget(project=project, branch=branch)
    project, branch, start_hash = target
    return TraversalTarget(project=project, branch=branch, start_hash=start_hash)


def _cancelled(cancel: CancelSignal | None) -> bool:
    return cancel is not None and cancel.is_set()


@dataclass
class _Run:
    """Mutable state of one aggregation run; discarded when it ends."""

    visited: VisitedSet = field(default_factory=VisitedSet)
    entries: dict[str, ChangelogEntry] = field(default_factory=dict)
    warnings: list[ChangelogWarning] = field(default_factory=list)
    processed: list[TraversalTarget] = field(default_factory=list)
    cancelled: bool = False

    def warn(self, warning: ChangelogWarning) -> None:
        logger.warning("%s", warning)
        self.warnings.append(warning)


# Resolution outcome: a start hash, or the exception raised while resolving
Resolved = str | LookupError


class Aggregator:
    """Drives the history walker across targets and groups the result.

    Targets are processed strictly in input order with one VisitedSet shared
    by every walk, so commits reachable from several targets are attributed
    to the first target that reaches them.
    """

    def __init__(
        self,
        backend: VCSBackend,
        parser: CommitParser | None = None,
        *,
        group_by_team: bool = False,
        max_workers: int = 4,
        max_commits: int | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.backend = backend
        self.parser = parser or CommitParser()
        self.group_by_team = group_by_team
        self.max_workers = max_workers
        self.max_commits = max_commits

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def aggregate(
        self,
        targets: Iterable[TargetLike],
        cancel: CancelSignal | None = None,
        *,
        since: Snapshot | None = None,
        origins: Mapping[str, str] | None = None,
    ) -> ChangelogAssembly:
        """Walk *targets* in order and return the grouped changelog.

        Raises:
            AllTargetsFailed: no target could be resolved.
        """
        resolved_targets = [_coerce_target(t) for t in targets]
        return self._assemble(
            resolved_targets,
            lambda target, _index: self._try_resolve(target),
            cancel,
            since,
            origins,
        )

    async def aggregate_async(
        self,
        targets: Iterable[TargetLike],
        cancel: CancelSignal | None = None,
        *,
        since: Snapshot | None = None,
        origins: Mapping[str, str] | None = None,
    ) -> ChangelogAssembly:
        """Like ``aggregate`` but resolves branch heads concurrently.

        Only resolution runs in parallel (bounded by ``max_workers``); walking
        and grouping run afterwards in target order, so the result equals
        the sequential one.
        """
        resolved_targets = [_coerce_target(t) for t in targets]
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _resolve_one(target: TraversalTarget) -> Resolved | None:
            async with semaphore:
                if _cancelled(cancel):
                    return None
                return await asyncio.to_thread(self._try_resolve, target)

        outcomes = await asyncio.gather(*(_resolve_one(t) for t in resolved_targets))

        def _lookup(target: TraversalTarget, index: int) -> Resolved | None:
            return outcomes[index]

        return await asyncio.to_thread(
            self._assemble, resolved_targets, _lookup, cancel, since, origins
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _try_resolve(self, target: TraversalTarget) -> Resolved:
        if target.start_hash:
            return target.start_hash
        try:
            return self.backend.resolve(target.project, target.branch)
        except LookupError as e:
            return e

    def _assemble(
        self,
        targets: Sequence[TraversalTarget],
        resolve: Callable[[TraversalTarget, int], Resolved | None],
        cancel: CancelSignal | None,
        since: Snapshot | None,
        origins: Mapping[str, str] | None,
    ) -> ChangelogAssembly:
        run = _Run()
        if since is not None:
            self._seed_from_snapshot(run, targets, since, origins or {})

        for index, target in enumerate(targets):
            if _cancelled(cancel):
                run.cancelled = True
                logger.info("cancelled before %s", target.label)
                break
            outcome = resolve(target, index)
            if outcome is None:
                # Resolution skipped by a cancellation
                run.cancelled = True
                break
            if isinstance(outcome, LookupError):
                run.warn(UnresolvableTarget(target.project, target.branch, cause=outcome))
                continue
            self._collect(run, target, outcome, cancel)
            if run.cancelled:
                break

        if targets and not run.processed and not run.cancelled:
            raise AllTargetsFailed(run.warnings)

        return self._group(run)

    def _seed_from_snapshot(
        self,
        run: _Run,
        targets: Sequence[TraversalTarget],
        since: Snapshot,
        origins: Mapping[str, str],
    ) -> None:
        wanted = list(dict.fromkeys(origins.get(t.project, t.project) for t in targets))
        for head in since.heads(wanted):
            marked = mark_reachable(self.backend, head, run.visited)
            logger.debug("baseline head %s hides %d commit(s)", head[:7], marked)

    def _collect(
        self,
        run: _Run,
        target: TraversalTarget,
        start_hash: str,
        cancel: CancelSignal | None,
    ) -> None:
        logger.info("walking %s from %s", target.label, start_hash[:7])
        run.processed.append(target.model_copy(update={"start_hash": start_hash}))

        def _on_unreadable(commit_hash: str, error: Exception) -> None:
            run.warn(
                UnreadableCommit(
                    commit_hash,
                    project=target.project,
                    branch=target.branch,
                    cause=error,
                )
            )

        count = 0
        for record in walk(
            self.backend,
            start_hash,
            run.visited,
            on_unreadable=_on_unreadable,
            max_commits=self.max_commits,
        ):
            if record.hash not in run.entries:
                entry = self.parser.parse(record).with_source(target.project, target.branch)
                run.entries[record.hash] = entry
                count += 1
            if _cancelled(cancel):
                run.cancelled = True
                logger.info("cancelled while walking %s", target.label)
                break
        logger.info("%s contributed %d new commit(s)", target.label, count)

    def _group(self, run: _Run) -> ChangelogAssembly:
        by_type: dict[CommitType, dict[str | None, list[ChangelogEntry]]] = {}
        breaking: list[ChangelogEntry] = []
        for entry in run.entries.values():
            team = entry.team if self.group_by_team else None
            by_type.setdefault(entry.type, {}).setdefault(team, []).append(entry)
            if entry.breaking:
                breaking.append(entry)

        groups: dict[GroupKey, list[ChangelogEntry]] = {}
        for ctype in sorted(by_type, key=lambda t: t.order):
            for team, entries in by_type[ctype].items():
                groups[GroupKey(ctype, team)] = entries

        return ChangelogAssembly(
            groups=groups,
            breaking=breaking,
            warnings=list(run.warnings),
            targets_processed=list(run.processed),
            cancelled=run.cancelled,
            ordered=list(run.entries.values()),
        )


def capture_snapshot(
    backend: VCSBackend,
    targets: Iterable[TargetLike],
    origins: Mapping[str, str] | None = None,
) -> Snapshot:
    """Record the current head of every resolvable target.

    Targets that cannot be resolved are left out of the snapshot.
    """
    origins = origins or {}
    builder = SnapshotBuilder()
    for target in (_coerce_target(t) for t in targets):
        try:
            head = target.start_hash or backend.resolve(target.project, target.branch)
        except LookupError as e:
            logger.warning("not recording %s in snapshot: %s", target.label, e)
            continue
        builder.add_head(origins.get(target.project, target.project), target.branch, head)
    return builder.build()
