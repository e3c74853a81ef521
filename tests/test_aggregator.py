"""Tests for resume.changelog.aggregator — dedup, grouping, failures, cancellation."""

import asyncio
import itertools
import threading
from unittest.mock import MagicMock

import pytest

from resume.changelog.aggregator import Aggregator, capture_snapshot
from resume.changelog.models import CommitType, GroupKey, TraversalTarget
from resume.changelog.parser import CommitParser
from resume.errors import AllTargetsFailed, UnreadableCommit, UnresolvableTarget
from resume.snapshots import SnapshotBuilder
from resume.vcs.memory import InMemoryBackend
from tests.conftest import make_record

ALL_TARGETS = [("app", "main"), ("app", "feature"), ("fork", "main")]
ALL_HASHES = {"c1", "c2", "c3", "f1", "f2", "m1", "x1"}


def _hashes(entries):
    return [e.commit_hash for e in entries]


# ── Dedup & ordering ────────────────────────────────────────────────


class TestDedup:
    def test_overlapping_targets_one_entry_per_commit(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        hashes = _hashes(assembly.entries())
        assert len(assembly) == len(ALL_HASHES)
        assert set(hashes) == ALL_HASHES
        assert len(hashes) == len(set(hashes))

    @pytest.mark.parametrize("order", list(itertools.permutations(ALL_TARGETS)))
    def test_count_independent_of_target_order(self, history_backend, order):
        assembly = Aggregator(history_backend).aggregate(order)
        assert len(assembly) == len(ALL_HASHES)
        grouped = [e.commit_hash for _, entries in assembly.iter_groups() for e in entries]
        assert sorted(grouped) == sorted(ALL_HASHES)

    def test_same_target_twice(self, history_backend):
        assembly = Aggregator(history_backend).aggregate([("app", "main"), ("app", "main")])
        assert len(assembly) == 6

    def test_shared_commit_attributed_to_first_target(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(
            [("app", "feature"), ("app", "main")]
        )
        by_hash = {e.commit_hash: e for e in assembly.entries()}
        assert by_hash["f2"].source_branch == "feature"
        assert by_hash["c1"].source_branch == "feature"
        assert by_hash["m1"].source_branch == "main"


class TestOrdering:
    def test_discovery_order(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        assert _hashes(assembly.entries()) == ["m1", "c3", "c2", "c1", "f2", "f1", "x1"]

    def test_group_order_follows_type_order(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        keys = [key for key, _ in assembly.iter_groups()]
        assert keys == [
            GroupKey(CommitType.feat),
            GroupKey(CommitType.fix),
            GroupKey(CommitType.perf),
            GroupKey(CommitType.docs),
            GroupKey(CommitType.other),
        ]

    def test_entries_within_group_first_seen(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        assert _hashes(assembly.get(CommitType.feat)) == ["c1", "f1"]
        assert _hashes(assembly.get(CommitType.other)) == ["m1", "f2"]

    def test_provenance_tags(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        (perf,) = assembly.get(CommitType.perf)
        assert (perf.source_project, perf.source_branch) == ("fork", "main")

    def test_deterministic(self, history_backend):
        first = Aggregator(history_backend).aggregate(ALL_TARGETS)
        second = Aggregator(history_backend).aggregate(ALL_TARGETS)
        assert list(first.entries()) == list(second.entries())
        assert list(first.groups) == list(second.groups)


class TestBreakingGroup:
    def test_breaking_collected_separately(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        assert _hashes(assembly.breaking) == ["c2", "f1"]

    def test_breaking_entry_is_same_object_as_in_type_group(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS)
        (fix,) = assembly.get(CommitType.fix)
        assert assembly.breaking[0] is fix
        assert len(assembly) == len(ALL_HASHES)


class TestTeamGrouping:
    def test_group_by_team(self, history_backend):
        assembly = Aggregator(history_backend, group_by_team=True).aggregate(ALL_TARGETS)
        keys = [key for key, _ in assembly.iter_groups()]
        assert keys[:2] == [GroupKey(CommitType.feat, None), GroupKey(CommitType.feat, "infra")]
        assert _hashes(assembly.get(CommitType.perf, "infra")) == ["x1"]

    def test_custom_team_trailer(self, history_backend):
        history_backend.add_commit(make_record("s1", "feat: squads\n\nsquad: owls", "x1"))
        history_backend.set_branch("fork", "squads", "s1")
        aggregator = Aggregator(
            history_backend, CommitParser(team_trailer="squad"), group_by_team=True
        )
        assembly = aggregator.aggregate([("fork", "squads")])
        assert _hashes(assembly.get(CommitType.feat, "owls")) == ["s1"]


# ── Targets ─────────────────────────────────────────────────────────


class TestTargets:
    def test_prepared_start_hash_skips_resolution(self, history_backend):
        backend = MagicMock(wraps=history_backend)
        target = TraversalTarget(project="app", branch="detached", start_hash="c2")
        assembly = Aggregator(backend).aggregate([target])
        assert _hashes(assembly.entries()) == ["c2", "c1"]
        backend.resolve.assert_not_called()

    def test_three_tuple_target(self, history_backend):
        assembly = Aggregator(history_backend).aggregate([("app", "detached", "c3")])
        assert len(assembly) == 3
        assert assembly.targets_processed[0].start_hash == "c3"

    def test_empty_target_list(self, history_backend):
        assembly = Aggregator(history_backend).aggregate([])
        assert len(assembly) == 0
        assert assembly.warnings == []

    def test_max_commits_per_target(self, history_backend):
        assembly = Aggregator(history_backend, max_commits=1).aggregate(ALL_TARGETS)
        assert _hashes(assembly.entries()) == ["m1", "f2", "x1"]

    def test_rejects_zero_workers(self, history_backend):
        with pytest.raises(ValueError):
            Aggregator(history_backend, max_workers=0)


# ── Failure semantics ───────────────────────────────────────────────


class TestPartialFailure:
    def test_one_unresolvable_target(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(
            [("app", "release"), ("nope", "main"), ("fork", "main")]
        )
        assert set(_hashes(assembly.entries())) == ALL_HASHES
        assert len(assembly.warnings) == 1
        warning = assembly.warnings[0]
        assert isinstance(warning, UnresolvableTarget)
        assert (warning.project, warning.branch) == ("nope", "main")
        assert isinstance(warning.__cause__, LookupError)
        assert [t.label for t in assembly.targets_processed] == ["app@release", "fork@main"]

    def test_all_targets_fail(self, history_backend):
        with pytest.raises(AllTargetsFailed) as exc_info:
            Aggregator(history_backend).aggregate(
                [("nope", "main"), ("app", "gone"), ("fork", "gone")]
            )
        assert len(exc_info.value.warnings) == 3
        assert all(isinstance(w, UnresolvableTarget) for w in exc_info.value.warnings)

    def test_unreadable_commit_warning(self):
        backend = InMemoryBackend()
        backend.add_commit(make_record("a1", "feat: a", "lost"))
        backend.set_branch("app", "main", "a1")
        assembly = Aggregator(backend).aggregate([("app", "main")])
        assert _hashes(assembly.entries()) == ["a1"]
        (warning,) = assembly.warnings
        assert isinstance(warning, UnreadableCommit)
        assert warning.commit_hash == "lost"
        assert (warning.project, warning.branch) == ("app", "main")

    def test_unreadable_head_is_not_fatal(self):
        backend = InMemoryBackend()
        backend.set_branch("app", "main", "dangling")
        assembly = Aggregator(backend).aggregate([("app", "main")])
        assert len(assembly) == 0
        assert isinstance(assembly.warnings[0], UnreadableCommit)

    def test_warnings_are_logged(self, history_backend, caplog):
        with caplog.at_level("WARNING", logger="resume.changelog.aggregator"):
            Aggregator(history_backend).aggregate([("app", "main"), ("nope", "main")])
        assert "nope@main" in caplog.text


# ── Cancellation ────────────────────────────────────────────────────


class TestCancellation:
    def test_cancel_before_start(self, history_backend):
        cancel = threading.Event()
        cancel.set()
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS, cancel)
        assert assembly.cancelled is True
        assert len(assembly) == 0

    def test_cancel_before_start_never_raises_all_failed(self):
        cancel = threading.Event()
        cancel.set()
        assembly = Aggregator(InMemoryBackend()).aggregate([("nope", "main")], cancel)
        assert assembly.cancelled is True

    def test_cancel_mid_walk_returns_partial(self, history_backend):
        cancel = threading.Event()
        loads = []

        def _load(commit_hash):
            loads.append(commit_hash)
            if len(loads) == 2:
                cancel.set()
            return history_backend.load(commit_hash)

        backend = MagicMock(wraps=history_backend)
        backend.load.side_effect = _load
        assembly = Aggregator(backend).aggregate(ALL_TARGETS, cancel)
        assert assembly.cancelled is True
        assert _hashes(assembly.entries()) == ["m1", "c3"]
        assert [t.label for t in assembly.targets_processed] == ["app@main"]

    def test_uncancelled_run_flag(self, history_backend):
        assembly = Aggregator(history_backend).aggregate(ALL_TARGETS, threading.Event())
        assert assembly.cancelled is False


# ── Snapshots ───────────────────────────────────────────────────────


class TestSinceSnapshot:
    def test_only_new_commits(self, history_backend):
        builder = SnapshotBuilder()
        builder.add_repository_snapshot("app", {"main": "c3"})
        assembly = Aggregator(history_backend).aggregate(
            [("app", "main")], since=builder.build()
        )
        assert _hashes(assembly.entries()) == ["m1", "f2", "f1"]

    def test_origins_map_projects(self, history_backend):
        builder = SnapshotBuilder()
        builder.add_repository_snapshot("git@example.com:acme/app.git", {"main": "m1"})
        assembly = Aggregator(history_backend).aggregate(
            [("app", "main"), ("fork", "main")],
            since=builder.build(),
            origins={"app": "git@example.com:acme/app.git", "fork": "../fork"},
        )
        assert _hashes(assembly.entries()) == ["x1"]

    def test_snapshot_of_other_origin_ignored(self, history_backend):
        builder = SnapshotBuilder()
        builder.add_repository_snapshot("unrelated", {"main": "m1"})
        assembly = Aggregator(history_backend).aggregate(
            [("app", "main")], since=builder.build()
        )
        assert len(assembly) == 6

    def test_capture_snapshot(self, history_backend):
        snapshot = capture_snapshot(
            history_backend,
            [("app", "main"), ("app", "feature"), ("nope", "main")],
            {"app": "git@example.com:acme/app.git"},
        )
        assert snapshot.repositories == {
            "git@example.com:acme/app.git": {"feature": "f2", "main": "m1"}
        }
        assert len(snapshot.hash) == 12


# ── Async ───────────────────────────────────────────────────────────


class TestAggregateAsync:
    async def test_matches_sync(self, history_backend):
        targets = [("app", "release"), ("nope", "main"), ("app", "main"), ("fork", "main")]
        aggregator = Aggregator(history_backend, max_workers=2)
        sync = aggregator.aggregate(targets)
        concurrent = await aggregator.aggregate_async(targets)
        assert list(concurrent.entries()) == list(sync.entries())
        assert list(concurrent.groups) == list(sync.groups)
        assert concurrent.warnings == sync.warnings

    async def test_all_targets_fail(self, history_backend):
        with pytest.raises(AllTargetsFailed):
            await Aggregator(history_backend).aggregate_async([("nope", "main")])

    async def test_cancelled_before_resolution(self, history_backend):
        cancel = asyncio.Event()
        cancel.set()
        assembly = await Aggregator(history_backend).aggregate_async(ALL_TARGETS, cancel)
        assert assembly.cancelled is True
        assert len(assembly) == 0

    async def test_resolution_runs_in_threads(self, history_backend):
        thread_ids = set()

        def _resolve(project, branch):
            thread_ids.add(threading.get_ident())
            return history_backend.resolve(project, branch)

        backend = MagicMock(wraps=history_backend)
        backend.resolve.side_effect = _resolve
        await Aggregator(backend).aggregate_async(ALL_TARGETS)
        assert threading.get_ident() not in thread_ids
