"""Shared test fixtures for resume."""

from datetime import datetime, timedelta, timezone

import pytest

from resume.config.models import ResumeConfig
from resume.vcs.memory import InMemoryBackend
from resume.vcs.models import CommitRecord, Trailers

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_record(
    commit_hash: str,
    message: str,
    *parents: str,
    trailers: list[tuple[str, str]] | None = None,
    minutes: int = 0,
    author: str = "Ada <ada@example.com>",
) -> CommitRecord:
    return CommitRecord(
        hash=commit_hash,
        parent_hashes=tuple(parents),
        message=message,
        trailers=Trailers.from_pairs(trailers or []),
        author=author,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def history_backend():
    """Two projects sharing history.

    app:
        c1 ── c2 ── c3 ─────── m1   (main)
                \\            /
                 f1 ── f2 ──      (feature)
        release -> c3
    fork:
        main -> x1, whose parent is app's m1
    """
    backend = InMemoryBackend()
    backend.add_commit(make_record("c1", "feat(core): initial engine", minutes=1))
    backend.add_commit(
        make_record("c2", "fix: typo\n\nBREAKING CHANGE: removes endpoint", "c1", minutes=2)
    )
    backend.add_commit(make_record("c3", "docs: describe config", "c2", minutes=3))
    backend.add_commit(
        make_record(
            "f1",
            "feat(api)!: change signature\n\nteam: backend\nteam: infra",
            "c2",
            minutes=4,
        )
    )
    backend.add_commit(make_record("f2", "update stuff", "f1", minutes=5))
    backend.add_commit(
        make_record("m1", "Merge branch 'feature'", "c3", "f2", minutes=6)
    )
    backend.add_commit(make_record("x1", "perf: faster walk\n\nTeam: infra", "m1", minutes=7))

    backend.set_branch("app", "main", "m1")
    backend.set_branch("app", "feature", "f2")
    backend.set_branch("app", "release", "c3")
    backend.set_branch("fork", "main", "x1")
    return backend


@pytest.fixture
def sample_config():
    return ResumeConfig()
