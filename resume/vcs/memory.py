"""In-memory VCS backend, used for fixtures and pre-fetched histories."""

from __future__ import annotations

from resume.errors import CommitNotFound, TargetNotFound
from resume.vcs.base import VCSBackend
from resume.vcs.models import CommitRecord


class InMemoryBackend(VCSBackend):
    """A commit graph held in plain dicts.

    Commits are shared across projects (same hash, same commit), which
    mirrors forks and mirrors of one repository.
    """

    def __init__(self) -> None:
        self._commits: dict[str, CommitRecord] = {}
        self._branches: dict[tuple[str, str], str] = {}

    def add_commit(self, record: CommitRecord) -> CommitRecord:
        self._commits[record.hash] = record
        return record

    def set_branch(self, project: str, branch: str, head: str) -> None:
        self._branches[(project, branch)] = head

    def resolve(self, project: str, branch: str) -> str:
        try:
            return self._branches[(project, branch)]
        except KeyError:
            raise TargetNotFound(project, branch) from None

    def parents(self, commit_hash: str) -> list[str]:
        return list(self.load(commit_hash).parent_hashes)

    def load(self, commit_hash: str) -> CommitRecord:
        try:
            return self._commits[commit_hash]
        except KeyError:
            raise CommitNotFound(commit_hash) from None

    def __len__(self) -> int:
        return len(self._commits)
