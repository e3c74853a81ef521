"""Abstract VCS interface for resume."""

from abc import ABC, abstractmethod

from resume.vcs.models import CommitRecord


class VCSBackend(ABC):
    """Abstract base class for commit history backends.

    The changelog engine only ever talks to history through these three
    calls. Every one of them may fail; failures are reported with
    ``TargetNotFound`` or ``CommitNotFound`` from ``resume.errors``.
    """

    @abstractmethod
    def resolve(self, project: str, branch: str) -> str:
        """Resolve a branch of a project to the hash of its head commit.

        Raises:
            TargetNotFound: the project or branch is unknown.
        """
        ...

    @abstractmethod
    def parents(self, commit_hash: str) -> list[str]:
        """Return the parent hashes of a commit, first parent first.

        Raises:
            CommitNotFound: the hash is not present in the backend.
        """
        ...

    @abstractmethod
    def load(self, commit_hash: str) -> CommitRecord:
        """Load the full record for a commit.

        Raises:
            CommitNotFound: the hash is not present in the backend.
        """
        ...
