"""Exception hierarchy for resume.

Warnings are exceptions too: they are collected on the assembly rather
than raised, so callers can re-raise or inspect them uniformly.
"""

from __future__ import annotations


class ResumeError(Exception):
    """Base class for every error raised by resume."""


class ConfigError(ResumeError, ValueError):
    """Invalid YAML or a config file that fails validation."""


class TargetNotFound(LookupError):
    """A (project, branch) pair does not point at any commit."""

    def __init__(self, project: str, branch: str, reason: str | None = None) -> None:
        self.project = project
        self.branch = branch
        msg = f"Branch {branch!r} doesn't exist in project {project!r}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class CommitNotFound(LookupError):
    """A commit hash could not be loaded from the backend."""

    def __init__(self, commit_hash: str, reason: str | None = None) -> None:
        self.commit_hash = commit_hash
        msg = f"Commit {commit_hash} not found"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class ChangelogWarning(ResumeError):
    """Non-fatal condition recorded during aggregation."""

    def __init__(
        self,
        message: str,
        *,
        project: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.project = project
        self.branch = branch
        self.commit_hash = commit_hash
        super().__init__(message)
        self.__cause__ = cause

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChangelogWarning):
            return NotImplemented
        return (
            type(self) is type(other)
            and str(self) == str(other)
            and (self.project, self.branch, self.commit_hash)
            == (other.project, other.branch, other.commit_hash)
        )

    def __hash__(self) -> int:
        return hash((type(self), str(self), self.project, self.branch, self.commit_hash))


class UnresolvableTarget(ChangelogWarning):
    """A configured target could not be resolved to a starting commit."""

    def __init__(self, project: str, branch: str, cause: Exception | None = None) -> None:
        super().__init__(
            f"Unable to resolve {project}@{branch}: {cause}" if cause
            else f"Unable to resolve {project}@{branch}",
            project=project,
            branch=branch,
            cause=cause,
        )


class UnreadableCommit(ChangelogWarning):
    """A referenced commit could not be loaded; its history was pruned."""

    def __init__(
        self,
        commit_hash: str,
        *,
        project: str | None = None,
        branch: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Unable to read commit {commit_hash}, history pruned",
            project=project,
            branch=branch,
            commit_hash=commit_hash,
            cause=cause,
        )


class AllTargetsFailed(ResumeError):
    """Every configured target failed to resolve."""

    def __init__(self, warnings: list[ChangelogWarning]) -> None:
        self.warnings = list(warnings)
        super().__init__(
            f"All {len(self.warnings)} target(s) failed to resolve"
        )
