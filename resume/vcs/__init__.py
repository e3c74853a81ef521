"""VCS backends for resume."""

import logging
from pathlib import Path

from resume.config.models import ResumeConfig
from resume.vcs.base import VCSBackend
from resume.vcs.git import GitBackend, GitCommandError, MultiRepoBackend
from resume.vcs.memory import InMemoryBackend
from resume.vcs.models import CommitRecord, Trailers

logger = logging.getLogger(__name__)


def create_backend(config: ResumeConfig, *, fetch: bool = False) -> MultiRepoBackend:
    """Open one git repository per configured project.

    Local origins are used in place; remote origins go through the clone
    cache. With ``fetch=True`` every configured branch of a cached clone is
    refreshed from its origin first.

    A project whose repository cannot be opened is left out; its targets
    then surface as unresolvable during aggregation.
    """
    backend = MultiRepoBackend()
    for project in config.projects:
        try:
            repo = GitBackend.open(project.name, project.origin, config.cache_dir)
            if fetch and not Path(project.origin).exists():
                for branch in project.branch_names(config.default_branch):
                    repo.fetch_branch(branch)
        except (GitCommandError, ValueError) as e:
            logger.warning("Skipping project %s: %s", project.name, e)
            continue
        backend.add(project.name, repo)
    return backend


__all__ = [
    "CommitRecord",
    "GitBackend",
    "GitCommandError",
    "InMemoryBackend",
    "MultiRepoBackend",
    "Trailers",
    "VCSBackend",
    "create_backend",
]
