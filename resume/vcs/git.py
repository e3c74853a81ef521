"""Git backend that shells out to the ``git`` CLI."""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime
from pathlib import Path

from resume.errors import CommitNotFound, TargetNotFound
from resume.utils import get_repo_cache_folder
from resume.vcs.base import VCSBackend
from resume.vcs.models import CommitRecord, Trailers

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 60
CLONE_TIMEOUT = 600

# hash, parents, author, ISO date, trailers, raw message; NUL separated
_SHOW_FORMAT = "%H%x00%P%x00%an <%ae>%x00%aI%x00%(trailers:only,unfold)%x00%B"


class GitCommandError(RuntimeError):
    """A git invocation failed, timed out, or git is not installed."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str) -> None:
        self.args_ = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"git {' '.join(args)} failed ({returncode}): {stderr.strip()[:200]}"
        )


def _run_git(args: list[str], cwd: Path | None = None, timeout: int = GIT_TIMEOUT) -> str:
    """Run git and return stdout, raising GitCommandError on any failure."""
    cmd = ["git", *args]
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise GitCommandError(args, None, "git executable not found") from e
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(args, None, f"timed out after {timeout}s") from e

    if result.returncode != 0:
        raise GitCommandError(args, result.returncode, result.stderr)
    return result.stdout


def parse_trailer_lines(raw: str) -> Trailers:
    """Parse ``git log --format=%(trailers)`` output into Trailers."""
    pairs: list[tuple[str, str]] = []
    for line in raw.splitlines():
        token, sep, value = line.partition(":")
        if not sep or not token.strip():
            continue
        pairs.append((token.strip(), value.strip()))
    return Trailers.from_pairs(pairs)


class GitBackend(VCSBackend):
    """One git repository on disk (work tree or bare clone).

    The project argument of ``resolve`` is informational only; route several
    repositories through ``MultiRepoBackend``.
    """

    def __init__(self, path: str | Path, name: str | None = None) -> None:
        self.path = Path(path)
        self.name = name or self.path.resolve().name
        self._records: dict[str, CommitRecord] = {}

    # -- construction ------------------------------------------------------

    @classmethod
    def from_local(cls, path: str | Path, name: str | None = None) -> GitBackend:
        """Open an existing repository checkout."""
        resolved = Path(path).resolve()
        if not resolved.exists():
            raise ValueError(f"Repository path does not exist: {resolved}")
        return cls(resolved, name=name)

    @classmethod
    def from_cache(
        cls, name: str, origin: str, cache_dir: str | Path | None = None
    ) -> GitBackend:
        """Open a bare clone previously created by ``from_remote``."""
        path = get_repo_cache_folder(origin, cache_dir)
        if not path.exists():
            raise ValueError(f"No cached clone for {origin} at {path}")
        return cls(path, name=name)

    @classmethod
    def from_remote(
        cls, name: str, origin: str, cache_dir: str | Path | None = None
    ) -> GitBackend:
        """Bare-clone *origin* into the cache folder."""
        path = get_repo_cache_folder(origin, cache_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("cloning %s into %s", origin, path)
        _run_git(["clone", "--bare", "--quiet", origin, str(path)], timeout=CLONE_TIMEOUT)
        return cls(path, name=name)

    @classmethod
    def open(
        cls, name: str, origin: str, cache_dir: str | Path | None = None
    ) -> GitBackend:
        """Local path if *origin* is one, else the cached clone, else a fresh clone."""
        if Path(origin).exists():
            return cls.from_local(origin, name=name)
        try:
            return cls.from_cache(name, origin, cache_dir)
        except ValueError:
            return cls.from_remote(name, origin, cache_dir)

    def fetch_branch(self, branch: str) -> None:
        """Update ``refs/heads/<branch>`` from origin."""
        logger.info("fetching %s@%s", self.name, branch)
        _run_git(
            ["fetch", "--quiet", "origin", f"+refs/heads/{branch}:refs/heads/{branch}"],
            cwd=self.path,
            timeout=CLONE_TIMEOUT,
        )

    # -- VCSBackend --------------------------------------------------------

    def resolve(self, project: str, branch: str) -> str:
        for ref in (f"refs/heads/{branch}", f"refs/remotes/origin/{branch}", branch):
            try:
                out = _run_git(
                    ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
                    cwd=self.path,
                )
            except GitCommandError:
                continue
            head = out.strip()
            if head:
                return head
        raise TargetNotFound(project, branch)

    def parents(self, commit_hash: str) -> list[str]:
        return list(self.load(commit_hash).parent_hashes)

    def load(self, commit_hash: str) -> CommitRecord:
        cached = self._records.get(commit_hash)
        if cached is not None:
            return cached
        try:
            out = _run_git(
                ["show", "-s", f"--format={_SHOW_FORMAT}", commit_hash, "--"],
                cwd=self.path,
            )
        except GitCommandError as e:
            raise CommitNotFound(commit_hash, str(e)) from e

        record = self._parse_show(out)
        self._records[record.hash] = record
        if record.hash != commit_hash:
            self._records[commit_hash] = record
        return record

    @staticmethod
    def _parse_show(out: str) -> CommitRecord:
        parts = out.split("\x00", 5)
        if len(parts) != 6:
            raise CommitNotFound(out[:40], "unexpected git show output")
        full_hash, parents, author, date, trailers, message = parts
        return CommitRecord(
            hash=full_hash,
            parent_hashes=tuple(parents.split()),
            author=author,
            timestamp=datetime.fromisoformat(date.strip()),
            trailers=parse_trailer_lines(trailers),
            message=message.rstrip("\n"),
        )


class MultiRepoBackend(VCSBackend):
    """Routes lookups to one backend per project.

    Commit hashes are global: a hash loaded from one project's repository is
    the same commit in every fork that contains it.
    """

    def __init__(self, backends: dict[str, VCSBackend] | None = None) -> None:
        self._backends: dict[str, VCSBackend] = dict(backends or {})
        self._owner: dict[str, VCSBackend] = {}

    def add(self, project: str, backend: VCSBackend) -> None:
        self._backends[project] = backend

    def resolve(self, project: str, branch: str) -> str:
        backend = self._backends.get(project)
        if backend is None:
            raise TargetNotFound(project, branch, "unknown project")
        head = backend.resolve(project, branch)
        self._owner.setdefault(head, backend)
        return head

    def parents(self, commit_hash: str) -> list[str]:
        return list(self.load(commit_hash).parent_hashes)

    def load(self, commit_hash: str) -> CommitRecord:
        owner = self._owner.get(commit_hash)
        candidates = [owner] if owner is not None else []
        candidates += [b for b in self._backends.values() if b is not owner]
        for backend in candidates:
            try:
                record = backend.load(commit_hash)
            except CommitNotFound:
                continue
            for parent in record.parent_hashes:
                self._owner.setdefault(parent, backend)
            return record
        raise CommitNotFound(commit_hash)
