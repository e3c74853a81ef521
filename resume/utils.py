"""Filesystem helpers: cache folder resolution."""

from __future__ import annotations

import hashlib
import os
import re
import sys
from pathlib import Path


def get_cache_folder() -> Path:
    """Return the per-user cache folder for cloned repositories.

    macOS uses ``~/Library/Caches/resume``; elsewhere ``$XDG_CACHE_HOME/resume``
    or ``~/.cache/resume``.
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "resume"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "resume"
    return Path.home() / ".cache" / "resume"


def get_repo_cache_folder(origin: str, base_dir: str | Path | None = None) -> Path:
    """Return the cache folder for a single origin URL.

    The folder name keeps a readable slug of the origin plus a short digest,
    so two origins that slugify the same still get distinct folders.
    """
    base = Path(base_dir) if base_dir else get_cache_folder()
    tail = origin.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    slug = re.sub(r"[^\w\-\.]", "_", tail.removesuffix(".git")).strip(".") or "_repo"
    digest = hashlib.sha256(origin.encode()).hexdigest()[:12]
    return base / f"{slug}-{digest}"
