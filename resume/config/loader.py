"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from resume.errors import ConfigError

from .models import ResumeConfig


def load_config(cli_path: str | None = None) -> ResumeConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults."""
    if cli_path and not Path(cli_path).exists():
        raise ConfigError(f"Config file not found: {cli_path}")

    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./resume.yaml"),
        Path.home() / ".resume" / "config.yaml",
    ]

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path) as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                if not isinstance(raw, dict):
                    raise ConfigError(f"Invalid config in {path}: expected a mapping")
                raw = _expand_env_vars(raw)
                return ResumeConfig(**raw)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ConfigError(f"Invalid config in {path}: {e}") from e

    return ResumeConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `resume config init`
DEFAULT_CONFIG_TEMPLATE = """\
# resume.yaml

# Branch used for projects that list no branches
default_branch: "master"

projects:
  - name: "backend"
    origin: "git@github.com:acme/backend.git"
    branches: ["master", "release"]
  # - name: "frontend"
  #   origin: "../frontend"          # local checkouts are read in place
  #   branch: "main"

# Trailer token carrying team attribution (e.g. "Team: payments")
team_trailer: "team"
group_by_team: false

# Clone cache (defaults to $XDG_CACHE_HOME/resume)
# cache_dir: "${HOME}/.cache/resume"

# Recorded branch heads, used by `resume projects --since-last`
snapshot_file: ".resume/snapshots.yaml"

# Concurrent branch resolution
max_workers: 4

# Logging
log_level: "info"              # debug | info | warn | error
"""
