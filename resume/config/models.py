from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ProjectConfig(BaseModel):
    name: str = Field(min_length=1)
    origin: str = Field(min_length=1, description="Remote URL or local repository path")
    branches: list[str] = []
    # Single-branch form accepted for older config files
    branch: str | None = None

    @model_validator(mode="after")
    def merge_legacy_branch(self) -> "ProjectConfig":
        if self.branch and self.branch not in self.branches:
            self.branches = [self.branch, *self.branches]
        return self

    def branch_names(self, default_branch: str) -> list[str]:
        return self.branches or [default_branch]


class ResumeConfig(BaseModel):
    default_branch: str = "master"
    projects: list[ProjectConfig] = []
    team_trailer: str = "team"
    group_by_team: bool = False
    cache_dir: str | None = None
    snapshot_file: str = ".resume/snapshots.yaml"
    max_workers: int = Field(default=4, ge=1)
    log_level: Literal["debug", "info", "warn", "error"] = "info"

    @field_validator("team_trailer")
    @classmethod
    def validate_team_trailer(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("team_trailer cannot be empty or whitespace")
        return v.strip()

    def targets(self) -> list[tuple[str, str]]:
        """Expand projects into ordered (project, branch) pairs."""
        return [
            (project.name, branch)
            for project in self.projects
            for branch in project.branch_names(self.default_branch)
        ]
