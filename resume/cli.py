"""CLI entry point for resume."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from resume.changelog import Aggregator, ChangelogAssembly, CommitParser, capture_snapshot
from resume.changelog.aggregator import TargetLike
from resume.config import ResumeConfig, load_config
from resume.config.loader import DEFAULT_CONFIG_TEMPLATE
from resume.errors import AllTargetsFailed, ConfigError
from resume.report import print_report, render_markdown, write_markdown
from resume.snapshots import Snapshot, SnapshotError, SnapshotHistory
from resume.vcs import GitBackend, create_backend
from resume.vcs.base import VCSBackend

app = typer.Typer(
    name="resume",
    help="Grouped changelogs from Conventional Commits history.",
)

config_app = typer.Typer(help="Manage resume configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: ResumeConfig | None = None
_config_path: str | None = None

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _get_config() -> ResumeConfig:
    if _config is None:
        return load_config(_config_path)
    return _config


def _configure_logging(level: str) -> None:
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(_LOG_LEVELS.get(level, logging.INFO))


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to resume.yaml")
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Debug logging")
    ] = False,
) -> None:
    """Global options."""
    global _config, _config_path
    _config_path = config
    try:
        _config = load_config(config)
    except ConfigError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    _configure_logging("debug" if verbose else _config.log_level)


def _run_cancellable(
    aggregator: Aggregator,
    targets: list[TargetLike],
    *,
    since: Snapshot | None = None,
    origins: dict[str, str] | None = None,
) -> ChangelogAssembly:
    """Run aggregation in a worker thread; Ctrl-C stops it and keeps the partial result."""
    cancel = threading.Event()
    outcome: dict[str, object] = {}

    def _work() -> None:
        try:
            outcome["assembly"] = asyncio.run(
                aggregator.aggregate_async(targets, cancel, since=since, origins=origins)
            )
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=_work, name="resume-aggregate", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        rprint("[yellow]Interrupted, stopping after the current commit...[/yellow]")
        cancel.set()
        worker.join()

    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]
    return outcome["assembly"]  # type: ignore[return-value]


def _emit(
    assembly: ChangelogAssembly,
    *,
    markdown: bool,
    output: str | None,
    sort_by_time: bool,
) -> None:
    if output:
        dest = write_markdown(assembly, output, sort_by_time=sort_by_time)
        rprint(f"[green]Written to[/green] {dest}")
        if assembly.warnings:
            rprint(f"[yellow]{len(assembly.warnings)} warning(s)[/yellow] (see log)")
    elif markdown:
        typer.echo(render_markdown(assembly, sort_by_time=sort_by_time), nl=False)
    else:
        print_report(assembly, Console(), sort_by_time=sort_by_time)


def _aggregate_or_exit(
    backend: VCSBackend,
    cfg: ResumeConfig,
    targets: list[TargetLike],
    *,
    group_by_team: bool,
    limit: int | None = None,
    since: Snapshot | None = None,
    origins: dict[str, str] | None = None,
) -> ChangelogAssembly:
    aggregator = Aggregator(
        backend,
        CommitParser(cfg.team_trailer),
        group_by_team=group_by_team,
        max_workers=cfg.max_workers,
        max_commits=limit,
    )
    try:
        return _run_cancellable(aggregator, targets, since=since, origins=origins)
    except AllTargetsFailed as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        for warning in e.warnings:
            rprint(f"  - {escape(str(warning))}")
        raise typer.Exit(1)


@app.command()
def repository(
    path: str = typer.Argument(..., help="Path to a local git repository"),
    branch: Annotated[
        list[str] | None, typer.Option("--branch", "-b", help="Branch to walk (repeatable)")
    ] = None,
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", min=1, help="Max commits per branch")
    ] = None,
    by_team: Annotated[bool, typer.Option("--by-team", help="Group by team trailer")] = False,
    markdown: Annotated[bool, typer.Option("--markdown", "-m", help="Print Markdown")] = False,
    output: Annotated[
        str | None, typer.Option("--output", "-o", help="Write Markdown to file")
    ] = None,
    sort_by_time: Annotated[
        bool, typer.Option("--by-time", help="Newest first within each section")
    ] = False,
) -> None:
    """Changelog for one or more branches of a single repository."""
    cfg = _get_config()
    try:
        backend = GitBackend.from_local(path)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    branches = branch or [cfg.default_branch]
    targets: list[TargetLike] = [(backend.name, b) for b in branches]
    assembly = _aggregate_or_exit(
        backend,
        cfg,
        targets,
        group_by_team=by_team or cfg.group_by_team,
        limit=limit,
    )
    _emit(assembly, markdown=markdown, output=output, sort_by_time=sort_by_time)


@app.command()
def projects(
    config_file: str | None = typer.Argument(
        None, help="Projects file (defaults to the global config)"
    ),
    since_last: Annotated[
        bool, typer.Option("--since-last", help="Only commits since the last snapshot")
    ] = False,
    record: Annotated[
        bool, typer.Option("--record", help="Record current heads as a new snapshot")
    ] = False,
    fetch: Annotated[
        bool, typer.Option("--fetch", help="Fetch configured branches of cached clones")
    ] = False,
    by_team: Annotated[bool, typer.Option("--by-team", help="Group by team trailer")] = False,
    markdown: Annotated[bool, typer.Option("--markdown", "-m", help="Print Markdown")] = False,
    output: Annotated[
        str | None, typer.Option("--output", "-o", help="Write Markdown to file")
    ] = None,
    sort_by_time: Annotated[
        bool, typer.Option("--by-time", help="Newest first within each section")
    ] = False,
) -> None:
    """Aggregated changelog across every configured project and branch."""
    try:
        cfg = load_config(config_file) if config_file else _get_config()
    except ConfigError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not cfg.projects:
        rprint("[red]Error:[/red] No projects configured. Run `resume config init`.")
        raise typer.Exit(1)

    try:
        history = SnapshotHistory.load(cfg.snapshot_file)
    except SnapshotError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    since = history.last() if since_last else None
    if since_last and since is None:
        rprint("[yellow]No snapshot recorded yet, showing full history.[/yellow]")

    backend = create_backend(cfg, fetch=fetch)
    origins = {p.name: p.origin for p in cfg.projects}
    targets: list[TargetLike] = list(cfg.targets())

    assembly = _aggregate_or_exit(
        backend,
        cfg,
        targets,
        group_by_team=by_team or cfg.group_by_team,
        since=since,
        origins=origins,
    )
    _emit(assembly, markdown=markdown, output=output, sort_by_time=sort_by_time)

    if record and not assembly.cancelled:
        snapshot = capture_snapshot(backend, targets, origins)
        if history.push(snapshot):
            path = history.save(cfg.snapshot_file)
            rprint(f"[green]Snapshot {snapshot.hash} recorded[/green] in {path}")
        else:
            rprint(f"[dim]Heads unchanged since snapshot {snapshot.hash}[/dim]")


# Short aliases
app.command("r", hidden=True)(repository)
app.command("p", hidden=True)(projects)


@config_app.command("init")
def config_init(
    path: str = typer.Option("resume.yaml", "--path", "-p", help="Where to write"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a starter resume.yaml."""
    dest = Path(path)
    if dest.exists() and not force:
        rprint(f"[red]Error:[/red] {dest} already exists (use --force)")
        raise typer.Exit(1)
    dest.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {dest}")


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    cfg = _get_config()
    rendered = yaml.safe_dump(cfg.model_dump(), default_flow_style=False, sort_keys=False)
    rprint(Syntax(rendered, "yaml", theme="monokai"))


if __name__ == "__main__":
    app()
