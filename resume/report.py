"""Rendering of a ChangelogAssembly as Markdown or a Rich terminal view."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from resume.changelog.models import ChangelogAssembly, ChangelogEntry, GroupKey

logger = logging.getLogger(__name__)

BREAKING_HEADING = "Breaking Changes"
BREAKING_MARK = "💥"


def _group_heading(key: GroupKey) -> str:
    if key.team:
        return f"{key.type.heading} ({key.team})"
    return key.type.heading


def _ordered(entries: list[ChangelogEntry], sort_by_time: bool) -> list[ChangelogEntry]:
    if not sort_by_time:
        return entries
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


def format_entry(entry: ChangelogEntry, *, mark_breaking: bool = True) -> str:
    """One Markdown bullet: ``- 💥 **scope:** summary (abc1234)``."""
    parts = ["-"]
    if mark_breaking and entry.breaking:
        parts.append(BREAKING_MARK)
    if entry.scope:
        parts.append(f"**{entry.scope}:**")
    parts.append(entry.summary or "(no summary)")
    parts.append(f"({entry.short_hash})")
    return " ".join(parts)


def render_markdown(
    assembly: ChangelogAssembly,
    *,
    title: str | None = "Changelog",
    sort_by_time: bool = False,
) -> str:
    """Render *assembly* as Markdown.

    Breaking changes come first, then one section per group in assembly
    order. With *sort_by_time* entries inside each section are listed newest
    first instead of in discovery order.
    """
    lines: list[str] = []
    if title:
        lines += [f"# {title}", ""]

    if assembly.breaking:
        lines += [f"## {BREAKING_MARK} {BREAKING_HEADING}", ""]
        for entry in _ordered(assembly.breaking, sort_by_time):
            lines.append(format_entry(entry, mark_breaking=False))
            if entry.body:
                lines += [f"  {line}" if line else "" for line in entry.body.splitlines()]
        lines.append("")

    for key, entries in assembly.iter_groups():
        lines += [f"## {_group_heading(key)}", ""]
        lines += [format_entry(e) for e in _ordered(entries, sort_by_time)]
        lines.append("")

    if not len(assembly):
        lines += ["_No changes._", ""]

    return "\n".join(lines).rstrip("\n") + "\n"


def write_markdown(
    assembly: ChangelogAssembly,
    dest: str | Path,
    *,
    sort_by_time: bool = False,
    dry_run: bool = False,
) -> Path:
    """Write the Markdown rendering to *dest*. Returns the (would-be) path."""
    dest = Path(dest)
    content = render_markdown(assembly, sort_by_time=sort_by_time)
    if dry_run:
        logger.debug("dry-run: would write %s", dest)
        return dest
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(content, encoding="utf-8")
    logger.info("wrote %s (%d bytes)", dest, len(content))
    return dest


def print_report(
    assembly: ChangelogAssembly,
    console: Console | None = None,
    *,
    sort_by_time: bool = False,
) -> None:
    """Display *assembly* as Rich tables, one per group, plus warnings."""
    console = console or Console()

    if assembly.breaking:
        table = Table(title=f"{BREAKING_MARK} {BREAKING_HEADING} ({len(assembly.breaking)})")
        table.add_column("Commit", style="dim")
        table.add_column("Type", style="red")
        table.add_column("Summary")
        for entry in _ordered(assembly.breaking, sort_by_time):
            table.add_row(entry.short_hash, entry.type.value, escape(entry.summary))
        console.print(table)

    for key, entries in assembly.iter_groups():
        table = Table(title=f"{_group_heading(key)} ({len(entries)})")
        table.add_column("Commit", style="dim")
        table.add_column("Scope", style="cyan")
        table.add_column("Summary")
        table.add_column("Team", style="yellow")
        table.add_column("Source", style="green")
        for entry in _ordered(entries, sort_by_time):
            summary = escape(entry.summary)
            if entry.breaking:
                summary = f"{BREAKING_MARK} {summary}"
            source = (
                f"{entry.source_project}@{entry.source_branch}"
                if entry.source_project else "-"
            )
            table.add_row(
                entry.short_hash,
                escape(entry.scope or "-"),
                summary,
                escape(entry.team or "-"),
                escape(source),
            )
        console.print(table)

    if not len(assembly):
        console.print("[yellow]No changes.[/yellow]")

    if assembly.warnings:
        body = "\n".join(f"- {escape(str(w))}" for w in assembly.warnings)
        console.print(Panel(body, title=f"Warnings ({len(assembly.warnings)})", border_style="yellow"))

    if assembly.cancelled:
        console.print("[yellow]Aggregation was cancelled; the changelog is partial.[/yellow]")
