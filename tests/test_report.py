"""Tests for resume.report — Markdown rendering and the Rich view."""

from rich.console import Console

from resume.changelog import Aggregator
from resume.changelog.models import ChangelogAssembly
from resume.changelog.parser import parse_commit
from resume.errors import UnresolvableTarget
from resume.report import format_entry, print_report, render_markdown, write_markdown
from tests.conftest import make_record


def _assembly(history_backend, **kwargs) -> ChangelogAssembly:
    return Aggregator(history_backend, **kwargs).aggregate([("app", "main"), ("fork", "main")])


class TestFormatEntry:
    def test_scope_and_breaking_mark(self):
        entry = parse_commit(make_record("abcdef123456", "feat(api)!: new route"))
        assert format_entry(entry) == "- 💥 **api:** new route (abcdef1)"

    def test_breaking_mark_suppressed(self):
        entry = parse_commit(make_record("abcdef123456", "feat!: new route"))
        assert format_entry(entry, mark_breaking=False) == "- new route (abcdef1)"

    def test_empty_summary(self):
        entry = parse_commit(make_record("abcdef123456", "team: core\nReviewed-by: Bob"))
        assert format_entry(entry) == "- (no summary) (abcdef1)"


class TestRenderMarkdown:
    def test_sections_in_order(self, history_backend):
        text = render_markdown(_assembly(history_backend))
        headings = [line for line in text.splitlines() if line.startswith("#")]
        assert headings == [
            "# Changelog",
            "## 💥 Breaking Changes",
            "## New Features",
            "## Bug Fixes",
            "## Performance",
            "## Documentation",
            "## Other Changes",
        ]

    def test_breaking_body_indented(self, history_backend):
        text = render_markdown(_assembly(history_backend))
        assert "- typo (c2)\n  removes endpoint" in text

    def test_team_in_heading(self, history_backend):
        text = render_markdown(_assembly(history_backend, group_by_team=True))
        assert "## New Features (infra)" in text
        assert "## Performance (infra)" in text

    def test_sort_by_time_newest_first(self, history_backend):
        text = render_markdown(_assembly(history_backend), sort_by_time=True)
        features = text.split("## New Features\n\n", 1)[1].split("\n\n", 1)[0]
        assert features.splitlines() == [
            "- 💥 **api:** change signature (f1)",
            "- **core:** initial engine (c1)",
        ]

    def test_empty_assembly(self):
        text = render_markdown(ChangelogAssembly(), title=None)
        assert text == "_No changes._\n"

    def test_ends_with_single_newline(self, history_backend):
        assert not render_markdown(_assembly(history_backend)).endswith("\n\n")


class TestWriteMarkdown:
    def test_writes_file(self, history_backend, tmp_path):
        dest = tmp_path / "out" / "CHANGELOG.md"
        assembly = _assembly(history_backend)
        assert write_markdown(assembly, dest) == dest
        assert dest.read_text(encoding="utf-8") == render_markdown(assembly)

    def test_dry_run_writes_nothing(self, history_backend, tmp_path):
        dest = tmp_path / "CHANGELOG.md"
        write_markdown(_assembly(history_backend), dest, dry_run=True)
        assert not dest.exists()


class TestPrintReport:
    def _render(self, assembly) -> str:
        console = Console(record=True, width=120)
        print_report(assembly, console)
        return console.export_text()

    def test_tables_and_sources(self, history_backend):
        out = self._render(_assembly(history_backend))
        assert "Breaking Changes (2)" in out
        assert "New Features (2)" in out
        assert "app@main" in out
        assert "fork@main" in out

    def test_markup_in_summary_is_escaped(self, backend):
        backend.add_commit(make_record("a1", "fix: handle [bold]tags[/bold]"))
        backend.set_branch("app", "main", "a1")
        out = self._render(Aggregator(backend).aggregate([("app", "main")]))
        assert "[bold]tags[/bold]" in out

    def test_warnings_and_cancelled_notice(self):
        assembly = ChangelogAssembly(
            warnings=[UnresolvableTarget("app", "gone")],
            cancelled=True,
        )
        out = self._render(assembly)
        assert "No changes." in out
        assert "Warnings (1)" in out
        assert "app@gone" in out
        assert "partial" in out
