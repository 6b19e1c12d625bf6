"""Tests for the token statistics report."""

from pathlib import Path

import pytest

from rulesmith.errors import RecipeNotFoundError
from rulesmith.stats import (
    FileStat,
    StatsReport,
    collect_stats,
    file_stats,
    find_cycles,
    format_bytes,
    render_stats,
    write_stats,
)


def _words(text: str) -> int:
    return len(text.split())


@pytest.fixture
def rules(write_file) -> dict[str, Path]:
    return {
        "a": write_file("a.md", "---\nrequires:\n  - b.md\n---\nalpha beta gamma\n"),
        "b": write_file("b.md", "---\nrequires:\n  - a.md\n---\nB\n"),
        "c": write_file("extra/c.md", "one two three four five six seven eight nine ten\n"),
    }


@pytest.mark.unit
class TestFileStats:
    def test_sorted_by_tokens_descending(self, write_file) -> None:
        small = write_file("small.md", "one\n")
        large = write_file("large.md", "one two three\n")

        assert file_stats([small, large], _words) == [FileStat(large, 14, 3), FileStat(small, 4, 1)]

    def test_unavailable_counter_counts_zero(self, write_file) -> None:
        path = write_file("a.md", "text\n")
        assert file_stats([path], lambda _text: None)[0].tokens == 0


@pytest.mark.unit
class TestFindCycles:
    def test_two_file_cycle_reported_once(self) -> None:
        a, b, c = Path("/r/a.md"), Path("/r/b.md"), Path("/r/c.md")
        assert find_cycles({b: [a], a: [b, c], c: []}) == [[a, b]]

    def test_acyclic_graph(self) -> None:
        a, b = Path("/r/a.md"), Path("/r/b.md")
        assert find_cycles({a: [b], b: []}) == []


@pytest.mark.unit
class TestCollectStats:
    def test_recipes_cycles_and_orphans(self, make_context, rules: dict[str, Path]) -> None:
        ctx = make_context({"demo": {"files": ["a.md"]}})

        report = collect_stats(ctx, counter=_words)

        assert [stat.path for stat in report.files] == [rules["c"], rules["a"], rules["b"]]
        assert report.total_tokens == 10 + 8 + 6
        assert report.cycles == [[rules["a"], rules["b"]]]
        assert [stat.path for stat in report.recipes["demo"]] == [rules["a"]]
        assert report.orphaned == [rules["c"]]

    def test_every_file_is_orphaned_without_recipes(self, make_context, rules: dict[str, Path]) -> None:
        report = collect_stats(make_context(), counter=_words)
        assert report.orphaned == sorted(rules.values())

    def test_recipe_limits_measured_files(self, make_context, rules: dict[str, Path]) -> None:
        ctx = make_context({"demo": {"files": ["extra/c.md"]}})

        report = collect_stats(ctx, "demo", counter=_words)

        assert [stat.path for stat in report.files] == [rules["c"]]

    def test_unknown_recipe_raises(self, make_context, rules: dict[str, Path]) -> None:
        with pytest.raises(RecipeNotFoundError):
            collect_stats(make_context(), "nope", counter=_words)


@pytest.mark.unit
class TestRenderStats:
    def test_format_bytes(self) -> None:
        assert (format_bytes(512), format_bytes(2048), format_bytes(3 * 1_048_576)) == ("512 B", "2.0 KB", "3.0 MB")

    def test_summary_and_file_table(self, root: Path) -> None:
        report = StatsReport(files=[FileStat(root / "core/a.md", 2048, 1234)])

        text = render_stats(report, root, "2026-01-02 03:04:05")

        assert text.startswith("# Rulesmith Token Statistics\n\nGenerated: 2026-01-02 03:04:05\n\n## Summary\n")
        assert "- **Total Files**: 1\n- **Total Tokens**: 1,234\n- **Total Size**: 2.0 KB\n" in text
        assert "| 1 | 1,234 | 2.0 KB | [a.md](core/a.md) |" in text
        assert "## Circular Dependencies" not in text
        assert "## Orphaned Files" not in text
        assert text.endswith("---\n*Generated by rulesmith*\n")


@pytest.mark.unit
class TestWriteStats:
    def test_writes_report_into_rules_dir(self, make_context, rules: dict[str, Path], root: Path) -> None:
        ctx = make_context({"demo": {"files": ["a.md"]}})

        path, report = write_stats(ctx, counter=_words)

        assert path == root / "stats.md"
        text = path.read_text(encoding="utf-8")
        assert "Generated: 2026-01-02 03:04:05" in text
        assert "`a.md -> b.md -> a.md`" in text
        assert "## Recipe: demo" in text
        assert "## Orphaned Files" in text
        assert "- [c.md](extra/c.md)" in text
        assert len(report.files) == 3

    def test_previous_report_is_not_measured(self, make_context, rules: dict[str, Path], root: Path) -> None:
        ctx = make_context()
        write_stats(ctx, counter=_words)

        _, report = write_stats(ctx, counter=_words)

        assert root / "stats.md" not in [stat.path for stat in report.files]
