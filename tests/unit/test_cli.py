"""Tests for the rulesmith command line."""

from pathlib import Path

import pytest

from rulesmith.cli import build_parser, main


@pytest.fixture
def project(root: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = root / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(root)
    (root / "recipes.yml").write_text(
        "recipes:\n  demo:\n    description: Demo rules\n    files: [a.md, gone.md]\n", encoding="utf-8"
    )
    (root / "a.md").write_text("A content\n", encoding="utf-8")
    return root


@pytest.mark.unit
class TestParser:
    def test_squash_flags(self) -> None:
        args = build_parser().parse_args(
            ["squash", "demo", "-o", "out.md", "--dry-run", "-v", "--keep-frontmatter", "--git-ignore"]
        )
        assert (args.recipe, args.output_file, args.dry_run, args.verbose, args.keep_frontmatter, args.git_ignore) == (
            "demo",
            "out.md",
            True,
            True,
            True,
            True,
        )

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


@pytest.mark.unit
class TestMain:
    def test_squash_success(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["squash", "demo"]) == 0

        captured = capsys.readouterr()
        assert "Squashed recipe 'demo' into CLAUDE.local.md (1 documents" in captured.out
        assert "Warning: source_not_found: gone.md (file not found)" in captured.err
        assert (project / "CLAUDE.local.md").read_text(encoding="utf-8") == "A content\n\n---\n"

    def test_dry_run(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["squash", "demo", "--dry-run"]) == 0

        assert "Would create: CLAUDE.local.md" in capsys.readouterr().out
        assert not (project / "CLAUDE.local.md").exists()

    def test_unknown_recipe_exits_non_zero(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["squash", "nope"]) == 1
        assert "Error: Recipe 'nope' not found. Available recipes: demo" in capsys.readouterr().err

    def test_list_recipes(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["list-recipes"]) == 0
        assert "demo: Demo rules [2 sources]" in capsys.readouterr().out

    def test_clean(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (project / "CLAUDE.local.md").write_text("x", encoding="utf-8")
        assert main(["clean"]) == 0
        assert not (project / "CLAUDE.local.md").exists()
        assert "Removed:" in capsys.readouterr().out

    def test_config_file_is_honoured(self, project: Path) -> None:
        (project / "custom.yml").write_text("output_file: RULES.md\n", encoding="utf-8")
        assert main(["--config", "custom.yml", "squash", "demo"]) == 0
        assert (project / "RULES.md").exists()

    def test_squash_toc_flag(self, project: Path) -> None:
        (project / "a.md").write_text("# Alpha\n", encoding="utf-8")
        assert main(["squash", "demo", "--toc"]) == 0
        content = (project / "CLAUDE.local.md").read_text(encoding="utf-8")
        assert content.startswith("## Table of Contents\n\n- [Alpha](#a-alpha)\n")

    def test_stats(self, project: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("rulesmith.stats.count_tokens", lambda text: len(text.split()))
        assert main(["stats", "-o", "report.md"]) == 0

        assert "Wrote token statistics for 1 files (2 tokens)" in capsys.readouterr().out
        report = (project / "report.md").read_text(encoding="utf-8")
        assert "## Recipe: demo" in report
