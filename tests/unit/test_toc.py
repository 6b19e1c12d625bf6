"""Tests for the table of contents."""

from pathlib import Path

import pytest

from rulesmith.context import SquashOptions
from rulesmith.models import Classification, ResolvedBlock, SourceDescriptor, SourceKind
from rulesmith.squash import squash
from rulesmith.toc import (
    NO_DESCRIPTION,
    Header,
    add_anchor_ids,
    anchor_prefix,
    build_toc,
    command_description,
    command_name,
    extract_headers,
    slugify,
)


def _block(identity: str, content: str, metadata: dict[str, object] | None = None) -> ResolvedBlock:
    return ResolvedBlock(
        identity=identity,
        descriptor=SourceDescriptor(identity, SourceKind.REMOTE),
        classification=Classification.DOCUMENT,
        raw_content=content,
        content=content,
        metadata=metadata,
    )


@pytest.mark.unit
class TestAnchors:
    def test_slugify_drops_punctuation(self) -> None:
        assert slugify("Git: Basics & More!") == "git-basics-more"

    def test_slugify_with_prefix(self) -> None:
        assert slugify("Branch Rules", "core-git") == "core-git-branch-rules"

    def test_prefix_from_local_path(self) -> None:
        assert anchor_prefix("core/git-basics.md") == "core-git-basics"

    def test_prefix_from_github_url_uses_repo_path(self) -> None:
        assert anchor_prefix("https://github.com/acme/rules/blob/main/lang/Python.md") == "lang-python"

    def test_prefix_from_other_url_uses_basename(self) -> None:
        assert anchor_prefix("https://example.com/docs/style.md") == "style"


@pytest.mark.unit
class TestHeaders:
    def test_fenced_code_is_skipped(self) -> None:
        content = "# Title\n\n```bash\n# just a comment\n```\n\n## Section\n"
        assert extract_headers(content, "doc") == [
            Header(1, "Title", "doc-title"),
            Header(2, "Section", "doc-section"),
        ]

    def test_anchor_ids_precede_headings(self) -> None:
        assert add_anchor_ids("# Title\ntext", "doc") == '<a id="doc-title"></a>\n\n# Title\ntext'


@pytest.mark.unit
class TestCommands:
    def test_command_name_from_file_name(self) -> None:
        assert command_name("team/commands/ship_it-now.md") == "ship:it:now"

    def test_description_from_metadata(self) -> None:
        assert command_description(_block("c.md", "Body text here\n", {"description": "Ship it"})) == "Ship it"

    def test_description_from_first_substantial_line(self) -> None:
        block = _block("c.md", "# Ship\n\nshort\n\nPrepare the **release** branch.\n")
        assert command_description(block) == "Prepare the release branch."

    def test_long_description_is_truncated(self) -> None:
        assert command_description(_block("c.md", "x" * 100)) == "x" * 80 + "..."

    def test_missing_description(self) -> None:
        assert command_description(_block("c.md", "# Only a heading\n")) == NO_DESCRIPTION


@pytest.mark.unit
class TestBuildToc:
    def test_nested_entries_and_commands(self) -> None:
        url = "https://example.com/guide.md"
        command = _block("https://example.com/commands/ship.md", "Ship the release now\n")

        toc = build_toc([_block(url, "# Guide\n## Setup\n")], [command])

        assert toc == (
            "## Table of Contents\n\n"
            "- [Guide](#guide-guide)\n"
            "  - [Setup](#guide-setup)\n\n"
            "### Available Slash Commands\n\n"
            "- `/ship` - Ship the release now\n"
        )

    def test_squash_prefixes_output_with_toc(self, make_context, write_file, root: Path) -> None:
        write_file("core/git.md", "# Git\n\n## Branch Rules\n\n```\n# not a heading\n```\n")
        write_file("commands/ship.md", "---\ndescription: Ship the release\n---\nShip\n")
        ctx = make_context(
            {"demo": {"files": ["core/git.md", "commands/ship.md"]}}, options=SquashOptions(toc=True)
        )

        squash(ctx, "demo")

        main = (root / "CLAUDE.local.md").read_text(encoding="utf-8")
        assert main.startswith(
            "## Table of Contents\n\n"
            "- [Git](#core-git-git)\n"
            "  - [Branch Rules](#core-git-branch-rules)\n\n"
            "### Available Slash Commands\n\n"
            "- `/ship` - Ship the release\n\n"
        )
        assert '<a id="core-git-git"></a>\n\n# Git' in main
        assert '<a id="core-git-branch-rules"></a>\n\n## Branch Rules' in main
        assert "```\n# not a heading\n```" in main

    def test_output_has_no_toc_by_default(self, make_context, write_file, root: Path) -> None:
        write_file("core/git.md", "# Git\n")

        squash(make_context({"demo": {"files": ["core/git.md"]}}), "demo")

        main = (root / "CLAUDE.local.md").read_text(encoding="utf-8")
        assert "Table of Contents" not in main
        assert "<a id=" not in main
