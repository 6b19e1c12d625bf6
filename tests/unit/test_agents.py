"""Tests for subagent generation."""

from pathlib import Path

import pytest

from rulesmith.agents import SubagentGenerator, resolve_model
from rulesmith.config.schema import RecipeConfig, SubagentBinding
from rulesmith.frontmatter_utils import parse
from rulesmith.recipes import Recipe


def _parent(ctx, name: str = "p") -> Recipe:  # type: ignore[no-untyped-def]
    return ctx.store().load(name)


@pytest.mark.unit
class TestResolveModel:
    def _recipe(self, model: str | None) -> Recipe:
        return Recipe(name="p", config=RecipeConfig(model=model), sources=())

    def test_binding_override_wins(self) -> None:
        assert resolve_model(SubagentBinding(name="x", recipe="q", model="haiku"), self._recipe("opus")) == "haiku"

    def test_parent_model_is_next(self) -> None:
        assert resolve_model(SubagentBinding(name="x", recipe="q"), self._recipe("opus")) == "opus"

    def test_defaults_to_inherit(self) -> None:
        assert resolve_model(SubagentBinding(name="x", recipe="q"), self._recipe(None)) == "inherit"


@pytest.mark.unit
class TestSubagentGenerator:
    def test_writes_agent_file(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "---\ndescription: c\n---\nC content\n")
        write_file("d.md", "D content\n")
        ctx = make_context(
            {
                "p": {"subagents": [{"name": "code_reviewer", "recipe": "q"}]},
                "q": {"files": ["c.md", "d.md"], "mcp_servers": ["github"]},
            }
        )

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert [(o.agent, o.ok) for o in outcomes] == [("code_reviewer", True)]
        agent_file = root / ".claude/agents/code_reviewer.md"
        assert outcomes[0].path == agent_file
        metadata, body = parse(agent_file.read_text(encoding="utf-8"))
        assert metadata == {
            "name": "code_reviewer",
            "description": "Subagent for q",
            "tools": "Bash, Read, Write, Edit, Glob, Grep",
            "model": "inherit",
            "mcpServers": ["github"],
            "permissionMode": "bypassPermissions",
        }
        assert body.startswith("# Code Reviewer\n\nSubagent for q\n\n## Recipe Content\n\n")
        assert body.index("C content") < body.index("D content")
        assert "C content\n\n---\n\nD content\n\n---\n\n" in body
        assert body.endswith("*Last generated: 2026-01-02 03:04:05*\n*Source recipe: q*\n")

    def test_recipe_description_is_used(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "C\n")
        ctx = make_context(
            {
                "p": {"model": "sonnet", "subagents": [{"name": "x", "recipe": "q"}]},
                "q": {"description": "Reviews code", "files": ["c.md"]},
            }
        )

        SubagentGenerator(ctx).generate_all(_parent(ctx))

        metadata, _ = parse((root / ".claude/agents/x.md").read_text(encoding="utf-8"))
        assert metadata is not None
        assert metadata["description"] == "Reviews code"
        assert metadata["model"] == "sonnet"

    def test_nested_subagents_rejected_without_output(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "C\n")
        ctx = make_context(
            {
                "p": {"subagents": [{"name": "x", "recipe": "q"}]},
                "q": {
                    "files": ["c.md"],
                    "subagents": [{"name": "alpha", "recipe": "r"}, {"name": "beta", "recipe": "r"}],
                },
                "r": {"files": ["c.md"]},
            }
        )

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert not outcomes[0].ok
        assert "alpha, beta" in (outcomes[0].error or "")
        assert not (root / ".claude/agents/x.md").exists()
        assert [w["code"] for w in ctx.diagnostics.get_warnings()] == ["subagent_failed"]

    def test_dispatching_sources_rejected(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "---\ndispatches:\n  - planner\n  - tester\n---\nC\n")
        ctx = make_context({"p": {"subagents": [{"name": "x", "recipe": "q"}]}, "q": {"files": ["c.md"]}})

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        error = outcomes[0].error or ""
        assert "c.md dispatches: planner" in error
        assert "c.md dispatches: tester" in error
        assert not (root / ".claude/agents/x.md").exists()

    def test_failures_do_not_stop_siblings(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "C\n")
        ctx = make_context(
            {
                "p": {"subagents": [{"name": "broken", "recipe": "nope"}, {"name": "x", "recipe": "q"}]},
                "q": {"files": ["c.md"]},
            }
        )

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert [(o.agent, o.ok) for o in outcomes] == [("broken", False), ("x", True)]
        assert "Recipe 'nope' not found" in (outcomes[0].error or "")
        assert (root / ".claude/agents/x.md").exists()

    def test_duplicate_recipe_bindings_processed_once(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "C\n")
        ctx = make_context(
            {"p": {"subagents": [{"name": "x", "recipe": "q"}, {"name": "y", "recipe": "q"}]}, "q": {"files": ["c.md"]}}
        )

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert [o.agent for o in outcomes] == ["x"]
        assert not (root / ".claude/agents/y.md").exists()

    def test_duplicate_agent_names_keep_first_binding(self, make_context, write_file, root: Path) -> None:
        write_file("first.md", "First\n")
        write_file("second.md", "Second\n")
        ctx = make_context(
            {
                "p": {"subagents": [{"name": "x", "recipe": "q1"}, {"name": "x", "recipe": "q2"}]},
                "q1": {"files": ["first.md"]},
                "q2": {"files": ["second.md"]},
            }
        )

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert [(o.agent, o.recipe) for o in outcomes] == [("x", "q1")]
        content = (root / ".claude/agents/x.md").read_text(encoding="utf-8")
        assert "First" in content
        assert "Second" not in content
        assert [w["code"] for w in ctx.diagnostics.get_warnings()] == ["subagent_duplicate_name"]

    def test_incomplete_binding_is_reported(self, make_context) -> None:
        ctx = make_context({"p": {"subagents": [{"name": "x"}]}})

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert not outcomes[0].ok
        assert ctx.diagnostics.get_warnings()[0]["code"] == "subagent_binding_incomplete"

    def test_skills_and_commands_are_split_out(self, make_context, write_file, root: Path) -> None:
        write_file("c.md", "---\nskills:\n  - skills/triage.md\n---\nC\n")
        write_file("skills/triage.md", "---\ndescription: Triage bugs\n---\nTriage steps\n")
        write_file("team/commands/ship.md", "Ship it\n")
        ctx = make_context({"p": {"subagents": [{"name": "x", "recipe": "q"}]}, "q": {"files": ["c.md", "team/commands/ship.md"]}})

        SubagentGenerator(ctx).generate_all(_parent(ctx))

        metadata, body = parse((root / ".claude/agents/x.md").read_text(encoding="utf-8"))
        assert metadata is not None
        assert metadata["skills"] == ["triage"]
        assert "Triage steps" not in body
        assert "Ship it" not in body
        assert (root / ".claude/commands/x/team/ship.md").read_text(encoding="utf-8") == "Ship it\n"
        skill_md = (root / ".claude/skills/triage/SKILL.md").read_text(encoding="utf-8")
        assert "name: triage" in skill_md
        assert "Triage steps" in skill_md

    def test_dry_run_writes_nothing(self, make_context, write_file, root: Path) -> None:
        from rulesmith.context import SquashOptions

        write_file("c.md", "C\n")
        ctx = make_context(
            {"p": {"subagents": [{"name": "x", "recipe": "q"}]}, "q": {"files": ["c.md"]}},
            options=SquashOptions(dry_run=True),
        )

        outcomes = SubagentGenerator(ctx).generate_all(_parent(ctx))

        assert outcomes[0].path == root / ".claude/agents/x.md"
        assert not (root / ".claude").exists()
