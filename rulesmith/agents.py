"""Subagent generation.

Each subagent binding of a recipe becomes ``<agents_dir>/<name>.md``: a
synthesized frontmatter block followed by the documents of the bound recipe.
Bindings are processed best-effort; one failing subagent never stops the
others.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from instrukt_ai_logging import get_logger

from rulesmith.artifacts import install_executables, skill_name, write_commands, write_skills
from rulesmith.config.schema import SubagentBinding
from rulesmith.constants import AGENT_PERMISSION_MODE, AGENT_TOOLS, BLOCK_SEPARATOR, INHERIT_MODEL, TIMESTAMP_FORMAT
from rulesmith.context import SquashContext
from rulesmith.errors import RulesmithError
from rulesmith.frontmatter_utils import Metadata, dump_frontmatter
from rulesmith.mcp import collect_mcp_servers
from rulesmith.models import ProcessResult
from rulesmith.recipes import Recipe
from rulesmith.utils import title_case_name
from rulesmith.validation import validate_no_nested_subagents, validate_no_subagent_dispatch

logger = get_logger(__name__)


@dataclass(frozen=True)
class AgentOutcome:
    agent: str
    recipe: str
    path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_model(binding: SubagentBinding, parent: Recipe) -> str:
    """Binding override, then the parent recipe's model, then inherit the caller's."""
    return binding.model or parent.config.model or INHERIT_MODEL


def agent_description(recipe: Recipe) -> str:
    return recipe.description or f"Subagent for {recipe.name}"


def render_agent_file(
    binding: SubagentBinding,
    recipe: Recipe,
    parent: Recipe,
    result: ProcessResult,
    mcp_servers: Sequence[str],
    generated_at: str,
) -> str:
    description = agent_description(recipe)
    metadata: Metadata = {
        "name": binding.name,
        "description": description,
        "tools": AGENT_TOOLS,
        "model": resolve_model(binding, parent),
    }
    skills = [skill_name(block.identity) for block in result.skills]
    if skills:
        metadata["skills"] = skills
    if mcp_servers:
        metadata["mcpServers"] = list(mcp_servers)
    metadata["permissionMode"] = AGENT_PERMISSION_MODE

    lines = [f"# {title_case_name(binding.name)}", "", description, "", "## Recipe Content", "", ""]
    body = "\n".join(lines)
    documents = [block.content.strip() for block in result.documents if block.content.strip()]
    if documents:
        body += "".join(f"{content}{BLOCK_SEPARATOR}" for content in documents)
    else:
        body += "---\n\n"
    body += f"*Last generated: {generated_at}*\n*Source recipe: {recipe.name}*\n"
    return dump_frontmatter(metadata, body)


class SubagentGenerator:
    def __init__(self, ctx: SquashContext) -> None:
        self._ctx = ctx
        self._names: set[str] = set()

    def generate_all(self, parent: Recipe, visited: Optional[set[str]] = None) -> list[AgentOutcome]:
        visited = visited if visited is not None else set()
        outcomes = []
        for binding in parent.subagents:
            outcome = self.generate(binding, parent, visited)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def generate(self, binding: SubagentBinding, parent: Recipe, visited: set[str]) -> Optional[AgentOutcome]:
        """Generate one subagent file.

        Returns:
            None when the binding's recipe or agent name was already
            generated (the first binding wins), otherwise the outcome
            (successful or not).
        """
        diagnostics = self._ctx.diagnostics
        if not binding.is_complete:
            reason = "subagent bindings need both 'name' and 'recipe'"
            diagnostics.warn("subagent_binding_incomplete", parent.name, reason)
            return AgentOutcome(binding.name, binding.recipe, error=reason)
        if binding.name in self._names:
            reason = f"agent name already generated; recipe '{binding.recipe}' skipped"
            diagnostics.warn("subagent_duplicate_name", binding.name, reason)
            return None
        if binding.recipe in visited:
            logger.debug("subagent_already_generated", agent=binding.name, recipe=binding.recipe)
            return None
        visited.add(binding.recipe)
        self._names.add(binding.name)

        try:
            path = self._generate(binding, parent)
        except (RulesmithError, OSError) as exc:
            diagnostics.warn("subagent_failed", binding.name, str(exc))
            return AgentOutcome(binding.name, binding.recipe, error=str(exc))
        return AgentOutcome(binding.name, binding.recipe, path=path)

    def _generate(self, binding: SubagentBinding, parent: Recipe) -> Path:
        ctx = self._ctx
        recipe = ctx.store().load(binding.recipe)
        validate_no_nested_subagents(recipe, binding.name)
        validate_no_subagent_dispatch(recipe, binding.name, ctx.resolver)

        processor = ctx.processor()
        result = processor.process(recipe.sources, keep_frontmatter=ctx.options.keep_frontmatter)
        for failure in result.failures:
            ctx.diagnostics.warn(f"source_{failure.reason.value}", failure.target, failure.detail)

        write_skills(ctx.writer, result.skills, ctx.path(ctx.config.skills_dir), processor, ctx.expander())
        write_commands(
            ctx.writer,
            result.commands,
            ctx.path(ctx.config.commands_dir) / binding.name,
            recipe.config.omit_prefixes,
            ctx.rules_dir,
            ctx.diagnostics,
        )
        install_executables(ctx.writer, result.executables, ctx.path(ctx.config.bin_dir))

        content = render_agent_file(
            binding,
            recipe,
            parent,
            result,
            collect_mcp_servers(recipe.config, result.documents),
            ctx.clock().strftime(TIMESTAMP_FORMAT),
        )
        path = ctx.writer.write_text(ctx.path(ctx.config.agents_dir) / f"{binding.name}.md", content)
        logger.info("subagent_generated", agent=binding.name, recipe=recipe.name, path=str(path))
        return path
