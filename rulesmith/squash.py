"""Squash orchestration: one recipe in, every artifact out."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from instrukt_ai_logging import get_logger

from rulesmith.agents import AgentOutcome, SubagentGenerator
from rulesmith.artifacts import install_executables, render_blocks, write_commands, write_skills
from rulesmith.context import SquashContext
from rulesmith.errors import RulesmithError
from rulesmith.ignore_files import git_exclude_path, ignore_patterns, update_ignore_file
from rulesmith.mcp import build_server_config, collect_all_mcp_servers, load_server_definitions, write_mcp_settings
from rulesmith.models import ProcessResult, ResolvedBlock
from rulesmith.recipes import Recipe
from rulesmith.scripts import collect_scripts, install_scripts, rewrite_script_references, script_mappings
from rulesmith.shell_commands import warn_missing_commands
from rulesmith.toc import add_anchor_ids, block_prefix, build_toc
from rulesmith.validation import validate_dispatches_registered

logger = get_logger(__name__)


@dataclass
class SquashReport:
    recipe: str
    output_path: Path
    result: ProcessResult
    agents: list[AgentOutcome] = field(default_factory=list)
    mcp_servers: list[str] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    dry_run: bool = False


def output_file_for(ctx: SquashContext, recipe: Recipe) -> str:
    if ctx.options.output_file:
        return ctx.options.output_file
    if recipe.config.agent_recipe:
        return f"{ctx.config.agents_dir.rstrip('/')}/{recipe.name}.md"
    return ctx.config.output_file


def _guard_home(ctx: SquashContext) -> None:
    if ctx.options.home_override:
        return
    if ctx.root == Path.home().resolve():
        raise RulesmithError(
            "Refusing to squash in the home directory; generated files would land in ~. "
            "Run from a project directory or pass --home-override."
        )


def squash(ctx: SquashContext, recipe_name: str) -> SquashReport:
    """Run the full pipeline for ``recipe_name``.

    Raises:
        RecipeNotFoundError: When the recipe does not exist.
        ValidationError: On skill reference or dispatch registration errors
            in the root recipe.
    """
    _guard_home(ctx)
    recipe = ctx.store().load(recipe_name, essential=ctx.options.essential)
    processor = ctx.processor()
    result = processor.process(recipe.sources, keep_frontmatter=ctx.options.keep_frontmatter)
    for failure in result.failures:
        ctx.diagnostics.warn(f"source_{failure.reason.value}", failure.target, failure.detail)
    validate_dispatches_registered(recipe, result.documents)
    warn_missing_commands(result.blocks, ctx.diagnostics)
    scripts = collect_scripts(result.blocks, ctx.resolver, ctx.diagnostics)

    output_file = output_file_for(ctx, recipe)
    main_content = render_main(ctx, result, script_mappings(scripts, ctx.config.scripts_dir))
    output_path = ctx.writer.write_text(ctx.path(output_file), main_content)
    write_commands(
        ctx.writer,
        result.commands,
        ctx.path(ctx.config.commands_dir),
        recipe.config.omit_prefixes,
        ctx.rules_dir,
        ctx.diagnostics,
    )
    write_skills(ctx.writer, result.skills, ctx.path(ctx.config.skills_dir), processor, ctx.expander())
    install_executables(ctx.writer, result.executables, ctx.path(ctx.config.bin_dir))
    install_scripts(ctx.writer, scripts, ctx.path(ctx.config.scripts_dir), ctx.fetcher, ctx.diagnostics)

    agents = SubagentGenerator(ctx).generate_all(recipe)
    mcp_servers = _write_mcp(ctx, recipe, result)
    _update_ignore_files(ctx, output_file, bool(result.commands))

    logger.info(
        "squash_complete",
        recipe=recipe.name,
        documents=len(result.documents),
        commands=len(result.commands),
        skills=len(result.skills),
        executables=len(result.executables),
        agents=len(agents),
    )
    return SquashReport(
        recipe=recipe.name,
        output_path=output_path,
        result=result,
        agents=agents,
        mcp_servers=mcp_servers,
        written=list(ctx.writer.planned),
        dry_run=ctx.options.dry_run,
    )


def render_main(ctx: SquashContext, result: ProcessResult, mappings: dict[str, str]) -> str:
    """Main output text: optional table of contents, then every document."""

    def text(block: ResolvedBlock) -> str:
        content = rewrite_script_references(block.content, mappings)
        if ctx.options.toc:
            content = add_anchor_ids(content, block_prefix(block, ctx.rules_dir))
        return content

    body = render_blocks(result.documents, text)
    if not ctx.options.toc:
        return body
    toc = build_toc(result.documents, result.commands, ctx.rules_dir)
    return f"{toc}\n{body}" if body else toc


def _write_mcp(ctx: SquashContext, recipe: Recipe, result: ProcessResult) -> list[str]:
    names = collect_all_mcp_servers(recipe.config, ctx.recipes, result.documents)
    if not names:
        return []
    definitions_path = ctx.path(ctx.config.mcp_definitions_file)
    servers = build_server_config(names, load_server_definitions(definitions_path), ctx.diagnostics, str(definitions_path))
    write_mcp_settings(ctx.writer, ctx.path(ctx.config.mcp_settings_file), servers)
    return names


def _update_ignore_files(ctx: SquashContext, output_file: str, has_commands: bool) -> None:
    patterns = ignore_patterns(output_file, ctx.config.commands_dir, has_commands)
    if ctx.options.git_ignore:
        update_ignore_file(ctx.root / ".gitignore", patterns, dry_run=ctx.options.dry_run)
    if ctx.options.git_exclude:
        exclude = git_exclude_path(ctx.root)
        if exclude is None:
            ctx.diagnostics.warn("git_info_missing", str(ctx.root / ".git" / "info"), "not a git repository")
        else:
            update_ignore_file(exclude, patterns, dry_run=ctx.options.dry_run)


def clean(ctx: SquashContext, recipe_name: Optional[str] = None, deep: bool = False) -> list[Path]:
    """Remove generated artifacts. Returns the paths removed (or that would be)."""
    output_file = ctx.options.output_file or ctx.config.output_file
    if recipe_name:
        output_file = output_file_for(ctx, ctx.store().load(recipe_name))
    targets = [
        output_file,
        ctx.config.agents_dir,
        ctx.config.commands_dir,
        ctx.config.skills_dir,
        ctx.config.scripts_dir,
        ctx.config.mcp_settings_file,
    ]
    if deep:
        targets.append(ctx.config.bin_dir)
    removed = []
    for target in targets:
        path = ctx.writer.remove(ctx.path(target))
        if path is not None:
            removed.append(path)
    return removed
