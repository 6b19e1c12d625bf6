"""Command-line entry point: ``rulesmith squash|list-recipes|stats|clean``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from instrukt_ai_logging import get_logger

from rulesmith import __version__
from rulesmith.config.loader import load_project_config
from rulesmith.constants import MAIN_MODULE
from rulesmith.context import SquashContext, SquashOptions
from rulesmith.diagnostics import Diagnostics, format_warning
from rulesmith.errors import RulesmithError
from rulesmith.logging_config import setup_logging
from rulesmith.remote import HttpRemoteFetcher
from rulesmith.squash import SquashReport, clean, squash
from rulesmith.stats import write_stats
from rulesmith.tokens import count_tokens, format_tokens

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rulesmith", description="Compile markdown rule recipes into agent files.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Path to rulesmith.yml (default: ./rulesmith.yml)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    squash_parser = subparsers.add_parser("squash", help="Build the output files for a recipe")
    squash_parser.add_argument("recipe", help="Recipe name")
    squash_parser.add_argument("-o", "--output-file", default=None, help="Override the main output path")
    squash_parser.add_argument("--dry-run", action="store_true", help="Report what would be written")
    squash_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output with token counts")
    squash_parser.add_argument("--keep-frontmatter", action="store_true", help="Keep frontmatter in output")
    squash_parser.add_argument("--essential", action="store_true", help="Only include files marked essential")
    squash_parser.add_argument("-t", "--toc", action="store_true", help="Prefix the output with a table of contents")
    squash_parser.add_argument("--git-ignore", action="store_true", help="Add generated files to .gitignore")
    squash_parser.add_argument("--git-exclude", action="store_true", help="Add generated files to .git/info/exclude")
    squash_parser.add_argument("--home-override", action="store_true", help="Allow running in the home directory")

    subparsers.add_parser("list-recipes", help="List available recipes")

    stats_parser = subparsers.add_parser("stats", help="Write token statistics for rule files")
    stats_parser.add_argument("recipe", nargs="?", default=None, help="Recipe to measure (default: all rule files)")
    stats_parser.add_argument("-o", "--output", default=None, help="Report path (default: <rules_dir>/stats.md)")

    clean_parser = subparsers.add_parser("clean", help="Remove generated files")
    clean_parser.add_argument("recipe", nargs="?", default=None, help="Recipe whose output file to remove")
    clean_parser.add_argument("-o", "--output-file", default=None, help="Main output path to remove")
    clean_parser.add_argument("--dry-run", action="store_true", help="Report what would be removed")
    clean_parser.add_argument("--deep", action="store_true", help="Also remove copied executables")
    return parser


def _options(args: argparse.Namespace) -> SquashOptions:
    return SquashOptions(
        output_file=getattr(args, "output_file", None),
        dry_run=getattr(args, "dry_run", False),
        verbose=getattr(args, "verbose", False),
        keep_frontmatter=getattr(args, "keep_frontmatter", False),
        essential=getattr(args, "essential", False),
        toc=getattr(args, "toc", False),
        git_ignore=getattr(args, "git_ignore", False),
        git_exclude=getattr(args, "git_exclude", False),
        home_override=getattr(args, "home_override", False),
    )


def _print_warnings(diagnostics: Diagnostics) -> None:
    for warning in diagnostics.get_warnings():
        print(format_warning(warning), file=sys.stderr)


def _print_report(report: SquashReport, root: Path, verbose: bool) -> None:
    def rel(path: Path) -> str:
        try:
            return str(path.relative_to(root))
        except ValueError:
            return str(path)

    if report.dry_run:
        print(f"Dry run for recipe '{report.recipe}':")
        for path in report.written:
            print(f"  Would create: {rel(path)}")
        return

    result = report.result
    print(
        f"Squashed recipe '{report.recipe}' into {rel(report.output_path)} "
        f"({len(result.documents)} documents, {len(result.commands)} commands, "
        f"{len(result.skills)} skills, {len(result.executables)} scripts)"
    )
    if verbose:
        for block in result.documents:
            print(f"  {block.label} ({format_tokens(block.token_count)})")
        print(f"  Total: {format_tokens(result.total_tokens)}")
    for outcome in report.agents:
        if outcome.ok and outcome.path is not None:
            print(f"  Subagent '{outcome.agent}' -> {rel(outcome.path)}")
        else:
            print(f"  Subagent '{outcome.agent}' skipped: {outcome.error}")
    if report.mcp_servers:
        print(f"  MCP servers: {', '.join(report.mcp_servers)}")


def _list_recipes(ctx: SquashContext) -> None:
    store = ctx.store()
    definitions = store.definitions()
    if not definitions:
        print("No recipes found.")
        return
    for name in store.names():
        config = definitions[name]
        count = len(config.files) + len(config.sources) + len(config.remote_sources)
        line = f"{name}: {config.description or '(no description)'} [{count} sources"
        if config.subagents:
            line += f", {len(config.subagents)} subagents"
        print(line + "]")


def run(args: argparse.Namespace) -> int:
    config = load_project_config(args.config)
    options = _options(args)
    token_counter = count_tokens if options.verbose else None
    with HttpRemoteFetcher.from_env(config.github_token_env, timeout=config.fetch_timeout) as fetcher:
        ctx = SquashContext.build(config, options, fetcher, token_counter=token_counter)
        try:
            if args.command == "squash":
                report = squash(ctx, args.recipe)
                _print_report(report, ctx.root, options.verbose)
            elif args.command == "list-recipes":
                _list_recipes(ctx)
            elif args.command == "stats":
                path, stats_report = write_stats(ctx, args.recipe, args.output)
                print(
                    f"Wrote token statistics for {len(stats_report.files)} files "
                    f"({format_tokens(stats_report.total_tokens)}) to {path}"
                )
            elif args.command == "clean":
                removed = clean(ctx, args.recipe, deep=args.deep)
                verb = "Would remove" if options.dry_run else "Removed"
                for path in removed:
                    print(f"{verb}: {path}")
                if not removed:
                    print("Nothing to clean.")
        finally:
            _print_warnings(ctx.diagnostics)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("DEBUG" if getattr(args, "verbose", False) else None)
    try:
        return run(args)
    except RulesmithError as exc:
        logger.error("rulesmith_failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == MAIN_MODULE:
    sys.exit(main())
