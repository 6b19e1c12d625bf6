"""Token statistics report for rule files.

``rulesmith stats`` measures every local rule file of a recipe (or of the
whole rules directory), flags ``requires`` cycles and lists files that no
recipe reaches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from instrukt_ai_logging import get_logger

from rulesmith.constants import STATS_FILENAME, TIMESTAMP_FORMAT
from rulesmith.context import SquashContext
from rulesmith.dependencies import DependencyResolver
from rulesmith.frontmatter_utils import parse
from rulesmith.models import SourceDescriptor, SourceKind
from rulesmith.tokens import count_tokens

logger = get_logger(__name__)

TokenCounter = Callable[[str], Optional[int]]
Graph = dict[Path, list[Path]]


@dataclass(frozen=True)
class FileStat:
    path: Path
    size: int
    tokens: int


@dataclass
class StatsReport:
    files: list[FileStat]
    cycles: list[list[Path]] = field(default_factory=list)
    orphaned: list[Path] = field(default_factory=list)
    recipes: dict[str, list[FileStat]] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return sum(stat.tokens for stat in self.files)

    @property
    def total_size(self) -> int:
        return sum(stat.size for stat in self.files)


def file_stats(paths: Iterable[Path], counter: TokenCounter = count_tokens) -> list[FileStat]:
    """Size and token count per file, largest token count first."""
    stats = []
    for path in dict.fromkeys(paths):
        content = path.read_text(encoding="utf-8", errors="replace")
        stats.append(FileStat(path, len(content.encode("utf-8")), counter(content) or 0))
    return sorted(stats, key=lambda stat: -stat.tokens)


def requirement_graph(paths: Iterable[Path], expander: DependencyResolver) -> Graph:
    """Each file's existing ``requires`` targets."""
    graph: Graph = {}
    for path in paths:
        try:
            metadata, _ = parse(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            continue
        targets = expander.requires(SourceDescriptor(str(path), SourceKind.LOCAL), metadata)
        graph[path] = [Path(t.path_or_url) for t in targets if not t.is_remote and Path(t.path_or_url).is_file()]
    return graph


def find_cycles(graph: Graph) -> list[list[Path]]:
    """Distinct ``requires`` cycles, each rotated to start at its smallest path."""
    found: list[list[Path]] = []
    visited: set[Path] = set()

    def visit(node: Path, stack: list[Path]) -> None:
        visited.add(node)
        stack.append(node)
        for neighbor in graph.get(node, []):
            if neighbor in stack:
                found.append(stack[stack.index(neighbor) :])
            elif neighbor not in visited and neighbor in graph:
                visit(neighbor, stack)
        stack.pop()

    for node in sorted(graph):
        if node not in visited:
            visit(node, [])

    cycles: list[list[Path]] = []
    seen: set[tuple[Path, ...]] = set()
    for cycle in found:
        start = cycle.index(min(cycle))
        rotated = cycle[start:] + cycle[:start]
        if tuple(rotated) not in seen:
            seen.add(tuple(rotated))
            cycles.append(rotated)
    return cycles


def reachable(roots: Iterable[Path], graph: Graph, expander: DependencyResolver) -> set[Path]:
    """``roots`` plus everything they transitively require."""
    used: set[Path] = set()
    pending = list(roots)
    while pending:
        path = pending.pop()
        if path in used:
            continue
        used.add(path)
        edges = graph[path] if path in graph else requirement_graph([path], expander).get(path, [])
        pending.extend(edges)
    return used


def _local_paths(ctx: SquashContext, sources: Sequence[SourceDescriptor]) -> list[Path]:
    paths = []
    for source in sources:
        if source.is_remote:
            continue
        path = ctx.resolver.resolve(source.path_or_url)
        if path is not None and path.suffix == ".md":
            paths.append(path)
    return paths


def _rules_dir_files(rules_dir: Path) -> list[Path]:
    if not rules_dir.is_dir():
        return []
    return [
        path.resolve()
        for path in sorted(rules_dir.rglob("*.md"))
        if not any(part.startswith(".") for part in path.relative_to(rules_dir).parts)
    ]


def collect_stats(
    ctx: SquashContext,
    recipe_name: Optional[str] = None,
    exclude: Optional[Path] = None,
    counter: TokenCounter = count_tokens,
) -> StatsReport:
    """Build the report without writing it.

    Raises:
        RecipeNotFoundError: When ``recipe_name`` is given and unknown.
    """
    store = ctx.store()
    expander = ctx.expander()
    if recipe_name:
        paths = _local_paths(ctx, store.load(recipe_name).sources)
    else:
        paths = _rules_dir_files(ctx.rules_dir)
    paths = [path for path in paths if path != exclude and path.name != STATS_FILENAME]

    stats = file_stats(paths, counter)
    graph = requirement_graph(paths, expander)
    by_path = {stat.path: stat for stat in stats}

    recipes: dict[str, list[FileStat]] = {}
    recipe_roots: list[Path] = []
    for name in store.names():
        members = _local_paths(ctx, store.load(name).sources)
        recipe_roots.extend(members)
        measured = sorted((by_path[p] for p in dict.fromkeys(members) if p in by_path), key=lambda s: -s.tokens)
        if measured:
            recipes[name] = measured

    if store.names():
        used = reachable(recipe_roots, graph, expander)
        orphaned = sorted(path for path in paths if path not in used)
    else:
        orphaned = sorted(paths)

    return StatsReport(files=stats, cycles=find_cycles(graph), orphaned=orphaned, recipes=recipes)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_number(value: int) -> str:
    return f"{value:,}"


def format_bytes(size: int) -> str:
    if size >= 1_048_576:
        return f"{size / 1_048_576:.1f} MB"
    if size >= 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size} B"


def _relative(path: Path, rules_dir: Path) -> str:
    try:
        return path.relative_to(rules_dir).as_posix()
    except ValueError:
        return str(path)


def _table(stats: Sequence[FileStat], rules_dir: Path) -> list[str]:
    lines = ["| # | Tokens | Size | File |", "|--:|-------:|-----:|:-----|"]
    for idx, stat in enumerate(stats, start=1):
        link = f"[{stat.path.name}]({_relative(stat.path, rules_dir)})"
        lines.append(f"| {idx} | {format_number(stat.tokens)} | {format_bytes(stat.size)} | {link} |")
    return [*lines, ""]


def render_stats(report: StatsReport, rules_dir: Path, generated_at: str) -> str:
    lines = [
        "# Rulesmith Token Statistics",
        "",
        f"Generated: {generated_at}",
        "",
        "## Summary",
        "",
        f"- **Total Files**: {len(report.files)}",
        f"- **Total Tokens**: {format_number(report.total_tokens)}",
        f"- **Total Size**: {format_bytes(report.total_size)}",
        "",
    ]

    if report.cycles:
        lines += ["## Circular Dependencies", "", f"Found {len(report.cycles)} circular chain(s) in requires:", ""]
        for idx, cycle in enumerate(report.cycles, start=1):
            chain = " -> ".join(path.name for path in [*cycle, cycle[0]])
            lines += [f"### Cycle {idx}", "", f"`{chain}`", ""]
            lines += [f"- `{_relative(path, rules_dir)}`" for path in cycle]
            lines.append("")

    lines += ["## Files by Token Count", "", *_table(report.files, rules_dir)]

    for name in sorted(report.recipes):
        members = report.recipes[name]
        lines += [
            f"## Recipe: {name}",
            "",
            f"- **Files**: {len(members)}",
            f"- **Total Tokens**: {format_number(sum(s.tokens for s in members))}",
            f"- **Total Size**: {format_bytes(sum(s.size for s in members))}",
            "",
            *_table(members, rules_dir),
        ]

    if report.orphaned:
        lines += ["## Orphaned Files", "", f"{len(report.orphaned)} files not used by any recipe or requires:", ""]
        lines += [f"- [{path.name}]({_relative(path, rules_dir)})" for path in report.orphaned]
        lines.append("")

    lines += ["---", "*Generated by rulesmith*"]
    return "\n".join(lines) + "\n"


def write_stats(
    ctx: SquashContext,
    recipe_name: Optional[str] = None,
    output: Optional[str] = None,
    counter: Optional[TokenCounter] = None,
) -> tuple[Path, StatsReport]:
    """Write the report to ``output`` (default: ``stats.md`` in the rules directory)."""
    target = ctx.path(output) if output else ctx.rules_dir / STATS_FILENAME
    report = collect_stats(ctx, recipe_name, exclude=target.resolve(), counter=counter or count_tokens)
    path = ctx.writer.write_text(target, render_stats(report, ctx.rules_dir, ctx.clock().strftime(TIMESTAMP_FORMAT)))
    logger.info("stats_written", path=str(path), files=len(report.files), tokens=report.total_tokens)
    return path, report
