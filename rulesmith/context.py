"""Explicit per-invocation state shared by the orchestrator and generators.

One ``SquashContext`` is built for each CLI invocation (or test) and passed
down; nothing in rulesmith keeps module-level state between runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from rulesmith.artifacts import ArtifactWriter
from rulesmith.config.loader import load_recipes, recipe_files
from rulesmith.config.schema import RecipeConfig, RulesmithConfig
from rulesmith.dependencies import DependencyResolver
from rulesmith.diagnostics import Diagnostics
from rulesmith.frontmatter_utils import YamlFrontmatterParser
from rulesmith.processor import SourceProcessor, TokenCounter
from rulesmith.protocols import FrontmatterParser, RemoteFetcher
from rulesmith.recipes import RecipeStore
from rulesmith.resolver import LocalFileResolver


@dataclass
class SquashOptions:
    """Flags for a single squash run."""

    output_file: Optional[str] = None
    dry_run: bool = False
    verbose: bool = False
    keep_frontmatter: bool = False
    essential: bool = False
    toc: bool = False
    git_ignore: bool = False
    git_exclude: bool = False
    home_override: bool = False


@dataclass
class SquashContext:
    config: RulesmithConfig
    options: SquashOptions
    recipes: dict[str, RecipeConfig]
    fetcher: RemoteFetcher
    root: Path
    rules_dir: Path
    resolver: LocalFileResolver
    parser: FrontmatterParser = field(default_factory=YamlFrontmatterParser)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    prefetch_cache: dict[str, str] = field(default_factory=dict)
    token_counter: Optional[TokenCounter] = None
    clock: Callable[[], datetime] = datetime.now
    writer: ArtifactWriter = field(init=False)

    def __post_init__(self) -> None:
        self.writer = ArtifactWriter(self.root, dry_run=self.options.dry_run)

    @classmethod
    def build(
        cls,
        config: RulesmithConfig,
        options: SquashOptions,
        fetcher: RemoteFetcher,
        root: Optional[Path] = None,
        token_counter: Optional[TokenCounter] = None,
    ) -> SquashContext:
        """Wire a context from configuration, loading the recipe store from disk."""
        root = (root or Path.cwd()).resolve()
        rules_dir = (root / Path(config.rules_dir).expanduser()).resolve()
        resolver = LocalFileResolver(
            search_roots=[rules_dir, *(Path(p).expanduser() for p in config.search_paths)],
            cwd=root,
        )
        return cls(
            config=config,
            options=options,
            recipes=load_recipes(recipe_files(config, root)),
            fetcher=fetcher,
            root=root,
            rules_dir=rules_dir,
            resolver=resolver,
            token_counter=token_counter,
        )

    def expander(self) -> DependencyResolver:
        return DependencyResolver(self.resolver)

    def processor(self) -> SourceProcessor:
        """A processor for one traversal; visited state lives inside each ``process`` call."""
        return SourceProcessor(
            self.resolver,
            self.fetcher,
            self.parser,
            self.expander(),
            cache=self.prefetch_cache,
            token_counter=self.token_counter,
            classify_roots=[self.root, *(base.resolve() for base in self.resolver.search_roots)],
        )

    def store(self) -> RecipeStore:
        return RecipeStore(self.recipes, self.resolver, self.fetcher, self.rules_dir, self.diagnostics)

    def path(self, configured: str) -> Path:
        candidate = Path(configured).expanduser()
        return candidate if candidate.is_absolute() else self.root / candidate
