"""Recipe loading: normalizes every supported source shape into descriptors."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from instrukt_ai_logging import get_logger

from rulesmith.config.schema import GitHubSource, LocalSource, RecipeConfig, SourceEntry, SubagentBinding
from rulesmith.diagnostics import Diagnostics
from rulesmith.errors import FetchError, RecipeNotFoundError
from rulesmith.frontmatter_utils import list_field, parse
from rulesmith.models import SourceDescriptor, SourceKind
from rulesmith.protocols import RemoteFetcher
from rulesmith.remote import github_blob_url, github_tree_url, is_url, parse_github_url
from rulesmith.resolver import LocalFileResolver

logger = get_logger(__name__)


@dataclass(frozen=True)
class Recipe:
    name: str
    config: RecipeConfig
    sources: tuple[SourceDescriptor, ...]

    @property
    def description(self) -> Optional[str]:
        return self.config.description

    @property
    def subagents(self) -> list[SubagentBinding]:
        return self.config.subagents


def _local(path: str) -> SourceDescriptor:
    return SourceDescriptor(path, SourceKind.LOCAL)


def _remote(url: str) -> SourceDescriptor:
    return SourceDescriptor(url, SourceKind.REMOTE)


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


class RecipeStore:
    """Declarative recipe definitions plus the logic to turn one into sources.

    Loading is not cached: every ``load`` re-reads directories and tagged files
    so a subagent recipe and the main recipe are resolved independently.
    """

    def __init__(
        self,
        recipes: Mapping[str, RecipeConfig],
        resolver: LocalFileResolver,
        fetcher: RemoteFetcher,
        rules_dir: Path,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self._recipes = dict(recipes)
        self._resolver = resolver
        self._fetcher = fetcher
        self._rules_dir = rules_dir
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def names(self) -> list[str]:
        return sorted(self._recipes)

    def definitions(self) -> dict[str, RecipeConfig]:
        return dict(self._recipes)

    def definition(self, name: str) -> RecipeConfig:
        try:
            return self._recipes[name]
        except KeyError:
            raise RecipeNotFoundError(name, self._recipes) from None

    def load(self, name: str, essential: bool = False) -> Recipe:
        """Load a recipe by name.

        Raises:
            RecipeNotFoundError: When no recipe has this name.
        """
        config = self.definition(name)
        sources: list[SourceDescriptor] = []
        for entry in config.files:
            sources.extend(self._expand_string(entry, include_scripts=False))
        for source in config.sources:
            sources.extend(self._expand_source(source))
        for url in config.remote_sources:
            sources.extend(self._expand_remote(url))
        sources.extend(_local(str(path)) for path in self.tagged_files(name))

        if essential:
            sources = self._essential_only(sources)
        logger.debug("recipe_loaded", recipe=name, sources=len(sources))
        return Recipe(name=name, config=config, sources=tuple(sources))

    # ------------------------------------------------------------------
    # Source shapes
    # ------------------------------------------------------------------

    def _expand_source(self, source: SourceEntry) -> list[SourceDescriptor]:
        if isinstance(source, GitHubSource):
            return self._expand_github(source)
        if isinstance(source, LocalSource):
            return [_local(path) for path in source.paths]
        return self._expand_string(source, include_scripts=True)

    def _expand_string(self, entry: str, include_scripts: bool) -> list[SourceDescriptor]:
        if is_url(entry):
            return self._expand_remote(entry)
        located = self._resolver.locate(entry)
        if located is not None and located.is_dir():
            return self._expand_directory(located, include_scripts)
        return [_local(entry)]

    def _expand_directory(self, directory: Path, include_scripts: bool) -> list[SourceDescriptor]:
        found = sorted(directory.rglob("*.md"))
        if include_scripts:
            found += sorted(path for path in directory.rglob("*.sh") if "bin" in path.relative_to(directory).parts)
        if not found:
            self._diagnostics.warn("recipe_directory_empty", str(directory))
        return [_local(str(path)) for path in found]

    def _expand_remote(self, url: str) -> list[SourceDescriptor]:
        ref = parse_github_url(url)
        if ref is None or ref.kind == "blob":
            return [_remote(url)]
        return self._list_remote(url)

    def _expand_github(self, source: GitHubSource) -> list[SourceDescriptor]:
        sources: list[SourceDescriptor] = []
        for rule in source.rules:
            if rule.endswith(".md"):
                sources.append(_remote(github_blob_url(source.github, source.branch, rule)))
            else:
                sources.extend(self._list_remote(github_tree_url(source.github, source.branch, rule)))
        return sources

    def _list_remote(self, url: str) -> list[SourceDescriptor]:
        try:
            return [_remote(found) for found in self._fetcher.list_directory(url)]
        except FetchError as exc:
            self._diagnostics.warn("remote_listing_failed", url, exc.reason)
            return []

    # ------------------------------------------------------------------
    # Tagged files and filters
    # ------------------------------------------------------------------

    def tagged_files(self, name: str) -> list[Path]:
        """Markdown files under the rules directory whose ``recipes`` frontmatter names this recipe."""
        root = self._rules_dir
        if not root.is_dir():
            return []
        tagged = []
        for path in sorted(root.rglob("*.md")):
            if _is_hidden(path, root):
                continue
            try:
                metadata, _ = parse(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError):
                continue
            if name in list_field(metadata, "recipes"):
                tagged.append(path.resolve())
        return tagged

    def _essential_only(self, sources: Iterable[SourceDescriptor]) -> list[SourceDescriptor]:
        kept = []
        for source in sources:
            if source.is_remote:
                continue
            path = self._resolver.resolve(source.path_or_url)
            if path is None:
                continue
            try:
                metadata, _ = parse(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError):
                continue
            if metadata and metadata.get("essential") is True:
                kept.append(source)
        return kept
