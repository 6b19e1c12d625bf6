"""Narrow interfaces between the squash pipeline and its collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from rulesmith.frontmatter_utils import Metadata
from rulesmith.models import FetchResult, SourceDescriptor


@runtime_checkable
class FileResolver(Protocol):
    """Maps a relative or absolute reference to an existing file."""

    def resolve(self, reference: str, relative_to: Optional[Path] = None) -> Optional[Path]:
        """Resolve a reference to an absolute, symlink-free path.

        Args:
            reference: Path as written in a recipe or frontmatter.
            relative_to: Directory of the referring document, when the
                reference is relative to another file.

        Returns:
            The canonical path, or None when no such file exists.
        """
        ...


@runtime_checkable
class RemoteFetcher(Protocol):
    """Resolves remote references to text."""

    def fetch(self, url: str) -> FetchResult:
        """Fetch one URL. Never raises for network or HTTP failures."""
        ...

    def prefetch(self, urls: Iterable[str]) -> dict[str, str]:
        """Fetch many URLs in as few round-trips as possible.

        URLs missing from the returned mapping were not prefetched and should
        be fetched individually.
        """
        ...

    def list_directory(self, url: str) -> list[str]:
        """Expand a remote directory URL into the markdown file URLs beneath it.

        Raises:
            FetchError: When the listing cannot be retrieved.
        """
        ...


@runtime_checkable
class FrontmatterParser(Protocol):
    def parse(self, content: str) -> tuple[Optional[Metadata], str]: ...


@runtime_checkable
class SourceExpander(Protocol):
    """Discovers outbound references of a loaded document."""

    def identity(self, descriptor: SourceDescriptor) -> str:
        """Canonical deduplication key for a descriptor."""
        ...

    def expand(
        self,
        descriptor: SourceDescriptor,
        metadata: Optional[Metadata],
        visited: set[str],
        include_requires: bool = True,
    ) -> list[SourceDescriptor]:
        """Return new descriptors to splice at the front of the work queue.

        Raises:
            SkillReferenceError: When a ``skills`` entry is missing or lives
                outside a ``skills`` directory.
        """
        ...
