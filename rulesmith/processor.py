"""Source processing: the traversal engine behind every squash.

The work queue is depth-first. When a document declares dependencies, they are
spliced at the front of the queue followed by a marker that emits the document
itself, so every dependency lands before its referrer in the output while
siblings keep their declared order.
"""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

from instrukt_ai_logging import get_logger

from rulesmith.constants import BIN_SEGMENT, COMMANDS_SEGMENT, EXECUTABLE_SUFFIX, SKILLS_SEGMENT
from rulesmith.dependencies import has_segment
from rulesmith.models import (
    Classification,
    FailureReason,
    ProcessResult,
    ResolvedBlock,
    SourceDescriptor,
    SourceFailure,
)
from rulesmith.protocols import FileResolver, FrontmatterParser, RemoteFetcher, SourceExpander

logger = get_logger(__name__)

TokenCounter = Callable[[str], Optional[int]]


def classify(path_or_url: str) -> Classification:
    """Classify a source purely from its path."""
    if has_segment(path_or_url, SKILLS_SEGMENT):
        return Classification.SKILL
    if has_segment(path_or_url, COMMANDS_SEGMENT):
        return Classification.COMMAND
    if has_segment(path_or_url, BIN_SEGMENT) and path_or_url.endswith(EXECUTABLE_SUFFIX):
        return Classification.EXECUTABLE
    return Classification.DOCUMENT


@dataclass(frozen=True)
class _EmitBlock:
    block: ResolvedBlock


_QueueItem = Union[SourceDescriptor, _EmitBlock]


class SourceProcessor:
    def __init__(
        self,
        resolver: FileResolver,
        fetcher: RemoteFetcher,
        parser: FrontmatterParser,
        expander: SourceExpander,
        cache: Optional[dict[str, str]] = None,
        token_counter: Optional[TokenCounter] = None,
        classify_roots: Sequence[Path] = (),
    ) -> None:
        self._resolver = resolver
        self._fetcher = fetcher
        self._parser = parser
        self._expander = expander
        # Remote content shared across runs of the same invocation.
        self._cache = cache if cache is not None else {}
        self._count_tokens = token_counter
        # Local files are classified on their path below the deepest matching root.
        self._classify_roots = sorted(classify_roots, key=lambda base: len(base.parts), reverse=True)

    def process(self, sources: Iterable[SourceDescriptor], keep_frontmatter: bool = False) -> ProcessResult:
        """Resolve, classify and deduplicate sources in depth-first order.

        Per-source failures are collected in ``ProcessResult.failures``; the
        only exception that escapes is ``SkillReferenceError``.
        """
        counter = itertools.count()
        seeds = [replace(source, order_hint=next(counter)) for source in sources]
        self._prefetch(seeds)

        result = ProcessResult()
        visited: set[str] = set()
        queue: deque[_QueueItem] = deque(seeds)

        while queue:
            item = queue.popleft()
            if isinstance(item, _EmitBlock):
                result.add(item.block)
                continue

            identity = self._expander.identity(item)
            if identity in visited:
                logger.debug("source_already_processed", identity=identity)
                continue
            visited.add(identity)

            loaded = self._load(item, identity, keep_frontmatter)
            if isinstance(loaded, SourceFailure):
                logger.warning("source_skipped", path=loaded.target, reason=loaded.detail)
                result.failures.append(loaded)
                continue

            if loaded.classification is Classification.EXECUTABLE:
                result.add(loaded)
                continue

            discovered = self._expander.expand(
                item,
                loaded.metadata,
                visited,
                include_requires=loaded.classification is not Classification.SKILL,
            )
            if not discovered:
                result.add(loaded)
                continue

            frontier: list[_QueueItem] = [replace(found, order_hint=next(counter)) for found in discovered]
            frontier.append(_EmitBlock(loaded))
            queue.extendleft(reversed(frontier))

        return result

    def _prefetch(self, seeds: list[SourceDescriptor]) -> None:
        pending = [seed.path_or_url for seed in seeds if seed.is_remote and seed.path_or_url not in self._cache]
        if not pending:
            return
        self._cache.update(self._fetcher.prefetch(pending))

    def _classification_path(self, location: Path) -> str:
        for base in self._classify_roots:
            try:
                return location.relative_to(base).as_posix()
            except ValueError:
                continue
        return str(location)

    def _read_remote(self, descriptor: SourceDescriptor) -> Union[str, SourceFailure]:
        url = descriptor.path_or_url
        if url in self._cache:
            return self._cache[url]
        fetched = self._fetcher.fetch(url)
        if not fetched.ok or fetched.content is None:
            return SourceFailure(descriptor, FailureReason.FETCH_FAILED, fetched.error or "empty response")
        self._cache[url] = fetched.content
        return fetched.content

    def _load(
        self, descriptor: SourceDescriptor, identity: str, keep_frontmatter: bool
    ) -> Union[ResolvedBlock, SourceFailure]:
        location: Optional[Path] = None
        if descriptor.is_remote:
            classification = classify(descriptor.path_or_url)
            raw = self._read_remote(descriptor)
            if isinstance(raw, SourceFailure):
                return raw
        else:
            location = self._resolver.resolve(descriptor.path_or_url)
            if location is None:
                return SourceFailure(descriptor, FailureReason.NOT_FOUND, "file not found")
            classification = classify(self._classification_path(location))
            if classification is Classification.EXECUTABLE:
                return ResolvedBlock(identity, descriptor, classification, "", "", location=location)
            try:
                raw = location.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                return SourceFailure(descriptor, FailureReason.READ_FAILED, str(exc))

        if classification is Classification.EXECUTABLE:
            return ResolvedBlock(identity, descriptor, classification, raw, raw, location=location)

        metadata, body = self._parser.parse(raw)
        content = raw if keep_frontmatter or metadata is None else body
        tokens = self._count_tokens(content) if self._count_tokens else None
        return ResolvedBlock(
            identity,
            descriptor,
            classification,
            raw,
            content,
            metadata=metadata,
            location=location,
            token_count=tokens,
        )
