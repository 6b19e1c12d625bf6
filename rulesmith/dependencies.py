"""Discovery of ``requires`` and ``skills`` references inside loaded documents."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from instrukt_ai_logging import get_logger

from rulesmith.constants import SKILLS_SEGMENT
from rulesmith.errors import SkillReferenceError
from rulesmith.frontmatter_utils import Metadata, list_field
from rulesmith.models import SourceDescriptor, SourceKind, SourceOrigin
from rulesmith.protocols import FileResolver
from rulesmith.remote import is_url, join_remote_reference, parse_github_url

logger = get_logger(__name__)


def has_segment(path_or_url: str, segment: str) -> bool:
    """True when ``segment`` is one of the directory components of a path or URL path."""
    if is_url(path_or_url):
        ref = parse_github_url(path_or_url)
        path = ref.path if ref is not None else path_or_url.split("://", 1)[1].partition("/")[2]
    else:
        path = path_or_url
    parts = path.replace("\\", "/").split("/")
    return segment in parts[:-1]


class DependencyResolver:
    """``SourceExpander`` that follows frontmatter ``requires`` and ``skills`` lists."""

    def __init__(self, resolver: FileResolver) -> None:
        self._resolver = resolver

    def identity(self, descriptor: SourceDescriptor) -> str:
        if descriptor.is_remote:
            return descriptor.path_or_url
        found = self._resolver.resolve(descriptor.path_or_url)
        return str(found) if found is not None else descriptor.path_or_url

    def _resolve_reference(self, descriptor: SourceDescriptor, reference: str) -> tuple[str, SourceKind, bool]:
        """Return (target, kind, exists) for a reference made by ``descriptor``.

        ``exists`` is only meaningful for local targets; remote targets are
        assumed to exist until fetched.
        """
        if is_url(reference):
            return reference, SourceKind.REMOTE, True
        if descriptor.is_remote:
            return join_remote_reference(descriptor.path_or_url, reference), SourceKind.REMOTE, True

        referrer = self._resolver.resolve(descriptor.path_or_url)
        base_dir = referrer.parent if referrer is not None else None
        found = self._resolver.resolve(reference, relative_to=base_dir)
        if found is not None:
            return str(found), SourceKind.LOCAL, True
        ref_path = Path(reference).expanduser()
        if base_dir is not None and not ref_path.is_absolute():
            ref_path = base_dir / ref_path
        return str(ref_path), SourceKind.LOCAL, False

    def requires(self, descriptor: SourceDescriptor, metadata: Optional[Metadata]) -> list[SourceDescriptor]:
        discovered = []
        for reference in list_field(metadata, "requires"):
            target, kind, exists = self._resolve_reference(descriptor, reference)
            if not exists:
                logger.debug("require_unresolved", reference=reference, referrer=descriptor.path_or_url)
            discovered.append(
                SourceDescriptor(target, kind, origin=SourceOrigin.REQUIRES, referrer=descriptor.path_or_url)
            )
        return discovered

    def skills(self, descriptor: SourceDescriptor, metadata: Optional[Metadata]) -> list[SourceDescriptor]:
        discovered = []
        for reference in list_field(metadata, "skills"):
            target, kind, exists = self._resolve_reference(descriptor, reference)
            if not exists:
                raise SkillReferenceError(reference, descriptor.path_or_url, "skill file not found")
            if not has_segment(target, SKILLS_SEGMENT):
                raise SkillReferenceError(
                    reference,
                    descriptor.path_or_url,
                    f"must live in a /{SKILLS_SEGMENT}/ directory (resolved to '{target}')",
                )
            discovered.append(SourceDescriptor(target, kind, origin=SourceOrigin.SKILL, referrer=descriptor.path_or_url))
        return discovered

    def expand(
        self,
        descriptor: SourceDescriptor,
        metadata: Optional[Metadata],
        visited: set[str],
        include_requires: bool = True,
    ) -> list[SourceDescriptor]:
        candidates = self.requires(descriptor, metadata) if include_requires else []
        candidates += self.skills(descriptor, metadata)

        batch: list[SourceDescriptor] = []
        seen: set[str] = set()
        for candidate in candidates:
            key = self.identity(candidate)
            if key in visited or key in seen:
                continue
            seen.add(key)
            batch.append(candidate)
        return batch
