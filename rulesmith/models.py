"""Typed records flowing through the squash pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from rulesmith.frontmatter_utils import Metadata


class SourceKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class SourceOrigin(str, Enum):
    DIRECT = "direct"
    REQUIRES = "via-requires"
    SKILL = "via-skill"


class Classification(str, Enum):
    DOCUMENT = "document"
    COMMAND = "command"
    SKILL = "skill"
    EXECUTABLE = "executable"


class FailureReason(str, Enum):
    NOT_FOUND = "not_found"
    FETCH_FAILED = "fetch_failed"
    READ_FAILED = "read_failed"


@dataclass(frozen=True)
class SourceDescriptor:
    """Reference to one unit of content queued for resolution."""

    path_or_url: str
    kind: SourceKind
    origin: SourceOrigin = SourceOrigin.DIRECT
    order_hint: int = 0
    # Path or URL of the document that referenced this one.
    referrer: Optional[str] = None

    @property
    def is_remote(self) -> bool:
        return self.kind is SourceKind.REMOTE


@dataclass(frozen=True)
class ResolvedBlock:
    """Successfully loaded source, keyed by its canonical identity."""

    identity: str
    descriptor: SourceDescriptor
    classification: Classification
    raw_content: str
    content: str
    metadata: Optional[Metadata] = None
    # Local file location, used when copying executables.
    location: Optional[Path] = None
    token_count: Optional[int] = None

    @property
    def label(self) -> str:
        if self.location is not None:
            return str(self.location)
        return self.identity

    @property
    def is_local(self) -> bool:
        return self.descriptor.kind is SourceKind.LOCAL


@dataclass(frozen=True)
class SourceFailure:
    descriptor: SourceDescriptor
    reason: FailureReason
    detail: str

    @property
    def target(self) -> str:
        return self.descriptor.path_or_url


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching one remote URL."""

    url: str
    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.content is not None


@dataclass
class ProcessResult:
    """Four ordered output collections plus the per-item failures of one run."""

    documents: list[ResolvedBlock] = field(default_factory=list)
    commands: list[ResolvedBlock] = field(default_factory=list)
    skills: list[ResolvedBlock] = field(default_factory=list)
    executables: list[ResolvedBlock] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)

    def add(self, block: ResolvedBlock) -> None:
        bucket = {
            Classification.DOCUMENT: self.documents,
            Classification.COMMAND: self.commands,
            Classification.SKILL: self.skills,
            Classification.EXECUTABLE: self.executables,
        }[block.classification]
        bucket.append(block)

    @property
    def blocks(self) -> list[ResolvedBlock]:
        return [*self.documents, *self.commands, *self.skills, *self.executables]

    @property
    def total_tokens(self) -> int:
        return sum(block.token_count or 0 for block in self.blocks)
