"""Table of contents for the main output file."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from rulesmith.artifacts import display_path
from rulesmith.models import ResolvedBlock
from rulesmith.remote import parse_github_url

TOC_HEADING = "## Table of Contents"
COMMANDS_HEADING = "### Available Slash Commands"
NO_DESCRIPTION = "Command description not available"

_HEADER_RE = re.compile(r"^(#+)\s+(.+)$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")


@dataclass(frozen=True)
class Header:
    level: int
    text: str
    anchor: str


def slugify(text: str, prefix: str = "") -> str:
    anchor = re.sub(r"[^\w\s-]", "", text.lower())
    anchor = re.sub(r"-+", "-", re.sub(r"\s+", "-", anchor)).strip("-")
    return f"{prefix}-{anchor}" if prefix else anchor


def anchor_prefix(source: str) -> str:
    """``core/git-basics.md`` -> ``core-git-basics``; GitHub URLs use their repo path."""
    path = source
    ref = parse_github_url(source)
    if ref is not None:
        path = ref.path
    elif source.startswith(("http://", "https://")):
        path = source.rstrip("/").rsplit("/", 1)[-1]
    path = path.lower()
    if path.endswith(".md"):
        path = path[: -len(".md")]
    path = re.sub(r"[^\w/-]", "", path)
    return re.sub(r"/+", "-", path).strip("-")


def _heading_lines(content: str) -> Iterator[tuple[int, str, Optional[re.Match[str]]]]:
    """Yield (index, line, header match); headers inside fenced code never match."""
    in_fence = False
    for index, line in enumerate(content.splitlines()):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            yield index, line, None
            continue
        yield index, line, None if in_fence else _HEADER_RE.match(line)


def extract_headers(content: str, prefix: str = "") -> list[Header]:
    headers = []
    for _, _, match in _heading_lines(content):
        if match:
            text = match.group(2).strip()
            headers.append(Header(len(match.group(1)), text, slugify(text, prefix)))
    return headers


def add_anchor_ids(content: str, prefix: str) -> str:
    """Precede every heading with an HTML anchor the TOC links to."""
    lines = []
    for _, line, match in _heading_lines(content):
        if match is None:
            lines.append(line)
            continue
        text = match.group(2).strip()
        lines.extend([f'<a id="{slugify(text, prefix)}"></a>', "", f"{match.group(1)} {text}"])
    return "\n".join(lines)


def command_name(path: str) -> str:
    stem = posixpath.basename(path)
    if stem.endswith(".md"):
        stem = stem[: -len(".md")]
    return re.sub(r"[_-]", ":", stem)


def command_description(block: ResolvedBlock) -> str:
    description = (block.metadata or {}).get("description")
    if description:
        return str(description)
    for line in block.content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "---")):
            continue
        if len(stripped) > 10:
            text = re.sub(r"[*_`]", "", stripped)
            return text[:80] + ("..." if len(stripped) > 80 else "")
    return NO_DESCRIPTION


def block_prefix(block: ResolvedBlock, rules_dir: Optional[Path]) -> str:
    return anchor_prefix(display_path(block, rules_dir))


def build_toc(
    documents: Sequence[ResolvedBlock], commands: Sequence[ResolvedBlock] = (), rules_dir: Optional[Path] = None
) -> str:
    lines = [TOC_HEADING, ""]
    for block in documents:
        for header in extract_headers(block.content, block_prefix(block, rules_dir)):
            indent = "  " * (header.level - 1)
            lines.append(f"{indent}- [{header.text}](#{header.anchor})")
    if commands:
        lines.extend(["", COMMANDS_HEADING, ""])
        for block in commands:
            name = command_name(display_path(block, rules_dir))
            lines.append(f"- `/{name}` - {command_description(block)}")
    return "\n".join(lines).rstrip() + "\n"
