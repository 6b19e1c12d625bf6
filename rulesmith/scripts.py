"""Helper scripts declared in rule frontmatter.

A rule file can ship scripts alongside its instructions::

    scripts:
      files: [tools/lint.sh]
      remote: [https://github.com/acme/rules/blob/main/bin/check.sh]

or simply ``scripts: [tools/lint.sh]``. Each script is installed flat under
the scripts directory, and absolute references to a local script in the main
output are rewritten to its installed location.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from instrukt_ai_logging import get_logger

from rulesmith.artifacts import ArtifactWriter
from rulesmith.diagnostics import Diagnostics
from rulesmith.frontmatter_utils import list_field
from rulesmith.models import ResolvedBlock
from rulesmith.protocols import RemoteFetcher
from rulesmith.remote import is_url, join_remote_reference
from rulesmith.resolver import LocalFileResolver

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScriptRef:
    name: str
    declared_in: str
    source: Optional[Path] = None
    url: Optional[str] = None


def declared_scripts(block: ResolvedBlock) -> tuple[list[str], list[str]]:
    """(files, remote) entries of a block's ``scripts`` frontmatter."""
    value = (block.metadata or {}).get("scripts")
    if isinstance(value, dict):
        return list_field(value, "files"), list_field(value, "remote")
    return list_field(block.metadata, "scripts"), []


def _resolve_file(
    block: ResolvedBlock, entry: str, resolver: LocalFileResolver, diagnostics: Diagnostics
) -> Optional[ScriptRef]:
    name = posixpath.basename(entry.rstrip("/"))
    if is_url(entry):
        return ScriptRef(name, block.identity, url=entry)
    if not block.is_local:
        return ScriptRef(name, block.identity, url=join_remote_reference(block.identity, entry))

    found = None
    if block.location is not None:
        found = resolver.resolve(entry, relative_to=block.location.parent)
    found = found or resolver.resolve(entry)
    if found is None:
        diagnostics.warn("script_not_found", entry, f"declared in {block.identity}")
        return None
    return ScriptRef(found.name, block.identity, source=found)


def collect_scripts(
    blocks: Iterable[ResolvedBlock], resolver: LocalFileResolver, diagnostics: Diagnostics
) -> list[ScriptRef]:
    scripts: list[ScriptRef] = []
    seen: set[str] = set()
    for block in blocks:
        files, remote = declared_scripts(block)
        candidates = [_resolve_file(block, entry, resolver, diagnostics) for entry in files]
        candidates += [ScriptRef(posixpath.basename(url), block.identity, url=url) for url in remote]
        for script in candidates:
            if script is None:
                continue
            key = str(script.source) if script.source is not None else str(script.url)
            if key in seen:
                continue
            seen.add(key)
            scripts.append(script)
    return scripts


def install_scripts(
    writer: ArtifactWriter,
    scripts: Sequence[ScriptRef],
    scripts_dir: Path,
    fetcher: RemoteFetcher,
    diagnostics: Diagnostics,
) -> list[Path]:
    """Copy local scripts and download remote ones. Dry runs never fetch."""
    written = []
    for script in scripts:
        target = scripts_dir / script.name
        if script.source is not None or writer.dry_run:
            written.append(writer.install_executable(target, source=script.source))
            continue
        url = str(script.url)
        fetched = fetcher.fetch(url)
        if not fetched.ok or fetched.content is None:
            diagnostics.warn("script_fetch_failed", url, fetched.error or "empty response")
            continue
        written.append(writer.install_executable(target, content=fetched.content))
    if written:
        logger.debug("scripts_installed", count=len(written), path=str(scripts_dir))
    return written


def script_mappings(scripts: Iterable[ScriptRef], scripts_dir: str) -> dict[str, str]:
    """Absolute source path -> installed path, for local scripts only."""
    prefix = scripts_dir.rstrip("/")
    return {str(script.source): f"{prefix}/{script.name}" for script in scripts if script.source is not None}


def rewrite_script_references(content: str, mappings: Mapping[str, str]) -> str:
    for source, installed in mappings.items():
        content = content.replace(source, installed)
    return content
