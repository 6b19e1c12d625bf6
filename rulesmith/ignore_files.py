"""Idempotent ignore-file bookkeeping for generated artifacts."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from instrukt_ai_logging import get_logger

from rulesmith.constants import IGNORE_SECTION_HEADER

logger = get_logger(__name__)


def ignore_patterns(output_file: str, commands_dir: str, has_commands: bool) -> list[str]:
    patterns = [output_file]
    if has_commands:
        patterns.append(commands_dir.rstrip("/") + "/")
    return patterns


def merge_ignore_section(existing: str, patterns: Sequence[str]) -> str:
    """Replace (or append) the generated-files section of an ignore file.

    The section runs from the header line up to the first blank line or
    comment; everything outside it is preserved verbatim.
    """
    lines = existing.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    section = [IGNORE_SECTION_HEADER, *patterns]

    if IGNORE_SECTION_HEADER in lines:
        start = lines.index(IGNORE_SECTION_HEADER)
        end = start + 1
        while end < len(lines) and lines[end].strip() and not lines[end].startswith("#"):
            end += 1
        lines[start:end] = section
    else:
        if lines and lines[-1].strip():
            lines.append("")
        lines.extend(section)
    return "\n".join(lines) + "\n"


def update_ignore_file(path: Path, patterns: Sequence[str], dry_run: bool = False) -> bool:
    """Write the generated-files section into ``path``. Returns True when the file changed."""
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    updated = merge_ignore_section(existing, patterns)
    if updated == existing:
        return False
    if not dry_run:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(updated, encoding="utf-8")
    logger.debug("ignore_file_updated", path=str(path), patterns=len(patterns))
    return True


def git_exclude_path(root: Path) -> Path | None:
    """``.git/info/exclude`` when ``.git/info`` exists, else None."""
    info_dir = root / ".git" / "info"
    return info_dir / "exclude" if info_dir.is_dir() else None
