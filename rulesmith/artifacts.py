"""Writers for everything a squash produces on disk.

All writes go through :class:`ArtifactWriter` so a dry run can report the
exact set of paths without touching the filesystem.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from instrukt_ai_logging import get_logger

from rulesmith.constants import BIN_SEGMENT, BLOCK_SEPARATOR, COMMANDS_SEGMENT, SKILL_FILENAME, SKILLS_SEGMENT
from rulesmith.dependencies import DependencyResolver
from rulesmith.diagnostics import Diagnostics
from rulesmith.frontmatter_utils import dump_frontmatter, strip_metadata
from rulesmith.models import ResolvedBlock
from rulesmith.processor import SourceProcessor

logger = get_logger(__name__)

EXECUTABLE_MODE = 0o755
RESERVED_COMMAND_DIRS = {"debug"}


class ArtifactWriter:
    def __init__(self, root: Path, dry_run: bool = False) -> None:
        self.root = root
        self.dry_run = dry_run
        self.planned: list[Path] = []

    def target(self, path: Path | str) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.root / candidate

    def write_text(self, path: Path | str, content: str) -> Path:
        target = self.target(path)
        self.planned.append(target)
        if self.dry_run:
            logger.debug("dry_run_write", path=str(target))
            return target
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    def install_executable(self, path: Path | str, source: Optional[Path] = None, content: str = "") -> Path:
        """Copy ``source`` (or write ``content``) to ``path`` and mark it executable."""
        target = self.target(path)
        self.planned.append(target)
        if self.dry_run:
            return target
        target.parent.mkdir(parents=True, exist_ok=True)
        if source is not None:
            shutil.copyfile(source, target)
        else:
            target.write_text(content, encoding="utf-8")
        target.chmod(EXECUTABLE_MODE)
        return target

    def remove(self, path: Path | str) -> Optional[Path]:
        target = self.target(path)
        if not target.exists():
            return None
        self.planned.append(target)
        if self.dry_run:
            return target
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        return target


# ---------------------------------------------------------------------------
# Main document
# ---------------------------------------------------------------------------


def render_blocks(blocks: Iterable[ResolvedBlock], transform: Optional[Callable[[ResolvedBlock], str]] = None) -> str:
    """Concatenate block contents, each followed by a horizontal rule.

    ``transform`` maps a block to the text to emit instead of its content.
    """
    texts = [(transform(block) if transform else block.content).strip() for block in blocks]
    parts = [f"{text}{BLOCK_SEPARATOR}" for text in texts if text]
    return "".join(parts).rstrip() + "\n" if parts else ""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def display_path(block: ResolvedBlock, rules_dir: Optional[Path]) -> str:
    if block.location is None:
        return block.identity
    if rules_dir is not None:
        try:
            return block.location.relative_to(rules_dir).as_posix()
        except ValueError:
            pass
    return block.location.as_posix()


def _apply_omit_prefix(result_path: str, after_commands: str, prefixes: Sequence[str]) -> str:
    best_path = result_path
    best_stripped = 0
    for prefix in prefixes:
        prefix_parts = [part for part in prefix.split("/") if part]
        path_parts = result_path.split("/")
        stripped = 0
        while prefix_parts and path_parts and prefix_parts[0] == path_parts[0]:
            prefix_parts.pop(0)
            path_parts.pop(0)
            stripped += 1
        if stripped > best_stripped:
            best_stripped = stripped
            best_path = "/".join(path_parts) if path_parts else after_commands.rsplit("/", 1)[-1]
    return best_path


def command_relative_path(path: str, omit_prefixes: Sequence[str] = ()) -> str:
    """Where a command file lands below the commands directory.

    The part after the last ``/commands/`` is kept, prefixed by the
    directories that follow the last component containing ``rules`` (or by
    the immediate parent directory when there is none).
    """
    marker = f"/{COMMANDS_SEGMENT}/"
    normalized = path if path.startswith("/") else f"/{path}"
    if marker not in normalized:
        return path.rsplit("/", 1)[-1]
    before, after = normalized.rsplit(marker, 1)
    components = [part for part in before.split("/") if part]

    rules_idx = None
    for idx, component in enumerate(components):
        if "rules" in component.lower():
            rules_idx = idx
    if rules_idx is not None:
        prefix = components[rules_idx + 1 :]
    else:
        prefix = components[-1:]
    result = "/".join([*prefix, after])

    if omit_prefixes:
        result = _apply_omit_prefix(result, after, omit_prefixes)
    return result


def write_commands(
    writer: ArtifactWriter,
    commands: Sequence[ResolvedBlock],
    commands_dir: Path,
    omit_prefixes: Sequence[str] = (),
    rules_dir: Optional[Path] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> list[Path]:
    written = []
    warned = False
    for block in commands:
        relative = command_relative_path(display_path(block, rules_dir), omit_prefixes)
        if diagnostics is not None and not warned and RESERVED_COMMAND_DIRS & set(relative.split("/")[:-1]):
            diagnostics.warn("command_reserved_directory", relative, "'debug' command directories are ignored")
            warned = True
        written.append(writer.write_text(commands_dir / relative, block.content))
    return written


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


def skill_name(path_or_url: str) -> str:
    """``.../skills/testing/tdd.md`` -> ``testing/tdd``."""
    tail = path_or_url.rsplit(f"/{SKILLS_SEGMENT}/", 1)[-1]
    return tail[: -len(".md")] if tail.endswith(".md") else tail


def compile_skill(block: ResolvedBlock, processor: SourceProcessor, expander: DependencyResolver) -> str:
    """Skill body followed by everything it requires, each separated by a rule."""
    parts = [strip_metadata(block.raw_content, keep_frontmatter=False).strip()]
    included = processor.process(expander.requires(block.descriptor, block.metadata))
    parts.extend(dep.content.strip() for dep in [*included.documents, *included.commands] if dep.content.strip())
    body = BLOCK_SEPARATOR.join(parts) + "\n"

    name = skill_name(block.identity).rsplit("/", 1)[-1]
    description = (block.metadata or {}).get("description", "")
    return dump_frontmatter({"name": name, "description": str(description or "")}, body)


def write_skills(
    writer: ArtifactWriter,
    skills: Sequence[ResolvedBlock],
    skills_dir: Path,
    processor: SourceProcessor,
    expander: DependencyResolver,
) -> list[Path]:
    written = []
    for block in skills:
        content = compile_skill(block, processor, expander)
        written.append(writer.write_text(skills_dir / skill_name(block.identity) / SKILL_FILENAME, content))
    return written


# ---------------------------------------------------------------------------
# Executables
# ---------------------------------------------------------------------------


def executable_relative_path(path_or_url: str) -> str:
    """Path below the last ``bin/`` segment."""
    return path_or_url.rsplit(f"/{BIN_SEGMENT}/", 1)[-1]


def install_executables(writer: ArtifactWriter, executables: Sequence[ResolvedBlock], bin_dir: Path) -> list[Path]:
    return [
        writer.install_executable(
            bin_dir / executable_relative_path(block.identity), source=block.location, content=block.raw_content
        )
        for block in executables
    ]
