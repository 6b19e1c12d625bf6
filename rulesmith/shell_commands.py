"""Checks for shell commands that rule files declare they depend on."""

from __future__ import annotations

import shutil
from typing import Callable, Iterable, Optional

from rulesmith.diagnostics import Diagnostics
from rulesmith.frontmatter_utils import list_field
from rulesmith.models import ResolvedBlock

Which = Callable[[str], Optional[str]]


def collect_required_commands(blocks: Iterable[ResolvedBlock]) -> list[str]:
    """``require_shell_commands`` across all blocks, first occurrence first."""
    commands: list[str] = []
    for block in blocks:
        commands.extend(list_field(block.metadata, "require_shell_commands"))
    return list(dict.fromkeys(commands))


def missing_commands(commands: Iterable[str], which: Which = shutil.which) -> list[str]:
    return [command for command in commands if which(command) is None]


def warn_missing_commands(
    blocks: Iterable[ResolvedBlock], diagnostics: Diagnostics, which: Which = shutil.which
) -> list[str]:
    """Record a warning for every required command not found on PATH. Returns the missing ones."""
    missing = missing_commands(collect_required_commands(blocks), which)
    for command in missing:
        diagnostics.warn("shell_command_missing", command, "required shell command not found in PATH")
    return missing
