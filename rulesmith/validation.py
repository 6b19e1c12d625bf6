"""Structural checks on recipes before anything is written."""

from __future__ import annotations

from typing import Iterable

from rulesmith.errors import DispatchNotRegisteredError, NestedSubagentError, SubagentDispatchError
from rulesmith.frontmatter_utils import list_field, parse
from rulesmith.models import ResolvedBlock
from rulesmith.protocols import FileResolver
from rulesmith.recipes import Recipe


def validate_no_nested_subagents(recipe: Recipe, agent_name: str) -> None:
    """Reject a subagent target recipe that declares subagents of its own."""
    if not recipe.subagents:
        return
    nested = [binding.name or binding.recipe or "<unnamed>" for binding in recipe.subagents]
    raise NestedSubagentError(recipe.name, agent_name, nested)


def validate_no_subagent_dispatch(recipe: Recipe, agent_name: str, resolver: FileResolver) -> None:
    """Reject a subagent recipe whose local sources declare ``dispatches``."""
    offenders: list[tuple[str, str]] = []
    for source in recipe.sources:
        if source.is_remote:
            continue
        path = resolver.resolve(source.path_or_url)
        if path is None:
            continue
        try:
            metadata, _ = parse(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            continue
        offenders.extend((path.name, target) for target in list_field(metadata, "dispatches"))
    if offenders:
        raise SubagentDispatchError(recipe.name, agent_name, offenders)


def validate_dispatches_registered(recipe: Recipe, documents: Iterable[ResolvedBlock]) -> None:
    """Every dispatch target in the main run must be one of the recipe's subagents."""
    registered = {binding.name for binding in recipe.subagents if binding.name}
    offenders: list[tuple[str, str]] = []
    for block in documents:
        name = block.location.name if block.location is not None else block.identity
        offenders.extend(
            (name, target) for target in list_field(block.metadata, "dispatches") if target not in registered
        )
    if offenders:
        raise DispatchNotRegisteredError(recipe.name, offenders)
