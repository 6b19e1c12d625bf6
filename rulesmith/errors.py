"""Error taxonomy for rulesmith.

Only errors about the root recipe propagate to the CLI. Per-source problems are
reported as ``SourceFailure`` records and per-subagent errors are caught by the
generator.
"""

from __future__ import annotations

from typing import Iterable, Sequence


class RulesmithError(Exception):
    """Base class for all rulesmith errors."""


class ConfigError(RulesmithError):
    """Configuration or recipe store could not be loaded."""


class RecipeNotFoundError(RulesmithError):
    def __init__(self, name: str, available: Iterable[str] = ()) -> None:
        self.name = name
        self.available = sorted(available)
        message = f"Recipe '{name}' not found"
        if self.available:
            message += f". Available recipes: {', '.join(self.available)}"
        super().__init__(message)


class FetchError(RulesmithError):
    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ValidationError(RulesmithError):
    """Structural invariant violation."""


class NestedSubagentError(ValidationError):
    def __init__(self, recipe: str, agent: str, nested: Sequence[str]) -> None:
        self.recipe = recipe
        self.agent = agent
        self.nested = list(nested)
        super().__init__(
            f"Recipe '{recipe}' (subagent '{agent}') has its own subagents ({', '.join(self.nested)}). "
            "Subagents cannot declare subagents; move them to the parent recipe."
        )


class SubagentDispatchError(ValidationError):
    def __init__(self, recipe: str, agent: str, offenders: Sequence[tuple[str, str]]) -> None:
        self.recipe = recipe
        self.agent = agent
        self.offenders = list(offenders)
        lines = [f"  - {path} dispatches: {target}" for path, target in self.offenders]
        super().__init__(
            f"Recipe '{recipe}' (subagent '{agent}') contains files that dispatch other subagents:\n"
            + "\n".join(lines)
        )


class DispatchNotRegisteredError(ValidationError):
    def __init__(self, recipe: str, offenders: Sequence[tuple[str, str]]) -> None:
        self.recipe = recipe
        self.offenders = list(offenders)
        lines = [f"  - {path} dispatches: {target}" for path, target in self.offenders]
        super().__init__(
            f"Recipe '{recipe}' dispatches subagents that are not registered in its subagents list:\n"
            + "\n".join(lines)
        )


class SkillReferenceError(ValidationError):
    def __init__(self, reference: str, referrer: str, reason: str) -> None:
        self.reference = reference
        self.referrer = referrer
        self.reason = reason
        super().__init__(f"Invalid skill reference '{reference}' in {referrer}: {reason}")
