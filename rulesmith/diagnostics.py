"""Run-scoped warning collection.

Every skipped source, recipe or subagent is recorded here with a code, the
offending path and a reason, then reported once at the end of the run.
"""

from __future__ import annotations

from instrukt_ai_logging import get_logger
from typing_extensions import NotRequired, TypedDict

logger = get_logger(__name__)


class Diagnostic(TypedDict):
    code: str
    path: str
    reason: NotRequired[str]


class Diagnostics:
    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def warn(self, code: str, path: str = "", reason: str = "") -> None:
        item: Diagnostic = {"code": code, "path": path}
        if reason:
            item["reason"] = reason
        self._items.append(item)
        logger.warning(code, path=path, reason=reason)

    def get_warnings(self) -> list[Diagnostic]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


def format_warning(warning: Diagnostic) -> str:
    line = f"Warning: {warning['code']}: {warning['path']}"
    reason = warning.get("reason")
    return f"{line} ({reason})" if reason else line
