"""Filesystem lookup for rule files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Sequence

from instrukt_ai_logging import get_logger

logger = get_logger(__name__)


def _with_md_fallback(candidate: Path) -> list[Path]:
    if candidate.suffix == ".md":
        return [candidate]
    return [candidate, candidate.with_name(candidate.name + ".md")]


class LocalFileResolver:
    """Resolve rule references against the working directory and search roots.

    Lookup order for a bare relative reference: the working directory, then
    each search root in order. References relative to another document are
    only looked up next to that document. Every candidate also tries a
    ``.md`` suffix.
    """

    def __init__(self, search_roots: Sequence[Path] = (), cwd: Optional[Path] = None) -> None:
        self._cwd = cwd
        self._roots = [Path(root).expanduser() for root in search_roots]

    @property
    def cwd(self) -> Path:
        return self._cwd if self._cwd is not None else Path.cwd()

    @property
    def search_roots(self) -> list[Path]:
        return list(self._roots)

    def _candidates(self, reference: str, relative_to: Optional[Path]) -> Iterable[Path]:
        ref = Path(os.path.expanduser(reference))
        if ref.is_absolute():
            yield from _with_md_fallback(ref)
            return
        if relative_to is not None:
            yield from _with_md_fallback(relative_to / ref)
            return
        yield from _with_md_fallback(self.cwd / ref)
        for root in self._roots:
            yield from _with_md_fallback(root / ref)

    def resolve(self, reference: str, relative_to: Optional[Path] = None) -> Optional[Path]:
        for candidate in self._candidates(reference, relative_to):
            if candidate.is_file():
                return candidate.resolve()
        return None

    def locate(self, reference: str) -> Optional[Path]:
        """Like :meth:`resolve` but also accepts directories (no ``.md`` fallback)."""
        ref = Path(os.path.expanduser(reference))
        bases = [Path("/")] if ref.is_absolute() else [self.cwd, *self._roots]
        for base in bases:
            candidate = base / ref
            if candidate.exists():
                return candidate.resolve()
        logger.debug("reference_not_located", reference=reference)
        return None
