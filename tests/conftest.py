"""Pytest configuration for rulesmith tests."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

try:
    import instrukt_ai_logging

    def _noop_configure_logging(*_args, **_kwargs):  # type: ignore[no-untyped-def]
        return None

    instrukt_ai_logging.configure_logging = _noop_configure_logging  # type: ignore[assignment]
    logging.getLogger("rulesmith").handlers.clear()
    logging.getLogger().handlers.clear()
except Exception:
    pass

from rulesmith.config.schema import RecipesFile, RulesmithConfig  # noqa: E402
from rulesmith.context import SquashContext, SquashOptions  # noqa: E402
from rulesmith.errors import FetchError  # noqa: E402
from rulesmith.models import FetchResult  # noqa: E402
from rulesmith.resolver import LocalFileResolver  # noqa: E402


def pytest_collection_modifyitems(config, items):
    """Set per-marker timeouts: unit=1s, integration=5s."""
    for item in items:
        if "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))
        elif "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))


class FakeFetcher:
    """In-memory RemoteFetcher recording every call."""

    def __init__(self) -> None:
        self.pages: dict[str, str] = {}
        self.batch: dict[str, str] = {}
        self.listings: dict[str, list[str]] = {}
        self.fetched: list[str] = []
        self.prefetch_calls: list[list[str]] = []

    def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        if url in self.pages:
            return FetchResult(url=url, content=self.pages[url])
        return FetchResult(url=url, error="HTTP 404")

    def prefetch(self, urls: Iterable[str]) -> dict[str, str]:
        requested = list(urls)
        self.prefetch_calls.append(requested)
        return {url: self.batch[url] for url in requested if url in self.batch}

    def list_directory(self, url: str) -> list[str]:
        if url not in self.listings:
            raise FetchError(url, "HTTP 404")
        return list(self.listings[url])


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture
def write_file(root: Path) -> Callable[[str, str], Path]:
    def _write(relative: str, content: str) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_context(root: Path, fake_fetcher: FakeFetcher) -> Callable[..., SquashContext]:
    def _make(
        recipes: Optional[dict[str, object]] = None,
        options: Optional[SquashOptions] = None,
        **config_overrides: object,
    ) -> SquashContext:
        settings: dict[str, object] = {
            "rules_dir": ".",
            "user_recipes_file": None,
            "search_paths": [],
            "mcp_definitions_file": str(root / "mcp-definitions.json"),
        }
        settings.update(config_overrides)
        return SquashContext(
            config=RulesmithConfig.model_validate(settings),
            options=options or SquashOptions(),
            recipes=RecipesFile.model_validate({"recipes": recipes or {}}).recipes,
            fetcher=fake_fetcher,
            root=root,
            rules_dir=root,
            resolver=LocalFileResolver([root], cwd=root),
            clock=lambda: datetime(2026, 1, 2, 3, 4, 5),
        )

    return _make
