"""Remote rule fetching over HTTP, with GitHub-aware batching."""

from __future__ import annotations

import json
import os
import posixpath
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx
from instrukt_ai_logging import get_logger

from rulesmith.constants import (
    DEFAULT_FETCH_TIMEOUT,
    GITHUB_API_URL,
    GITHUB_GRAPHQL_URL,
    GITHUB_RAW_HOST,
    USER_AGENT,
)
from rulesmith.errors import FetchError
from rulesmith.models import FetchResult

logger = get_logger(__name__)

URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_GITHUB_REF_RE = re.compile(r"^https://github\.com/([^/]+)/([^/]+)/(blob|tree)/([^/]+)(?:/(.*))?$")


def is_url(value: str) -> bool:
    return bool(URL_RE.match(value.strip()))


@dataclass(frozen=True)
class GitHubRef:
    owner: str
    repo: str
    kind: str  # "blob" or "tree"
    branch: str
    path: str

    @property
    def repo_key(self) -> str:
        return f"{self.owner}/{self.repo}"

    def blob_url(self, path: str) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/blob/{self.branch}/{path.lstrip('/')}"


def parse_github_url(url: str) -> Optional[GitHubRef]:
    match = _GITHUB_REF_RE.match(url.strip())
    if not match:
        return None
    owner, repo, kind, branch, path = match.groups()
    return GitHubRef(owner=owner, repo=repo, kind=kind, branch=branch, path=(path or "").strip("/"))


def github_blob_url(repo: str, branch: str, path: str) -> str:
    return f"https://github.com/{repo}/blob/{branch}/{path.lstrip('/')}"


def github_tree_url(repo: str, branch: str, path: str) -> str:
    return f"https://github.com/{repo}/tree/{branch}/{path.strip('/')}"


def to_raw_url(url: str) -> str:
    """Convert a GitHub blob URL to its raw content URL; other URLs pass through."""
    ref = parse_github_url(url)
    if ref is None or ref.kind != "blob":
        return url
    return f"https://{GITHUB_RAW_HOST}/{ref.owner}/{ref.repo}/{ref.branch}/{ref.path}"


def normalize_path(path: str) -> str:
    """Resolve ``.`` and ``..`` segments without touching the filesystem."""
    parts: list[str] = []
    for part in path.split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part and part != ".":
            parts.append(part)
    return "/".join(parts)


def join_remote_reference(base_url: str, reference: str) -> str:
    """Resolve a reference found inside a remote document.

    Within a GitHub blob URL a leading ``/`` is relative to the repository
    root; otherwise the reference is relative to the document's directory.
    """
    ref = parse_github_url(base_url)
    if ref is not None and ref.kind == "blob":
        if reference.startswith("/"):
            resolved = normalize_path(reference)
        else:
            resolved = normalize_path(posixpath.join(posixpath.dirname(ref.path), reference))
        return ref.blob_url(resolved)
    parts = urlsplit(base_url)
    joined = posixpath.normpath(posixpath.join(posixpath.dirname(parts.path), reference))
    return urlunsplit((parts.scheme, parts.netloc, joined, "", ""))


def _graphql_query(owner: str, repo: str, expressions: list[str]) -> str:
    fields = "\n".join(
        f"    file{idx}: object(expression: {json.dumps(expr)}) {{ ... on Blob {{ text }} }}"
        for idx, expr in enumerate(expressions)
    )
    return f"query {{\n  repository(owner: {json.dumps(owner)}, name: {json.dumps(repo)}) {{\n{fields}\n  }}\n}}"


class HttpRemoteFetcher:
    """``RemoteFetcher`` backed by a synchronous ``httpx.Client``.

    Prefetching batches GitHub files through one GraphQL request per
    repository, which requires a token; without one every URL falls back to
    an individual raw download.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._token = token
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    @classmethod
    def from_env(cls, token_env: str, timeout: float = DEFAULT_FETCH_TIMEOUT) -> HttpRemoteFetcher:
        token = os.environ.get(token_env) or os.environ.get("GH_TOKEN")
        return cls(timeout=timeout, token=token)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpRemoteFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def fetch(self, url: str) -> FetchResult:
        raw_url = to_raw_url(url)
        try:
            response = self._client.get(raw_url)
            response.raise_for_status()
        except httpx.TimeoutException:
            return FetchResult(url=url, error="request timed out")
        except httpx.HTTPStatusError as exc:
            return FetchResult(url=url, error=f"HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            return FetchResult(url=url, error=str(exc) or exc.__class__.__name__)
        logger.debug("remote_fetched", url=url, bytes=len(response.content))
        return FetchResult(url=url, content=response.text)

    def prefetch(self, urls: Iterable[str]) -> dict[str, str]:
        by_repo: dict[str, list[tuple[str, GitHubRef]]] = defaultdict(list)
        for url in dict.fromkeys(urls):
            ref = parse_github_url(url)
            if ref is not None and ref.kind == "blob":
                by_repo[ref.repo_key].append((url, ref))

        results: dict[str, str] = {}
        if not self._token:
            return results
        for entries in by_repo.values():
            # A single file is cheaper as a plain raw download.
            if len(entries) < 2:
                continue
            results.update(self._prefetch_repo(entries))
        return results

    def _prefetch_repo(self, entries: list[tuple[str, GitHubRef]]) -> dict[str, str]:
        owner, repo = entries[0][1].owner, entries[0][1].repo
        expressions = [f"{ref.branch}:{ref.path}" for _, ref in entries]
        try:
            response = self._client.post(
                GITHUB_GRAPHQL_URL,
                json={"query": _graphql_query(owner, repo, expressions)},
                headers=self._auth_headers(),
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("prefetch_failed", repo=f"{owner}/{repo}", error=str(exc))
            return {}

        repository = (payload.get("data") or {}).get("repository") or {}
        fetched: dict[str, str] = {}
        for idx, (url, _) in enumerate(entries):
            blob = repository.get(f"file{idx}")
            if isinstance(blob, dict) and isinstance(blob.get("text"), str):
                fetched[url] = blob["text"]
        logger.debug("prefetch_complete", repo=f"{owner}/{repo}", requested=len(entries), fetched=len(fetched))
        return fetched

    def list_directory(self, url: str) -> list[str]:
        ref = parse_github_url(url)
        if ref is None:
            raise FetchError(url, "only GitHub tree URLs can be listed")
        return sorted(self._list_github_dir(ref, ref.path))

    def _list_github_dir(self, ref: GitHubRef, path: str) -> list[str]:
        api_url = f"{GITHUB_API_URL}/repos/{ref.owner}/{ref.repo}/contents/{path}"
        try:
            response = self._client.get(api_url, params={"ref": ref.branch}, headers=self._auth_headers())
            response.raise_for_status()
            items = response.json()
        except httpx.HTTPStatusError as exc:
            raise FetchError(ref.blob_url(path), f"HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise FetchError(ref.blob_url(path), str(exc)) from exc

        if not isinstance(items, list):
            raise FetchError(ref.blob_url(path), "not a directory")

        urls: list[str] = []
        for item in items:
            item_path = str(item.get("path", ""))
            if item.get("type") == "dir":
                urls.extend(self._list_github_dir(ref, item_path))
            elif item.get("type") == "file" and item_path.endswith(".md"):
                urls.append(ref.blob_url(item_path))
        return urls
