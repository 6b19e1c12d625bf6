"""Frontmatter parsing and serialization for rule documents.

Parsing is deliberately strict about delimiters: a block only counts as
frontmatter when the very first line is ``---`` and a later line consists of
``---`` alone. Anything else (unterminated block, delimiter followed by text,
YAML that is not a mapping) is treated as plain body text and never raises.
"""

from __future__ import annotations

from typing import Optional

import frontmatter
import yaml
from frontmatter import Post
from frontmatter.default_handlers import YAMLHandler

FRONTMATTER_DELIMITER = "---"

Metadata = dict[str, object]  # guard: loose-dict - user-authored frontmatter


class StableYAMLHandler(YAMLHandler):
    """Frontmatter YAML handler with stable ordering and wide line width."""

    def export(self, metadata: dict[str, object], **kwargs: object) -> str:  # guard: loose-dict - frontmatter contract
        return yaml.safe_dump(
            metadata,
            sort_keys=False,
            width=1000,
            default_flow_style=False,
            allow_unicode=True,
        ).rstrip()


_FRONTMATTER_HANDLER = StableYAMLHandler()


def dump_frontmatter(metadata: Metadata, body: str) -> str:
    """Serialize metadata and body using the stable YAML handler, ending in one newline."""
    return frontmatter.dumps(Post(body, **metadata), handler=_FRONTMATTER_HANDLER).rstrip() + "\n"


def _is_delimiter(line: str) -> bool:
    return line.rstrip("\r\n").rstrip() == FRONTMATTER_DELIMITER


def _split_frontmatter_block(content: str) -> tuple[str, str, bool]:
    """Split top-level frontmatter block from body.

    Returns:
        raw_metadata_text, body, has_frontmatter
    """
    lines = content.splitlines(keepends=True)
    if not lines or not _is_delimiter(lines[0]):
        return "", content, False
    end_idx = None
    for i in range(1, len(lines)):
        if _is_delimiter(lines[i]):
            end_idx = i
            break
    if end_idx is None:
        return "", content, False
    raw = "".join(lines[1:end_idx])
    body = "".join(lines[end_idx + 1 :])
    return raw, body, True


def parse(content: str) -> tuple[Optional[Metadata], str]:
    """Parse leading frontmatter.

    Returns:
        (metadata, body). ``metadata`` is ``None`` when the document has no
        well-formed frontmatter, in which case ``body`` is the whole input.
    """
    raw, body, has_frontmatter = _split_frontmatter_block(content)
    if not has_frontmatter:
        return None, content
    try:
        payload = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError:
        return None, content
    if not isinstance(payload, dict):
        return None, content
    return {str(key): value for key, value in payload.items()}, body.lstrip("\r\n")


def strip_metadata(content: str, keep_frontmatter: bool) -> str:
    """Return body only, or the untouched content when keeping frontmatter."""
    if keep_frontmatter:
        return content
    metadata, body = parse(content)
    if metadata is None:
        return content
    return body


def has_frontmatter(content: str) -> bool:
    return parse(content)[0] is not None


def list_field(metadata: Optional[Metadata], key: str) -> list[str]:
    """Read a string-list field, tolerating a scalar or a missing key."""
    if not metadata:
        return []
    value = metadata.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return []


class YamlFrontmatterParser:
    """Default ``FrontmatterParser`` implementation backed by :func:`parse`."""

    def parse(self, content: str) -> tuple[Optional[Metadata], str]:
        return parse(content)
