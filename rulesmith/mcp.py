"""MCP server collection and ``.mcp.json`` generation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Optional

from instrukt_ai_logging import get_logger

from rulesmith.artifacts import ArtifactWriter
from rulesmith.config.schema import RecipeConfig
from rulesmith.diagnostics import Diagnostics
from rulesmith.frontmatter_utils import list_field
from rulesmith.models import ResolvedBlock

logger = get_logger(__name__)

ServerDefinition = dict[str, object]  # guard: loose-dict - user-authored MCP server config


def collect_mcp_servers(config: RecipeConfig, blocks: Iterable[ResolvedBlock] = ()) -> list[str]:
    """Server names from the recipe plus any ``mcp_servers`` frontmatter, first occurrence first."""
    names = list(config.mcp_servers)
    for block in blocks:
        names.extend(list_field(block.metadata, "mcp_servers"))
    return list(dict.fromkeys(names))


def collect_all_mcp_servers(
    config: RecipeConfig,
    recipes: Mapping[str, RecipeConfig],
    blocks: Iterable[ResolvedBlock] = (),
    visited: Optional[set[str]] = None,
) -> list[str]:
    """Like :func:`collect_mcp_servers`, including every subagent recipe recursively."""
    visited = visited if visited is not None else set()
    names = collect_mcp_servers(config, blocks)
    for binding in config.subagents:
        if not binding.recipe or binding.recipe in visited or binding.recipe not in recipes:
            continue
        visited.add(binding.recipe)
        names.extend(collect_all_mcp_servers(recipes[binding.recipe], recipes, (), visited))
    return list(dict.fromkeys(names))


def load_server_definitions(path: Path) -> dict[str, ServerDefinition]:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("mcp_definitions_unreadable", path=str(path), error=str(exc))
        return {}
    if not isinstance(payload, dict):
        return {}
    servers = payload.get("mcpServers", payload)
    return {str(name): dict(value) for name, value in servers.items() if isinstance(value, dict)}


def build_server_config(
    names: Iterable[str], definitions: Mapping[str, ServerDefinition], diagnostics: Diagnostics, source: str
) -> dict[str, ServerDefinition]:
    servers: dict[str, ServerDefinition] = {}
    for name in names:
        definition = definitions.get(name)
        if definition is None:
            diagnostics.warn("mcp_server_undefined", name, f"not defined in {source}")
            continue
        server = {key: value for key, value in definition.items() if not key.startswith("_")}
        if "command" in server and "type" not in server:
            server["type"] = "stdio"
        servers[name] = server
    return servers


def write_mcp_settings(writer: ArtifactWriter, path: Path, servers: Mapping[str, ServerDefinition]) -> Path:
    """Set ``mcpServers`` in the settings file, keeping any other top-level keys."""
    target = writer.target(path)
    existing: dict[str, object] = {}
    if target.exists():
        try:
            loaded = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            loaded = {}
        if isinstance(loaded, dict):
            existing = loaded
    existing["mcpServers"] = dict(servers)
    return writer.write_text(path, json.dumps(existing, indent=2) + "\n")
