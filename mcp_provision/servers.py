"""Catalog of the MCP servers this installer manages."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from loguru import logger as log

API_KEY_PLACEHOLDER = "{api_key}"


@dataclass
class MCPServerConfig:
    """Individual MCP server definition.

    `args` and `env` may contain API_KEY_PLACEHOLDER; it is substituted by
    resolve_servers() once the key is known.
    """

    name: str
    command: str
    args: list[str]
    env: dict[str, str] = field(default_factory=dict)
    api_key_env: str | None = None
    url: str | None = None
    input_id: str | None = None
    input_description: str | None = None

    def is_remote_capable(self) -> bool:
        return self.url is not None

    def with_api_key(self, api_key: str) -> MCPServerConfig:
        return replace(
            self,
            args=[a.replace(API_KEY_PLACEHOLDER, api_key) for a in self.args],
            env={k: v.replace(API_KEY_PLACEHOLDER, api_key) for k, v in self.env.items()},
        )

    def editor_entry(self) -> dict[str, Any]:
        """Server entry for VS Code style mcp.json files"""
        return {"type": "http", "url": self.url}

    def input_entry(self) -> dict[str, Any] | None:
        if self.input_id is None:
            return None
        return {
            "type": "promptString",
            "id": self.input_id,
            "description": self.input_description or f"{self.name} API key",
            "password": True,
        }


CATALOG: tuple[MCPServerConfig, ...] = (
    MCPServerConfig(
        name="context7",
        command="npx",
        args=["-y", "@upstash/context7-mcp", "--api-key", API_KEY_PLACEHOLDER],
        api_key_env="CONTEXT7_API_KEY",
        url="https://mcp.context7.com/mcp",
        input_id="context7-api-key",
        input_description="Context7 API key",
    ),
    MCPServerConfig(
        name="tavily",
        command="npx",
        args=["-y", "tavily-mcp@latest"],
        env={"TAVILY_API_KEY": API_KEY_PLACEHOLDER},
        api_key_env="TAVILY_API_KEY",
        url="https://mcp.tavily.com/mcp/?tavilyApiKey=${input:tavily-api-key}",
        input_id="tavily-api-key",
        input_description="Tavily API key",
    ),
    MCPServerConfig(
        name="mongodb",
        command="npx",
        args=["-y", "mongodb-mcp-server"],
    ),
)


def resolve_servers(
    environ: Mapping[str, str] | None = None,
    catalog: tuple[MCPServerConfig, ...] = CATALOG,
) -> list[MCPServerConfig]:
    """Return the catalog entries that can be configured with the current environment.

    Servers gated on an API key are dropped (soft-skip) when the variable is
    unset or empty; no placeholder entry is ever produced.
    """
    env = os.environ if environ is None else environ
    resolved: list[MCPServerConfig] = []
    for server in catalog:
        if server.api_key_env is None:
            resolved.append(server)
            continue
        api_key = env.get(server.api_key_env, "").strip()
        if not api_key:
            log.info("{} not set; skipping {} server", server.api_key_env, server.name)
            continue
        resolved.append(server.with_api_key(api_key))
    return resolved
