from __future__ import annotations

import json
import re
import tomllib
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger as log

from .config import ConfigError
from .servers import MCPServerConfig

CODEX_HEADER = (
    "# Codex MCP Server Configuration\n# IMPORTANT: the top-level key is 'mcp_servers'\n"
)

_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class SectionResult:
    path: Path
    name: str
    written: bool
    created: bool
    dry_run: bool = False


def server_marker(name: str) -> re.Pattern[str]:
    """Line pattern matching the section header for a server, bare or quoted."""
    escaped = re.escape(name)
    return re.compile(rf'^\s*\[mcp_servers\.(?:{escaped}|"{escaped}")\]\s*$', re.MULTILINE)


def _toml_string(value: str) -> str:
    # JSON string escapes are a subset of TOML basic string escapes
    return json.dumps(value, ensure_ascii=False)


def _toml_key(key: str) -> str:
    return key if _BARE_KEY.match(key) else _toml_string(key)


def render_server_section(server: MCPServerConfig) -> str:
    args = ", ".join(_toml_string(a) for a in server.args)
    if server.env:
        pairs = ", ".join(f"{_toml_key(k)} = {_toml_string(v)}" for k, v in server.env.items())
        env = f"{{ {pairs} }}"
    else:
        env = "{}"
    return (
        f"[mcp_servers.{_toml_key(server.name)}]\n"
        f"command = {_toml_string(server.command)}\n"
        f"args = [{args}]\n"
        f"env = {env}\n"
    )


def ensure_section(
    path: Path,
    marker: re.Pattern[str],
    block: str,
    *,
    name: str,
    header: str = "",
    dry_run: bool = False,
) -> SectionResult:
    """Append `block` to `path` unless `marker` already matches somewhere in the file.

    A missing file is created (with `header`) rather than treated as an error.
    The append is not atomic; a crash mid-write can leave a partial block.
    """
    created = not path.exists()
    existing = "" if created else path.read_text(encoding="utf-8")

    if marker.search(existing):
        log.info("{} already in {}", name, path)
        return SectionResult(path=path, name=name, written=False, created=False, dry_run=dry_run)

    if created:
        addition = f"{header}\n{block}" if header else block
    else:
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        addition = f"{prefix}\n{block}" if existing else block

    if dry_run:
        log.info("[dry-run] Would add {} to {}", name, path)
        log.debug("[dry-run] Block:\n{}", block)
        return SectionResult(path=path, name=name, written=False, created=created, dry_run=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(addition)
    log.info("{} {} to {}", "Created config with" if created else "Added", name, path)
    return SectionResult(path=path, name=name, written=True, created=created)


def write_codex_servers(
    path: Path, servers: Iterable[MCPServerConfig], *, dry_run: bool = False
) -> list[SectionResult]:
    results: list[SectionResult] = []
    for server in servers:
        results.append(
            ensure_section(
                path,
                server_marker(server.name),
                render_server_section(server),
                name=server.name,
                header=CODEX_HEADER,
                dry_run=dry_run,
            )
        )
    return results


def read_codex_servers(path: Path) -> dict[str, Any]:
    """Return the parsed `mcp_servers` table, or {} when the file is absent."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML at {path}: {e}", path) from e
    servers = data.get("mcp_servers", {})
    return servers if isinstance(servers, dict) else {}
