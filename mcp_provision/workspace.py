from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from loguru import logger as log

# Probed in order; the first ones are the most specific
WORKSPACE_ENV_VARS: tuple[str, ...] = (
    "MCP_PROVISION_WORKSPACE",
    "CODESPACE_VSCODE_FOLDER",
    "containerWorkspaceFolder",
    "GITHUB_WORKSPACE",
)


def _dedupe(paths: list[Path]) -> list[Path]:
    seen: set[Path] = set()
    results: list[Path] = []
    for p in paths:
        key = p.resolve()
        if key not in seen:
            seen.add(key)
            results.append(p)
    return results


def workspaces_from_env(environ: Mapping[str, str]) -> list[Path]:
    candidates: list[Path] = []
    for var in WORKSPACE_ENV_VARS:
        value = environ.get(var)
        if not value:
            continue
        p = Path(value).expanduser()
        if p.is_dir():
            candidates.append(p)
        else:
            log.debug("{}={} is not a directory; ignoring", var, value)
    return candidates


def scan_workspaces_root(root: Path) -> list[Path]:
    """Non-hidden subdirectories of `root` (e.g. /workspaces/<repo>), sorted by name."""
    if not root.is_dir():
        return []
    return sorted(p for p in root.iterdir() if p.is_dir() and not p.name.startswith("."))


def detect_workspaces(
    environ: Mapping[str, str] | None = None,
    workspaces_root: Path = Path("/workspaces"),
    explicit: list[Path] | None = None,
) -> list[Path]:
    """Workspace folders that should receive a .vscode/mcp.json.

    Explicit paths win, then environment variables, then a scan of the
    workspaces root. An empty result is a soft-skip for the caller.
    """
    env = os.environ if environ is None else environ
    if explicit:
        return _dedupe([p.expanduser() for p in explicit])

    found = workspaces_from_env(env)
    if not found:
        found = scan_workspaces_root(workspaces_root)
        if found:
            log.debug("Found workspaces under {}: {}", workspaces_root, [p.name for p in found])
    return _dedupe(found)


def workspace_mcp_json(workspace: Path) -> Path:
    return workspace / ".vscode" / "mcp.json"
