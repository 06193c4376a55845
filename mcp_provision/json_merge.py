from __future__ import annotations

import json
import os
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger as log

from .servers import MCPServerConfig


@dataclass
class MergeResult:
    target_path: Path
    backup_path: Path | None
    wrote_changes: bool
    dry_run: bool


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _serialize(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _atomic_write_text(path: Path, text: str) -> None:
    _ensure_parent_dir(path)
    tmp_fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            f.write(text)
        # Use replace to be atomic on POSIX
        Path(tmp_path).replace(path)
    finally:
        if Path(tmp_path).exists():
            Path(tmp_path).unlink(missing_ok=True)


def _read_json_or_empty(path: Path) -> tuple[dict[str, Any], bool]:
    """Return (data, readable). Unreadable or non-object content yields ({}, False)."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log.warning("Malformed JSON at {}: {}", path, e)
        return {}, False
    if not isinstance(data, dict):
        log.warning("Expected top-level JSON object at {}", path)
        return {}, False
    return data, True


def merge_managed_entries(
    data: dict[str, Any], servers: Iterable[MCPServerConfig]
) -> dict[str, Any]:
    """Apply managed inputs/servers to a parsed config object in place.

    Unrelated keys are left alone. Managed inputs are dropped and re-appended;
    managed servers are replaced wholesale, never deep-merged.
    """
    editor_servers = [s for s in servers if s.is_remote_capable()]

    inputs = data.get("inputs")
    if not isinstance(inputs, list):
        inputs = []
    servers_node = data.get("servers")
    if not isinstance(servers_node, dict):
        servers_node = {}

    # Only ids resolved this run; entries left by earlier runs stay, since nothing is deleted
    managed_ids = {s.input_id for s in editor_servers if s.input_id is not None}
    inputs = [
        entry
        for entry in inputs
        if not (isinstance(entry, dict) and entry.get("id") in managed_ids)
    ]
    for server in editor_servers:
        entry = server.input_entry()
        if entry is not None:
            inputs.append(entry)
        servers_node[server.name] = server.editor_entry()

    data["inputs"] = inputs
    data["servers"] = servers_node
    return data


def merge_editor_config(
    path: Path, servers: Iterable[MCPServerConfig], *, dry_run: bool = False
) -> MergeResult:
    """Read-merge-write a VS Code style mcp.json.

    Behavior:
    - Missing file: start from an empty object.
    - Malformed file: back it up, then start from an empty object.
    - Skip the write when the merged text equals what is on disk.
    - Atomic writes.
    """
    servers = list(servers)
    backup_path: Path | None = None
    current_text: str | None = None

    if path.exists():
        current_text = path.read_text(encoding="utf-8", errors="replace")
        data, readable = _read_json_or_empty(path)
        if not readable:
            backup_path = path.with_name(path.name + f".bak-{_timestamp()}")
            if dry_run:
                log.info("[dry-run] Would back up {} -> {}", path, backup_path)
            else:
                shutil.copy2(path, backup_path)
                log.info("Backed up {} -> {}", path, backup_path)
    else:
        data = {}

    new_text = _serialize(merge_managed_entries(data, servers))

    if new_text == current_text:
        log.info("{} already up to date", path)
        return MergeResult(target_path=path, backup_path=None, wrote_changes=False, dry_run=dry_run)

    if dry_run:
        log.info("[dry-run] Would write MCP config to {}", path)
        log.debug("[dry-run] New JSON: {}", new_text)
        return MergeResult(
            target_path=path, backup_path=backup_path, wrote_changes=False, dry_run=True
        )

    _atomic_write_text(path, new_text)
    log.info("Wrote MCP config to {}", path)
    return MergeResult(target_path=path, backup_path=backup_path, wrote_changes=True, dry_run=False)


def configured_servers(path: Path) -> list[str]:
    """Server names present in an editor config, for status output."""
    if not path.exists():
        return []
    data, readable = _read_json_or_empty(path)
    servers_node = data.get("servers") if readable else None
    return sorted(servers_node) if isinstance(servers_node, dict) else []
