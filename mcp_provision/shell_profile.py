from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger as log

BEGIN_MARKER = "# >>> mcp-provision >>>"
END_MARKER = "# <<< mcp-provision <<<"


@dataclass
class ProfileResult:
    path: Path
    appended: bool
    dry_run: bool = False


def render_block(lines: Iterable[str]) -> str:
    body = "\n".join(lines)
    return f"{BEGIN_MARKER}\n{body}\n{END_MARKER}\n"


def path_export_lines(directory: Path | None) -> list[str]:
    lines = ["# Added by mcp-provision; safe to remove"]
    if directory is not None:
        lines.append(
            f'case ":$PATH:" in *":{directory}:"*) ;; *) export PATH="{directory}:$PATH" ;; esac'
        )
    return lines


def ensure_profile_block(
    path: Path, lines: Iterable[str], *, dry_run: bool = False
) -> ProfileResult:
    """Append the marker-delimited block once; later runs find the marker and do nothing."""
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    if BEGIN_MARKER in existing:
        log.info("Shell profile block already present in {}", path)
        return ProfileResult(path=path, appended=False, dry_run=dry_run)

    block = render_block(lines)
    if dry_run:
        log.info("[dry-run] Would append shell profile block to {}", path)
        return ProfileResult(path=path, appended=False, dry_run=True)

    separator = "" if not existing else ("\n" if existing.endswith("\n") else "\n\n")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(separator + block)
    log.info("Appended shell profile block to {}", path)
    return ProfileResult(path=path, appended=True)
