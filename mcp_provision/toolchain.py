"""Package-manager helpers: global bin discovery, PATH setup and CLI installs."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger as log

from .config import ProvisionError, ToolSpec

Runner = Callable[..., subprocess.CompletedProcess[str]]


class ToolInstallError(ProvisionError):
    def __init__(self, message: str, tool: ToolSpec | None = None):
        super().__init__(message)
        self.tool = tool


@dataclass
class ToolResult:
    tool: ToolSpec
    installed: bool
    skipped_reason: str | None = None


def run_captured(runner: Runner, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
    return runner(cmd, capture_output=True, text=True, check=False, **kwargs)


def _which(command: str, environ: MutableMapping[str, str]) -> str | None:
    return shutil.which(command, path=environ.get("PATH"))


def npm_global_bin(
    runner: Runner = subprocess.run,
    environ: MutableMapping[str, str] | None = None,
    package_manager: str = "npm",
) -> Path | None:
    """Return the directory global npm installs put executables in.

    `npm bin -g` was removed in npm 9; fall back to `<prefix>/bin`.
    """
    env = os.environ if environ is None else environ
    if _which(package_manager, env) is None:
        return None
    try:
        proc = run_captured(runner, [package_manager, "bin", "-g"])
        if proc.returncode == 0 and proc.stdout.strip():
            return Path(proc.stdout.strip())
        proc = run_captured(runner, [package_manager, "prefix", "-g"])
    except FileNotFoundError:
        return None
    if proc.returncode == 0 and proc.stdout.strip():
        return Path(proc.stdout.strip()) / "bin"
    log.debug("Could not determine {} global bin directory", package_manager)
    return None


def ensure_on_path(directory: Path, environ: MutableMapping[str, str] | None = None) -> bool:
    """Prepend `directory` to PATH unless it is already an entry. Returns True if PATH changed."""
    env = os.environ if environ is None else environ
    current = env.get("PATH", "")
    entries = current.split(os.pathsep) if current else []
    if str(directory) in entries:
        return False
    env["PATH"] = os.pathsep.join([str(directory), *entries])
    log.info("Added {} to PATH", directory)
    return True


def ensure_tool(
    tool: ToolSpec,
    *,
    runner: Runner = subprocess.run,
    environ: MutableMapping[str, str] | None = None,
    package_manager: str = "npm",
    dry_run: bool = False,
) -> ToolResult:
    """Install `tool.package` globally when `tool.command` is not on PATH.

    A missing package manager is a soft-skip; a failing install is fatal.
    """
    env = os.environ if environ is None else environ
    if _which(tool.command, env) is not None:
        log.info("{} already installed", tool.command)
        return ToolResult(tool=tool, installed=False)

    if _which(package_manager, env) is None:
        log.warning("{} not found; cannot install {}", package_manager, tool.package)
        return ToolResult(tool=tool, installed=False, skipped_reason=f"{package_manager} missing")

    cmd = [package_manager, "install", "-g", tool.package]
    if dry_run:
        log.info("[dry-run] Would run: {}", " ".join(cmd))
        return ToolResult(tool=tool, installed=False, skipped_reason="dry-run")

    log.info("Installing {} with {}...", tool.package, package_manager)
    proc = run_captured(runner, cmd)
    if proc.returncode != 0:
        error_msg = (proc.stderr or proc.stdout or "").strip()
        raise ToolInstallError(
            f"Failed to install {tool.package}: {error_msg or f'exit code {proc.returncode}'}",
            tool,
        )
    log.info("{} installed", tool.package)
    return ToolResult(tool=tool, installed=True)
