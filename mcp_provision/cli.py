"""
CLI entrypoint for mcp-provision.

Provides the `mcp-provision` executable. Running it without a subcommand is
the same as `mcp-provision install`.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any, NoReturn

from dotenv import find_dotenv, load_dotenv
from loguru import logger as log

from .config import LOG_LEVELS, ProvisionError, Settings
from .json_merge import configured_servers
from .servers import CATALOG
from .toml_sections import read_codex_servers
from .workspace import detect_workspaces, workspace_mcp_json

LOG_TAG = "[mcp-provision]"


def configure_logging(level: str) -> None:
    """Route loguru output to stderr with the fixed tag on every line."""
    log.remove()
    log.add(sys.stderr, level=level, format=LOG_TAG + " <level>{level: <7}</level> {message}")


def _add_install_flags(parser: argparse.ArgumentParser, *, top_level: bool) -> None:
    # Subcommand flags must not reset values already given before the subcommand
    flag_default: Any = False if top_level else argparse.SUPPRESS
    parser.add_argument(
        "--dry-run", action="store_true", default=flag_default, help="Show actions without writing"
    )
    parser.add_argument(
        "--skip-packages",
        action="store_true",
        default=flag_default,
        help="Do not install missing CLI tools",
    )
    parser.add_argument(
        "--skip-registration",
        action="store_true",
        default=flag_default,
        help="Do not register servers with the CLI",
    )
    parser.add_argument(
        "--skip-profile",
        action="store_true",
        default=flag_default,
        help="Do not touch the shell profile",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        action="append",
        default=None if top_level else argparse.SUPPRESS,
        help="Workspace folder to receive .vscode/mcp.json (repeatable; default: auto-detect)",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-provision",
        description="Install AI CLI tooling and configure MCP servers for this environment",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, type=str.upper, help="Log level")
    # Top-level flags for the default install mode
    _add_install_flags(parser, top_level=True)

    subparsers = parser.add_subparsers(dest="command", required=False)
    install = subparsers.add_parser("install", help="Run the provisioning pipeline (default)")
    _add_install_flags(install, top_level=False)
    subparsers.add_parser("status", help="Show which managed servers each config file contains")
    return parser


def _initial_log_level(args: Any) -> str:
    level = args.log_level or os.environ.get("MCP_PROVISION_LOG_LEVEL", "").upper()
    return level if level in LOG_LEVELS else "INFO"


def _settings_from_args(args: Any) -> Settings:
    settings = Settings.from_env()
    overrides: dict[str, Any] = {
        "dry_run": args.dry_run,
        "skip_packages": args.skip_packages,
        "skip_registration": args.skip_registration,
        "skip_profile": args.skip_profile,
    }
    if args.workspace:
        overrides["workspaces"] = list(args.workspace)
    if args.log_level:
        overrides["log_level"] = args.log_level
    return settings.with_overrides(**overrides)


def _run_install(settings: Settings) -> int:
    from .installer import run_install

    report = run_install(settings)
    if settings.dry_run:
        log.info("Dry-run complete. No changes written.")
    for merge in report.json_merges:
        if merge.backup_path is not None:
            log.info("Backup created at {}", merge.backup_path)
    return 0


def _run_status(settings: Settings) -> int:
    managed = [s.name for s in CATALOG]
    codex = read_codex_servers(settings.codex_config)
    print(f"{settings.codex_config}:")
    for name in managed:
        print(f"  {'✓' if name in codex else '○'} {name}")

    json_targets = [settings.vscode_user_config]
    json_targets.extend(
        workspace_mcp_json(ws)
        for ws in detect_workspaces(
            workspaces_root=settings.workspaces_root, explicit=settings.workspaces
        )
    )
    for target in json_targets:
        present = configured_servers(target)
        print(f"{target}:")
        for name in managed:
            print(f"  {'✓' if name in present else '○'} {name}")
    return 0


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    # Existing environment variables win over .env entries
    load_dotenv(find_dotenv(usecwd=True), override=False)

    # Tagged sink before Settings logs anything; re-applied once the level is validated
    configure_logging(_initial_log_level(args))
    try:
        settings = _settings_from_args(args)
    except ProvisionError as e:
        log.error(str(e))
        return 1
    configure_logging(settings.log_level)

    try:
        if args.command == "status":
            return _run_status(settings)
        return _run_install(settings)
    except (ProvisionError, OSError) as e:
        log.error(str(e))
        return 1


def main(argv: list[str] | None = None) -> NoReturn:
    raise SystemExit(run_cli(argv))
