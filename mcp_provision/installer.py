"""
Provisioning pipeline.

Runs PATH setup, CLI installation, workspace detection, Codex TOML sections,
CLI registration, editor JSON merges and the shell profile block, in that
order. Soft-skips are logged by each step; any ProvisionError or OSError
aborts the run.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger as log

from .config import Settings
from .json_merge import MergeResult, merge_editor_config
from .registration import CLIRegistrar, RegistrationResult
from .servers import MCPServerConfig, resolve_servers
from .shell_profile import ProfileResult, ensure_profile_block, path_export_lines
from .toml_sections import SectionResult, write_codex_servers
from .toolchain import Runner, ToolResult, ensure_on_path, ensure_tool, npm_global_bin
from .workspace import detect_workspaces, workspace_mcp_json


@dataclass
class InstallReport:
    servers: list[MCPServerConfig] = field(default_factory=list)
    global_bin: Path | None = None
    path_updated: bool = False
    tools: list[ToolResult] = field(default_factory=list)
    workspaces: list[Path] = field(default_factory=list)
    toml_sections: list[SectionResult] = field(default_factory=list)
    registrations: list[RegistrationResult] = field(default_factory=list)
    json_merges: list[MergeResult] = field(default_factory=list)
    profile: ProfileResult | None = None

    def summary(self) -> str:
        written = sum(1 for s in self.toml_sections if s.written)
        merged = sum(1 for m in self.json_merges if m.wrote_changes)
        registered = sum(1 for r in self.registrations if r.registered)
        return (
            f"{len(self.servers)} server(s) enabled; "
            f"{written} TOML section(s) added, {registered} registration(s), "
            f"{merged} JSON file(s) updated"
        )


def run_install(
    settings: Settings,
    *,
    runner: Runner = subprocess.run,
    environ: MutableMapping[str, str] | None = None,
) -> InstallReport:
    env = os.environ if environ is None else environ
    report = InstallReport()

    # a. PATH
    report.global_bin = npm_global_bin(runner, env, settings.package_manager)
    if report.global_bin is not None:
        report.path_updated = ensure_on_path(report.global_bin, env)
    else:
        log.warning("{} not available; global bin directory unknown", settings.package_manager)

    # b. packages
    if settings.skip_packages:
        log.info("Skipping package installation")
    else:
        for tool in settings.tools:
            report.tools.append(
                ensure_tool(
                    tool,
                    runner=runner,
                    environ=env,
                    package_manager=settings.package_manager,
                    dry_run=settings.dry_run,
                )
            )

    # c. workspaces
    report.workspaces = detect_workspaces(env, settings.workspaces_root, settings.workspaces)
    if not report.workspaces:
        log.info("No workspace folder detected; skipping workspace MCP config")

    report.servers = resolve_servers(env)

    # d. TOML
    report.toml_sections = write_codex_servers(
        settings.codex_config, report.servers, dry_run=settings.dry_run
    )

    # e. registration
    if settings.skip_registration:
        log.info("Skipping {} registration", settings.cli)
    else:
        registrar = CLIRegistrar(settings.cli, runner=runner, environ=env)
        report.registrations = registrar.register_all(report.servers, dry_run=settings.dry_run)

    # f. JSON
    targets = [settings.vscode_user_config]
    targets.extend(workspace_mcp_json(ws) for ws in report.workspaces)
    for target in targets:
        report.json_merges.append(
            merge_editor_config(target, report.servers, dry_run=settings.dry_run)
        )

    # g. shell profile
    if settings.skip_profile:
        log.info("Skipping shell profile update")
    else:
        report.profile = ensure_profile_block(
            settings.shell_profile,
            path_export_lines(report.global_bin),
            dry_run=settings.dry_run,
        )

    log.info("Provisioning complete: {}", report.summary())
    return report
