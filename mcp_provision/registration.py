"""Register stdio MCP servers with an installed CLI (`<cli> mcp list` / `<cli> mcp add`)."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from loguru import logger as log

from .config import ProvisionError
from .servers import MCPServerConfig
from .toolchain import Runner, run_captured


class RegistrationError(ProvisionError):
    def __init__(self, message: str, server_name: str | None = None):
        super().__init__(message)
        self.server_name = server_name


@dataclass
class RegistrationResult:
    name: str
    registered: bool
    already_present: bool
    dry_run: bool = False


class CLIRegistrar:
    """List-then-add registration against a CLI such as `claude`."""

    def __init__(
        self,
        cli: str = "claude",
        *,
        runner: Runner = subprocess.run,
        environ: Mapping[str, str] | None = None,
    ):
        self.cli = cli
        self.runner = runner
        self.environ = os.environ if environ is None else environ

    def is_available(self) -> bool:
        return shutil.which(self.cli, path=self.environ.get("PATH")) is not None

    def list_servers(self) -> str:
        """Raw `mcp list` output. A failing list is treated as an empty listing."""
        proc = run_captured(self.runner, [self.cli, "mcp", "list"])
        if proc.returncode != 0:
            log.debug("{} mcp list exited with {}", self.cli, proc.returncode)
            return ""
        return proc.stdout or ""

    @staticmethod
    def is_registered(name: str, listing: str) -> bool:
        # `claude mcp list` prints "name: command - status"; older builds print the bare name
        pattern = re.compile(rf"^\s*{re.escape(name)}(?::|\s|$)", re.MULTILINE)
        return pattern.search(listing) is not None

    def add_command(self, server: MCPServerConfig) -> list[str]:
        # --env is variadic, so it must follow the name and be closed by "--"
        cmd = [self.cli, "mcp", "add", "--transport", "stdio", server.name]
        for key, value in server.env.items():
            cmd.extend(["--env", f"{key}={value}"])
        cmd.extend(["--", server.command, *server.args])
        return cmd

    def register(
        self, server: MCPServerConfig, *, listing: str | None = None, dry_run: bool = False
    ) -> RegistrationResult:
        if listing is None:
            listing = self.list_servers()
        if self.is_registered(server.name, listing):
            log.info("{} MCP already registered in {}", server.name, self.cli)
            return RegistrationResult(name=server.name, registered=False, already_present=True)

        if dry_run:
            log.info("[dry-run] Would register {} MCP in {}", server.name, self.cli)
            return RegistrationResult(
                name=server.name, registered=False, already_present=False, dry_run=True
            )

        log.info("Registering {} MCP in {}...", server.name, self.cli)
        proc = run_captured(self.runner, self.add_command(server))
        if proc.returncode != 0:
            error_msg = (proc.stderr or proc.stdout or "").strip()
            raise RegistrationError(
                f"Failed to register {server.name} with {self.cli}: "
                f"{error_msg or f'exit code {proc.returncode}'}",
                server.name,
            )
        log.info("{} MCP registered successfully", server.name)
        return RegistrationResult(name=server.name, registered=True, already_present=False)

    def register_all(
        self, servers: Iterable[MCPServerConfig], *, dry_run: bool = False
    ) -> list[RegistrationResult]:
        if not self.is_available():
            log.warning("{} CLI not found; skipping MCP registration", self.cli)
            return []
        listing = self.list_servers()
        return [self.register(server, listing=listing, dry_run=dry_run) for server in servers]
