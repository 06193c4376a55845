"""
Configuration management for mcp-provision

Settings are resolved from the process environment (optionally seeded from a
.env file by the CLI). No config file of our own - the files we manage are
the editor/CLI configs themselves.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from loguru import logger as log

ENV_PREFIX = "MCP_PROVISION_"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class ProvisionError(Exception):
    """Base class for fatal provisioning failures"""


class ConfigError(ProvisionError):
    """Exception raised for configuration-related errors"""

    def __init__(self, message: str, config_path: Path | None = None):
        self.message = message
        self.config_path = config_path
        super().__init__(self.message)


@dataclass(frozen=True)
class ToolSpec:
    """A CLI tool installed globally through the package manager"""

    command: str
    package: str


DEFAULT_TOOLS: tuple[ToolSpec, ...] = (ToolSpec(command="codex", package="@openai/codex"),)


def profile_path_for_shell(shell: str, home: Path) -> Path:
    """Pick the rc file a login shell of the given kind will source."""
    name = Path(shell).name if shell else ""
    if name == "zsh":
        return home / ".zshrc"
    if name == "bash":
        return home / ".bashrc"
    return home / ".profile"


def vscode_user_config_path(home: Path, environ: Mapping[str, str]) -> Path:
    """User-level VS Code mcp.json.

    Remote/container sessions keep user data under ~/.vscode-server; desktop
    Linux installs use $XDG_CONFIG_HOME/Code.
    """
    server_dir = home / ".vscode-server" / "data" / "User"
    if server_dir.is_dir() or environ.get("CODESPACES") or environ.get("REMOTE_CONTAINERS"):
        return server_dir / "mcp.json"
    xdg = environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else home / ".config"
    return base / "Code" / "User" / "mcp.json"


@dataclass
class Settings:
    """Everything a provisioning run needs to know"""

    home: Path
    codex_config: Path
    vscode_user_config: Path
    workspaces_root: Path
    shell_profile: Path
    cli: str = "claude"
    package_manager: str = "npm"
    tools: tuple[ToolSpec, ...] = DEFAULT_TOOLS
    workspaces: list[Path] = field(default_factory=list)
    dry_run: bool = False
    skip_packages: bool = False
    skip_registration: bool = False
    skip_profile: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, home: Path | None = None
    ) -> "Settings":
        """Build settings from environment variables, applying MCP_PROVISION_* overrides"""
        env = os.environ if environ is None else environ

        def override(key: str) -> str | None:
            value = env.get(ENV_PREFIX + key)
            return value if value else None

        if home is None:
            home_override = override("HOME")
            home = Path(home_override).expanduser() if home_override else Path.home()

        codex = override("CODEX_CONFIG")
        vscode = override("VSCODE_CONFIG")
        root = override("WORKSPACES_ROOT")
        profile = override("SHELL_PROFILE")

        settings = cls(
            home=home,
            codex_config=Path(codex).expanduser() if codex else home / ".codex" / "config.toml",
            vscode_user_config=(
                Path(vscode).expanduser() if vscode else vscode_user_config_path(home, env)
            ),
            workspaces_root=Path(root) if root else Path("/workspaces"),
            shell_profile=(
                Path(profile).expanduser()
                if profile
                else profile_path_for_shell(env.get("SHELL", ""), home)
            ),
            cli=override("CLI") or "claude",
            log_level=(override("LOG_LEVEL") or "INFO").upper(),
        )
        settings.validate()
        log.debug(f"Resolved settings: {settings}")
        return settings

    def validate(self) -> None:
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Unknown log level {self.log_level!r}; expected one of {', '.join(LOG_LEVELS)}"
            )
        if not self.cli.strip():
            raise ConfigError("CLI name for server registration must not be empty")

    def with_overrides(self, **changes: object) -> "Settings":
        """Return a copy with CLI-level overrides applied and re-validated"""
        updated = replace(self, **changes)  # type: ignore[arg-type]
        updated.validate()
        return updated
