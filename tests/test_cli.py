import json
from pathlib import Path

import pytest

from mcp_provision.cli import LOG_TAG, build_arg_parser, run_cli
from tests.test_template import TestTemplate


class TestCli(TestTemplate):
    @pytest.fixture(autouse=True)
    def _cli_env(self, setup, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Point the real process environment at the isolated home; no real tools on PATH."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PATH", str(self.bin_dir))
        monkeypatch.setenv("SHELL", "/bin/bash")
        monkeypatch.setenv("MCP_PROVISION_HOME", str(self.home))
        monkeypatch.setenv("MCP_PROVISION_WORKSPACES_ROOT", str(self.workspaces_root))

    def test_parser_defaults(self):
        args = build_arg_parser().parse_args([])
        assert args.command is None
        assert args.dry_run is False
        assert args.workspace is None

    def test_top_level_flags_survive_subcommand(self):
        args = build_arg_parser().parse_args(
            ["--dry-run", "--skip-profile", "--workspace", "/x", "install"]
        )
        assert args.command == "install"
        assert args.dry_run is True
        assert args.skip_profile is True
        assert args.workspace == [Path("/x")]

    def test_flags_after_subcommand(self):
        args = build_arg_parser().parse_args(["install", "--skip-packages"])
        assert args.skip_packages is True
        assert args.dry_run is False

    def test_install_subcommand(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CONTEXT7_API_KEY", "abc")
        workspace = self.home / "proj"

        code = run_cli(["install", "--skip-registration", "--workspace", str(workspace)])

        assert code == 0
        codex = (self.home / ".codex" / "config.toml").read_text()
        assert "[mcp_servers.context7]" in codex
        assert (workspace / ".vscode" / "mcp.json").exists()
        assert (self.home / ".bashrc").exists()

    def test_dotenv_file_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        # Record the variable as absent so the value loaded from .env is undone afterwards
        monkeypatch.setenv("TAVILY_API_KEY", "")
        monkeypatch.delenv("TAVILY_API_KEY")
        (tmp_path / ".env").write_text("TAVILY_API_KEY=from-dotenv\n")

        assert run_cli(["--skip-registration", "--skip-profile"]) == 0

        codex = (self.home / ".codex" / "config.toml").read_text()
        assert "from-dotenv" in codex

    def test_dry_run_default_command(self):
        assert run_cli(["--dry-run"]) == 0
        assert not (self.home / ".codex").exists()

    def test_dry_run_before_install_subcommand(self):
        assert run_cli(["--dry-run", "install"]) == 0
        assert not (self.home / ".codex").exists()
        assert not (self.home / ".bashrc").exists()

    def test_every_log_line_is_tagged(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.setenv("MCP_PROVISION_LOG_LEVEL", "DEBUG")

        assert run_cli(["status"]) == 0

        err = capsys.readouterr().err
        assert "Resolved settings" in err
        lines = [line for line in err.splitlines() if line.strip()]
        assert lines
        assert all(line.startswith(LOG_TAG) for line in lines)

    def test_config_error_is_tagged(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.setenv("MCP_PROVISION_LOG_LEVEL", "loud")

        assert run_cli(["status"]) == 1

        err = capsys.readouterr().err
        assert f"{LOG_TAG} ERROR" in err
        assert "Unknown log level" in err

    def test_config_error_exit_code(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MCP_PROVISION_LOG_LEVEL", "loud")
        assert run_cli(["status"]) == 1

    def test_malformed_toml_exit_code(self):
        codex = self.home / ".codex" / "config.toml"
        codex.parent.mkdir(parents=True)
        codex.write_text("[mcp_servers\n")

        assert run_cli(["status"]) == 1

    def test_status_output(self, capsys: pytest.CaptureFixture[str]):
        assert run_cli(["--skip-registration", "--skip-profile"]) == 0
        capsys.readouterr()

        assert run_cli(["status"]) == 0

        out = capsys.readouterr().out
        assert "✓ mongodb" in out
        assert "○ context7" in out
        vscode = self.home / ".config" / "Code" / "User" / "mcp.json"
        assert json.loads(vscode.read_text())["servers"] == {}
