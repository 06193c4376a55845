"""
End-to-end tests for the provisioning pipeline with faked external commands
"""

import json
import tomllib
from pathlib import Path

import pytest

from mcp_provision.installer import run_install
from mcp_provision.registration import RegistrationError
from mcp_provision.shell_profile import BEGIN_MARKER
from tests.test_template import TestTemplate


class TestInstaller(TestTemplate):
    def _prepare_tools(self) -> None:
        self.make_executable("npm")
        self.make_executable("claude")
        self.runner.reply(["npm", "bin", "-g"], stdout="/opt/node/bin\n")

    def _snapshot(self, paths: list[Path]) -> dict[Path, bytes]:
        return {p: p.read_bytes() for p in paths if p.exists()}

    def test_context7_only_example(self):
        self._prepare_tools()
        self.environ["CONTEXT7_API_KEY"] = "abc"
        settings = self.make_settings()

        report = run_install(settings, runner=self.runner, environ=self.environ)

        text = settings.codex_config.read_text()
        assert text.count("[mcp_servers.context7]") == 1
        assert "[mcp_servers.tavily]" not in text
        codex = tomllib.loads(text)["mcp_servers"]
        assert "abc" in codex["context7"]["args"]

        editor = json.loads(settings.vscode_user_config.read_text())
        assert "context7" in editor["servers"]
        assert "tavily" not in editor["servers"]
        assert [s.name for s in report.servers] == ["context7", "mongodb"]

    def test_pipeline_steps(self):
        self._prepare_tools()
        workspace = self.workspaces_root / "repo"
        workspace.mkdir(parents=True)
        settings = self.make_settings()

        report = run_install(settings, runner=self.runner, environ=self.environ)

        assert report.global_bin == Path("/opt/node/bin")
        assert report.path_updated is True
        assert self.environ["PATH"].startswith("/opt/node/bin")
        assert self.runner.commands_starting_with("npm", "install", "-g") == [
            ["npm", "install", "-g", "@openai/codex"]
        ]
        assert report.workspaces == [workspace]
        assert (workspace / ".vscode" / "mcp.json").exists()
        assert [r.name for r in report.registrations] == ["mongodb"]
        assert report.profile is not None and report.profile.appended
        assert BEGIN_MARKER in settings.shell_profile.read_text()

    def test_second_run_is_byte_identical(self):
        self._prepare_tools()
        (self.workspaces_root / "repo").mkdir(parents=True)
        self.environ.update({"CONTEXT7_API_KEY": "abc", "TAVILY_API_KEY": "tv"})
        settings = self.make_settings()
        files = [
            settings.codex_config,
            settings.vscode_user_config,
            self.workspaces_root / "repo" / ".vscode" / "mcp.json",
            settings.shell_profile,
        ]

        run_install(settings, runner=self.runner, environ=self.environ)
        first = self._snapshot(files)
        self.runner.reply(["claude", "mcp", "list"], stdout="context7: npx\ntavily: npx\nmongodb: npx\n")
        report = run_install(settings, runner=self.runner, environ=self.environ)

        assert len(first) == len(files)
        assert self._snapshot(files) == first
        assert not any(s.written for s in report.toml_sections)
        assert not any(m.wrote_changes for m in report.json_merges)
        assert all(r.already_present for r in report.registrations)

    def test_soft_skips_without_tooling(self):
        settings = self.make_settings()

        report = run_install(settings, runner=self.runner, environ=self.environ)

        assert report.global_bin is None
        assert report.tools[0].skipped_reason == "npm missing"
        assert report.registrations == []
        assert report.workspaces == []
        assert self.runner.calls == []
        # config files are still written
        assert settings.codex_config.exists()
        assert settings.vscode_user_config.exists()

    def test_skip_flags(self):
        self._prepare_tools()
        settings = self.make_settings(skip_packages=True, skip_registration=True, skip_profile=True)

        report = run_install(settings, runner=self.runner, environ=self.environ)

        assert report.tools == []
        assert report.registrations == []
        assert report.profile is None
        assert not settings.shell_profile.exists()
        assert self.runner.commands_starting_with("claude") == []

    def test_dry_run_touches_nothing(self):
        self._prepare_tools()
        settings = self.make_settings(dry_run=True)

        run_install(settings, runner=self.runner, environ=self.environ)

        assert not settings.codex_config.exists()
        assert not settings.vscode_user_config.exists()
        assert not settings.shell_profile.exists()
        assert self.runner.commands_starting_with("npm", "install") == []
        assert self.runner.commands_starting_with("claude", "mcp", "add") == []

    def test_registration_failure_aborts_before_json(self):
        self._prepare_tools()
        self.runner.reply(["claude", "mcp", "add"], returncode=1, stderr="nope")
        settings = self.make_settings()

        with pytest.raises(RegistrationError):
            run_install(settings, runner=self.runner, environ=self.environ)

        assert settings.codex_config.exists()
        assert not settings.vscode_user_config.exists()
