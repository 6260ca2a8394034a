"""CLI tests for rwboot."""

from __future__ import annotations

import json

import pytest

import rwboot.cli as cli_mod
from conftest import install_tool, make_project
from rwboot.cli import app
from rwboot.environment import Classification, EnvironmentClass
from rwboot.orchestrator import SetupOrchestrator


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("SKIP_CLOUDFLARE", "CLOUDFLARE_API_TOKEN", "NO_COLOR", "RWBOOT_OUTPUT", "RWBOOT_PROJECT_NAME"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def wire(monkeypatch, fake_runner, context):
    """Route the CLI's orchestrator through the fake runner and stub tools."""

    def _build(config):
        return SetupOrchestrator(
            config,
            runner=fake_runner,
            context=context,
            classification=Classification(EnvironmentClass.INTERACTIVE),
        )

    monkeypatch.setattr(cli_mod, "_build_orchestrator", _build)
    return fake_runner


@pytest.fixture
def workstation(wire, bin_dir):
    for name in ("node", "git", "npm", "pnpm", "wrangler"):
        install_tool(bin_dir, name)
    wire.on("node", "--version", stdout="v20.11.1")
    wire.on("wrangler", "--version", stdout="3.57.0")
    wire.on("npx", effect=make_project)
    wire.on("wrangler", "whoami", stdout="Not logged in")
    return wire


def test_version(runner):
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "rwboot 0.1.0" in result.output


def test_help_lists_options(runner):
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "--skip-cloud" in result.output
    assert "--output" in result.output


def test_json_report(runner, workstation, work_dir):
    result = runner.invoke(app, ["demo", "--output", "json", "--quiet"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    report = payload["result"]
    assert report["project_name"] == "demo"
    assert report["package_manager"] == "pnpm"
    steps = {step["name"]: step for step in report["steps"]}
    assert steps["CreateDatabase"]["status"] == "failed_non_fatal"
    assert steps["CreateDatabase"]["cause"] == "auth"
    assert steps["Scaffold"]["status"] == "success"
    assert (work_dir / "demo").is_dir()


def test_skip_cloud_flag(runner, workstation):
    result = runner.invoke(app, ["demo", "--skip-cloud", "-o", "json", "-q"])

    assert result.exit_code == 0
    steps = {step["name"]: step for step in json.loads(result.stdout)["result"]["steps"]}
    assert steps["CreateBucket"]["status"] == "skipped"
    assert not workstation.called("wrangler", "whoami")


def test_skip_environment_variable(runner, workstation, monkeypatch):
    monkeypatch.setenv("SKIP_CLOUDFLARE", "true")
    result = runner.invoke(app, ["demo", "-o", "json", "-q"])

    assert result.exit_code == 0
    assert not workstation.called("wrangler", "whoami")


def test_text_report(runner, workstation):
    result = runner.invoke(app, ["demo", "--no-color"])

    assert result.exit_code == 0
    assert "Setup steps" in result.output
    assert "Quick start:" in result.output
    assert "pnpm dev" in result.output
    assert "Next steps:" in result.output
    assert "environment ready" in result.output


def test_missing_prerequisite_exit_code(runner, wire, bin_dir):
    for name in ("node", "npm"):
        install_tool(bin_dir, name)
    wire.on("node", "--version", stdout="v20.11.1")

    result = runner.invoke(app, ["demo", "--no-color"])

    assert result.exit_code == 10
    assert "Git" in result.output
    assert "https://git-scm.com/downloads" in result.output


def test_missing_prerequisite_json(runner, wire, bin_dir):
    install_tool(bin_dir, "git")
    install_tool(bin_dir, "npm")

    result = runner.invoke(app, ["demo", "-o", "json", "-q"])

    assert result.exit_code == 10
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "E1000"
    assert payload["error"]["details"]["missing"][0]["name"] == "Node.js ≥18"
    assert payload["result"]["steps"][0]["status"] == "failed_fatal"


def test_scaffold_failure_exit_code(runner, workstation):
    workstation.on("npx", exit_code=1)
    workstation.on("create-rwsdk", exit_code=1)

    result = runner.invoke(app, ["demo", "-o", "json", "-q"])

    assert result.exit_code == 40
    payload = json.loads(result.stdout)
    assert payload["error"]["category"] == "scaffold"
    assert len(payload["error"]["details"]["attempts"]) == 3


def test_invalid_project_name(runner, wire):
    result = runner.invoke(app, ["../escape", "-o", "json", "-q"])

    assert result.exit_code == 2
    assert json.loads(result.stdout)["error"]["code"] == "E2001"


def test_invalid_output_mode(runner, wire):
    result = runner.invoke(app, ["demo", "--output", "yaml"])
    assert result.exit_code == 2
    assert "Traceback" not in result.output


def test_output_mode_is_case_insensitive(runner, workstation):
    result = runner.invoke(app, ["demo", "--output", "JSON", "-q"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["ok"] is True


def test_invalid_configured_output_mode(runner, wire, monkeypatch):
    monkeypatch.setenv("RWBOOT_OUTPUT", "yaml")

    result = runner.invoke(app, ["demo", "--no-color"])

    assert result.exit_code == 2
    assert "Invalid output mode" in result.output
    assert not wire.calls


def test_missing_directory_is_usage_error(runner, wire, tmp_path):
    result = runner.invoke(app, ["demo", "-C", str(tmp_path / "does-not-exist")])

    assert result.exit_code == 2
    assert not wire.calls


def test_interrupt(runner, monkeypatch):
    class Interrupted:
        result = None

        def run(self, parent_dir=None):
            raise KeyboardInterrupt

    monkeypatch.setattr(cli_mod, "_build_orchestrator", lambda config: Interrupted())

    result = runner.invoke(app, ["demo", "--no-color"])

    assert result.exit_code == 130
    assert "interrupted" in result.output


def test_directory_option(runner, workstation, tmp_path):
    target = tmp_path / "elsewhere"
    target.mkdir()

    result = runner.invoke(app, ["demo", "-C", str(target), "-o", "json", "-q"])

    assert result.exit_code == 0
    assert (target / "demo").is_dir()
    assert json.loads(result.stdout)["result"]["project_dir"] == str(target / "demo")


def test_unexpected_error_is_internal(runner, monkeypatch):
    class Broken:
        result = None

        def run(self, parent_dir=None):
            raise RuntimeError("disk on fire")

    monkeypatch.setattr(cli_mod, "_build_orchestrator", lambda config: Broken())

    result = runner.invoke(app, ["demo", "-o", "json", "-q"])

    assert result.exit_code == 70
    error = json.loads(result.stdout)["error"]
    assert error["category"] == "internal"
    assert error["message"] == "Internal error: disk on fire"
