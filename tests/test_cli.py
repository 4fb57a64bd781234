"""Tests for the drainctl CLI."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner
from convox_mock import MockConvoxContext

from drain_controller.cli import cli, show


@pytest.fixture(autouse=True)
def no_logging_setup() -> Generator[None, None, None]:
    """Keep CLI invocations from installing handlers on the real root logger."""
    with patch("drain_controller.cli.setup_logging"):
        yield


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def paths(tmp_path: Path) -> dict[str, Path]:
    spec = tmp_path / "drains.yaml"
    spec.write_text(
        yaml.safe_dump(
            {
                "drains": [
                    {
                        "name": "logs1",
                        "cluster": "prod",
                        "hostname": "logs.example.com",
                        "port": 514,
                        "scheme": "tcp",
                    }
                ]
            }
        )
    )
    return {"spec": spec, "state": tmp_path / "state.yaml"}


def _args(paths: dict[str, Path], *command: str, factory: bool = True) -> list[str]:
    args = ["--spec", str(paths["spec"]), "--state", str(paths["state"])]
    if factory:
        args += ["--client-factory", "mock.clients:factory"]
    return [*args, *command]


class TestCli:
    """Tests for drainctl commands."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "drainctl" in result.output

    def test_plan(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test plan lists the create without calling the remote API."""
        with MockConvoxContext() as ctx:
            result = runner.invoke(cli, _args(paths, "plan"))

        assert result.exit_code == 0, result.output
        assert "create   logs1" in result.output
        assert ctx.state.calls == []

    def test_apply_dry_run(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test --dry-run only plans."""
        with MockConvoxContext() as ctx:
            result = runner.invoke(cli, _args(paths, "apply", "--dry-run"))

        assert result.exit_code == 0, result.output
        assert "create   logs1" in result.output
        assert ctx.state.calls == []
        assert not paths["state"].exists()

    def test_apply_and_show(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test apply creates the drain and show prints the recorded URL."""
        with MockConvoxContext() as ctx:
            result = runner.invoke(cli, _args(paths, "apply"))
            assert result.exit_code == 0, result.output
            assert "Apply complete: 1 change(s)" in result.output
            assert ctx.state.drain_count == 1

            shown = runner.invoke(cli, _args(paths, "show"))

        assert shown.exit_code == 0, shown.output
        assert "url: tcp://logs.example.com:514" in shown.output

    def test_refresh_and_destroy(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test refresh then destroy of recorded drains."""
        with MockConvoxContext() as ctx:
            runner.invoke(cli, _args(paths, "apply"))

            refreshed = runner.invoke(cli, _args(paths, "refresh"))
            assert refreshed.exit_code == 0, refreshed.output
            assert "refresh  logs1" in refreshed.output

            destroyed = runner.invoke(cli, _args(paths, "destroy", "--yes"))
            assert destroyed.exit_code == 0, destroyed.output

        assert ctx.state.drain_count == 0

    def test_destroy_requires_confirmation(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test destroy aborts without confirmation."""
        with MockConvoxContext() as ctx:
            result = runner.invoke(cli, _args(paths, "destroy"), input="n\n")

        assert result.exit_code != 0
        assert ctx.state.calls == []

    def test_apply_remote_failure(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test remote failures exit 1 with the remote message."""
        with MockConvoxContext() as ctx:
            ctx.state.fail("create_resource", "quota exceeded")
            result = runner.invoke(cli, _args(paths, "apply"))

        assert result.exit_code == 1
        assert "Apply failed at create logs1" in result.output
        assert "quota exceeded" in result.output

    def test_apply_without_factory(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test apply without a client factory exits with the configuration code."""
        result = runner.invoke(cli, _args(paths, "apply", factory=False), env={"DRAIN_CLIENT_FACTORY": ""})

        assert result.exit_code == 2
        assert "client provider is required" in result.output

    def test_bad_client_factory_path(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test malformed factory paths are rejected up front."""
        args = ["--client-factory", "not valid", "--spec", str(paths["spec"]), "plan"]
        result = runner.invoke(cli, args)

        assert result.exit_code == 2
        assert "DRAIN_CLIENT_FACTORY" in result.output

    def test_invalid_spec(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test spec errors are reported and exit 1."""
        paths["spec"].write_text(yaml.safe_dump({"drains": [{"name": "logs1"}]}))

        result = runner.invoke(cli, _args(paths, "plan"))

        assert result.exit_code == 1
        assert "Validation failed" in result.output

    def test_show_empty(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        result = runner.invoke(cli, _args(paths, "show"))

        assert result.exit_code == 0
        assert "No drains recorded." in result.output

    def test_json_logs_from_environment(self, runner: CliRunner, paths: dict[str, Path]) -> None:
        """Test ENABLE_JSON_LOGGING turns on JSON logs like the env-driven entry point."""
        with patch("drain_controller.cli.setup_logging") as setup:
            result = runner.invoke(cli, _args(paths, "show"), env={"ENABLE_JSON_LOGGING": "true"})

        assert result.exit_code == 0, result.output
        setup.assert_called_once_with("WARNING", True)

    def test_command_outside_group(self, runner: CliRunner) -> None:
        """Test a subcommand invoked without the group's configuration is a usage error."""
        result = runner.invoke(show, [])

        assert result.exit_code == 2
        assert "must run under the drainctl group" in result.output
