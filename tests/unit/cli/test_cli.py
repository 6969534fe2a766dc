"""Unit tests for the secure-fs command line."""

import importlib
import json

import pytest
from typer.testing import CliRunner

from secure_fs.cli import app
from secure_fs.cli.constants import ExitCodes

# The package re-exports the Typer object under the module's name
cli_module = importlib.import_module("secure_fs.cli.app")

runner = CliRunner()


@pytest.fixture
def cli_env(isolated_env, tmp_path):
    """Run the CLI from an empty directory with logging setup stubbed out."""
    isolated_env.chdir(tmp_path)
    isolated_env.setattr(cli_module, "setup_logging", lambda *args, **kwargs: None)
    return isolated_env


@pytest.fixture
def missing_config(tmp_path):
    """Config path that does not exist, so only CLI and env settings apply."""
    return str(tmp_path / "no-config.json")


@pytest.mark.unit
@pytest.mark.cli
class TestInformationalFlags:
    """Tests for flags that exit before serving."""

    def test_version(self, cli_env):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == ExitCodes.SUCCESS
        assert "secure-fs version" in result.output

    def test_help(self, cli_env):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == ExitCodes.SUCCESS
        assert "--create-config" in result.output
        assert "--check" in result.output


@pytest.mark.unit
@pytest.mark.cli
class TestCreateConfig:
    """Tests for --create-config."""

    def test_writes_sample(self, cli_env, tmp_path):
        path = tmp_path / "sample.json"

        result = runner.invoke(app, ["--create-config", str(path)])

        assert result.exit_code == ExitCodes.SUCCESS
        assert json.loads(path.read_text())["allowed_directories"] == [str(tmp_path.resolve())]

    def test_refuses_to_overwrite(self, cli_env, tmp_path):
        path = tmp_path / "sample.json"
        path.write_text("{}")

        result = runner.invoke(app, ["--create-config", str(path)])

        assert result.exit_code == ExitCodes.GENERAL_ERROR
        assert "already exists" in result.output
        assert path.read_text() == "{}"


@pytest.mark.unit
@pytest.mark.cli
class TestCheck:
    """Tests for --check."""

    def test_valid_configuration(self, cli_env, allowed_dir, missing_config):
        result = runner.invoke(app, [str(allowed_dir), "--config", missing_config, "--check"])

        assert result.exit_code == ExitCodes.SUCCESS
        assert "Configuration is valid" in result.output

    def test_missing_directory(self, cli_env, tmp_path, missing_config):
        result = runner.invoke(
            app, [str(tmp_path / "missing"), "--config", missing_config, "--check"]
        )

        assert result.exit_code == ExitCodes.GENERAL_ERROR
        assert "does not exist" in result.output

    def test_config_file_values_shown(self, cli_env, config_file):
        result = runner.invoke(app, ["--config", str(config_file), "--check"])

        assert result.exit_code == ExitCodes.SUCCESS
        assert "debug" in result.output

    def test_invalid_environment_value(self, cli_env, allowed_dir, missing_config):
        cli_env.setenv("SECURE_FS_LOG_LEVEL", "chatty")

        result = runner.invoke(app, [str(allowed_dir), "--config", missing_config, "--check"])

        assert result.exit_code == ExitCodes.GENERAL_ERROR
        assert "Configuration error" in result.output


@pytest.mark.unit
@pytest.mark.cli
class TestServe:
    """Tests for starting the server."""

    def test_no_directories_exits_with_error(self, cli_env, missing_config):
        result = runner.invoke(app, ["--config", missing_config])

        assert result.exit_code == ExitCodes.GENERAL_ERROR
        assert "No allowed directories" in result.output

    def test_missing_directory_exits_with_error(self, cli_env, tmp_path, missing_config):
        result = runner.invoke(app, [str(tmp_path / "missing"), "--config", missing_config])

        assert result.exit_code == ExitCodes.GENERAL_ERROR
        assert "does not exist" in result.output

    def test_serves_with_cli_directories(self, cli_env, allowed_dir, missing_config):
        served = []

        async def fake_serve(context):
            served.append(context)
            context.close()

        cli_env.setattr("secure_fs.server.serve", fake_serve)

        result = runner.invoke(app, [str(allowed_dir), "--config", missing_config])

        assert result.exit_code == ExitCodes.SUCCESS
        assert len(served) == 1
        assert served[0].sandbox.allowed_directories == (str(allowed_dir),)

    def test_interrupt_exit_code(self, cli_env, allowed_dir, missing_config):
        async def interrupted(context):
            context.close()
            raise KeyboardInterrupt

        cli_env.setattr("secure_fs.server.serve", interrupted)

        result = runner.invoke(app, [str(allowed_dir), "--config", missing_config])

        assert result.exit_code == ExitCodes.INTERRUPTED
