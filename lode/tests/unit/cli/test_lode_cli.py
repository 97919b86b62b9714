"""
Tests for the lode command line interface.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from lode.cli.lode_cli import app
from lode.configs.config import settings
from lode.core.exceptions import ConfigurationError

SAMPLE_CONFIG = Path(__file__).resolve().parents[4] / "sample_config"


@pytest.fixture
def runner():
    """CliRunner fixture for testing Typer commands"""
    return CliRunner()


@pytest.fixture
def restore_viewer_settings(monkeypatch):
    """Let the run command mutate the global viewer settings for one test only"""
    for name in ("config_dir", "state_file", "root_url", "locale"):
        monkeypatch.setattr(settings.viewer, name, getattr(settings.viewer, name))


class TestVersion:
    @patch("lode.cli.commands.standalone.get_version", return_value="1.2.3")
    def test_installed(self, mock_version, runner):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Lode version: 1.2.3" in result.output

    @patch("lode.cli.commands.standalone.get_version", return_value=None)
    def test_not_installed(self, mock_version, runner):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "unknown (not installed)" in result.output


class TestCheckConfig:
    def test_sample_config_is_valid(self, runner, monkeypatch):
        monkeypatch.setenv("MAPBOX_ACCESS_TOKEN", "pk.sample")

        result = runner.invoke(app, ["check-config", "-c", str(SAMPLE_CONFIG), "--show-maps"])

        assert result.exit_code == 0
        assert "valid" in result.output
        assert "csd-income" in result.output
        assert "Map catalog" in result.output
        assert "access token" not in result.output

    def test_missing_token_warns(self, runner, monkeypatch):
        monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)

        result = runner.invoke(app, ["check-config", "--config-dir", str(SAMPLE_CONFIG)])

        assert result.exit_code == 0
        assert "access token" in result.output

    def test_invalid_directory_exits_with_error(self, runner, tmp_path):
        result = runner.invoke(app, ["check-config", "-c", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestRun:
    @patch("lode.dash.app.create_dash_app")
    def test_options_override_settings(
        self, mock_create, runner, tmp_path, restore_viewer_settings
    ):
        server = MagicMock()
        mock_create.return_value = server

        result = runner.invoke(
            app,
            [
                "run",
                "--config-dir",
                str(tmp_path),
                "--host",
                "127.0.0.1",
                "--port",
                "9000",
                "--locale",
                "fr",
            ],
        )

        assert result.exit_code == 0
        mock_create.assert_called_once_with(settings)
        assert settings.viewer.config_dir == tmp_path
        assert settings.viewer.locale == "fr"
        server.run.assert_called_once_with(host="127.0.0.1", port=9000, debug=False)

    @patch("lode.dash.app.create_dash_app")
    def test_configuration_error_exits(self, mock_create, runner, restore_viewer_settings):
        mock_create.side_effect = ConfigurationError("Missing maps configuration")

        result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "Unable to start the viewer" in result.output
