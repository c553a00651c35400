"""Tests for the termcanvas CLI"""

import json
import sys

import pytest
from typer.testing import CliRunner

from conftest import FAKE_CANVAS
from termcanvas import __version__
from termcanvas.cli import app
from termcanvas.host.registry import CANVAS_TABLE

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, socket_dir, host_config):
    path = tmp_path / "termcanvas.json"
    path.write_text(json.dumps({
        "socket_dir": str(socket_dir),
        "connect_timeout_s": 15,
        "log_level": "WARNING",
        "commands": {
            kind: [sys.executable, FAKE_CANVAS, "show", kind]
            for kind in ("system", "weather")
        },
    }))
    return path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


class TestListCommand:
    def test_json(self, config_file):
        result = runner.invoke(app, ["list", "--json", "--config-file", str(config_file)])
        assert result.exit_code == 0

        entries = json.loads(result.stdout)
        assert len(entries) == len(CANVAS_TABLE)
        weather = next(e for e in entries if e["kind"] == "weather")
        assert weather["command"][1] == FAKE_CANVAS
        assert weather["shortcut"] == "4"

    def test_table(self, config_file):
        result = runner.invoke(app, ["list", "--config-file", str(config_file)])
        assert result.exit_code == 0
        assert "calendar" in result.stdout


class TestEnvCommand:
    def test_json(self, monkeypatch):
        for name in ("TMUX", "ITERM_SESSION_ID", "KITTY_PID", "ALACRITTY_SOCKET", "VSCODE_INJECTION"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("TERM_PROGRAM", "Apple_Terminal")

        result = runner.invoke(app, ["env", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["terminal_type"] == "apple-terminal"


class TestLaunchCommand:
    def test_unknown_kind(self, config_file, socket_dir):
        result = runner.invoke(app, ["launch", "spreadsheet", "--config-file", str(config_file)])
        assert result.exit_code == 2
        assert list(socket_dir.iterdir()) == []

    def test_invalid_config_json(self, config_file):
        result = runner.invoke(app, ["launch", "weather", "--config", "{nope", "--config-file", str(config_file)])
        assert result.exit_code == 2

    def test_config_must_be_object(self, config_file):
        result = runner.invoke(app, ["launch", "weather", "--config", "[1]", "--config-file", str(config_file)])
        assert result.exit_code == 2

    def test_selected(self, config_file):
        result = runner.invoke(app, [
            "launch", "weather",
            "--scenario", "select",
            "--config", '{"location": "Berlin"}',
            "--json",
            "--config-file", str(config_file),
        ])
        assert result.exit_code == 0

        outcome = json.loads(result.stdout)
        assert outcome["status"] == "selected"
        assert outcome["payload"]["config"] == {"location": "Berlin"}
        assert outcome["alerts"] == []

    def test_cancelled(self, config_file):
        result = runner.invoke(app, [
            "launch", "weather", "--scenario", "cancel", "--config-file", str(config_file),
        ])
        assert result.exit_code == 1

    def test_alerts_reported(self, config_file):
        result = runner.invoke(app, [
            "launch", "system", "--scenario", "alerts", "--json", "--config-file", str(config_file),
        ])
        assert result.exit_code == 0
        alerts = json.loads(result.stdout)["alerts"]
        assert [a["kind"] for a in alerts] == ["system"] * 3
        assert alerts[0]["message"] == "CPU usage at 90%"

    def test_follows_navigation(self, config_file):
        result = runner.invoke(app, [
            "launch", "system", "--scenario", "navigate:weather", "--json", "--config-file", str(config_file),
        ])
        # weather starts with its own default scenario, unknown to the fake canvas
        outcome = json.loads(result.stdout)
        assert outcome["kind"] == "weather"
        assert outcome["status"] == "error"
        assert result.exit_code == 3

    def test_no_follow(self, config_file):
        result = runner.invoke(app, [
            "launch", "system", "--scenario", "navigate:weather", "--no-follow", "--json",
            "--config-file", str(config_file),
        ])
        assert result.exit_code == 0
        outcome = json.loads(result.stdout)
        assert outcome["kind"] == "system"
        assert outcome["payload"] == {"action": "navigate", "canvas": "weather"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
