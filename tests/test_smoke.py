from __future__ import annotations

import click
from typer.main import get_command
from typer.testing import CliRunner

from repokeeper import __version__
from repokeeper.main import app

runner = CliRunner()


def test_app_version(capture_console) -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in capture_console.export_text()


def test_history_commands_registered() -> None:
    click_app = get_command(app)
    assert isinstance(click_app, click.Group)
    assert {"log", "fix", "fix-bulk", "config", "version"} <= set(click_app.commands)


def test_all_commands_have_help() -> None:
    """
    Critical Smoke Test: Iterate over EVERY registered command and ensure
    it accepts --help. This catches import errors, signature problems in
    decorated commands, and missing dependencies in the command modules.
    """
    click_app = get_command(app)
    if isinstance(click_app, click.Group):
        for name in click_app.commands:
            result = runner.invoke(app, [name, "--help"])
            assert result.exit_code == 0, f"Command 'repokeeper {name} --help' failed!"
            assert "Usage:" in result.stdout
