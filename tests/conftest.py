from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console
from typer.testing import CliRunner

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from tests.mocks.memory_store import InMemoryObjectStore  # noqa: E402


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: Any) -> Path:
    """Point config to a temp path so tests don't touch user state."""
    cfg_path = tmp_path / "config.toml"
    monkeypatch.setenv("REPOKEEPER_CONFIG", str(cfg_path))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    for key in list(os.environ):
        if key.startswith("REPOKEEPER_") and key != "REPOKEEPER_CONFIG":
            monkeypatch.delenv(key, raising=False)
    return cfg_path


@pytest.fixture(autouse=True)
def capture_console(monkeypatch: Any) -> Console:
    """Use an in-memory Rich console during tests."""
    test_console = Console(record=True, width=200)
    import repokeeper.commands.history as history_cmd
    import repokeeper.core.console as core_console
    import repokeeper.core.decorators as decorators
    import repokeeper.main as rk_main

    monkeypatch.setattr(core_console, "console", test_console)
    monkeypatch.setattr(rk_main, "console", test_console)
    monkeypatch.setattr(history_cmd, "console", test_console)
    monkeypatch.setattr(decorators, "console", test_console)
    return test_console
