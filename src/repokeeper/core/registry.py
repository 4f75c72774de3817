from __future__ import annotations

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from repokeeper.core.console import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    name: str
    module: str
    handler: Callable[..., None]


# module stem -> {cli name: attribute}
_FUNCTION_COMMANDS: dict[str, dict[str, str]] = {
    "history": {"log": "show_log", "fix": "fix", "fix-bulk": "fix_bulk"},
}


def _build_function_commands(package: str, module_name: str) -> list[CommandSpec]:
    module = importlib.import_module(f"{package}.{module_name}")
    specs: list[CommandSpec] = []
    for cmd_name, attr in _FUNCTION_COMMANDS[module_name].items():
        handler = getattr(module, attr, None)
        if not callable(handler):
            raise AttributeError(f"Command {module_name}.{attr} not found or not callable")
        specs.append(CommandSpec(name=cmd_name, module=module_name, handler=handler))
    return specs


def discover_commands(package_path: Path, package: str = "repokeeper.commands") -> list[CommandSpec]:
    """
    Discover command callables in the commands package.

    Modules without an entry in the command table are skipped with a debug
    message; an entry pointing at a missing callable is an error.
    """
    commands: list[CommandSpec] = []

    for file in sorted(package_path.glob("*.py")):
        if file.name.startswith("_"):
            continue
        module_name = file.stem
        if module_name not in _FUNCTION_COMMANDS:
            logger.debug("Skipping %s: no commands registered", module_name)
            continue
        commands.extend(_build_function_commands(package, module_name))

    return commands
