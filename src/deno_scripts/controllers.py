"""Controllers for deno-scripts CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from deno_scripts.config import RunnerSettings
from deno_scripts.declaration import load_declaration, write_default_declaration
from deno_scripts.errors import ConfigError
from deno_scripts.models import InvocationContext
from deno_scripts.runner import ScriptRunner


@dataclass(slots=True)
class RunScriptCommand:
    """CLI input for running one declared script."""

    config_path: Path | None
    script_name: str
    rest_args: tuple[str, ...] = ()


@dataclass(slots=True)
class InitCommand:
    """CLI input for scaffolding a declaration file."""

    config_path: Path | None


class ScriptsCliController:
    """Coordinates declaration loading, logging setup and script execution."""

    def run_script(self, command: RunScriptCommand) -> int:
        settings = _settings(command.config_path)
        declaration = load_declaration(settings.config_path)
        level = logging.DEBUG if declaration.global_config.debug else settings.logging_level
        configure_logging(level)

        runner = ScriptRunner(declaration, settings=settings)
        return runner.run(
            InvocationContext(script_name=command.script_name, rest_args=command.rest_args),
        )

    def init(self, command: InitCommand) -> list[str]:
        """Create a starter declaration file unless one already exists."""

        settings = _settings(command.config_path)
        if not write_default_declaration(settings.config_path):
            return [f"{settings.config_path} file already exists."]
        return [f"{settings.config_path} file created."]


def configure_logging(level: int) -> None:
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger("deno_scripts").setLevel(level)


def _settings(config_path: Path | None) -> RunnerSettings:
    try:
        return RunnerSettings.from_env(config_path=config_path)
    except ValueError as error:
        raise ConfigError(str(error)) from error
