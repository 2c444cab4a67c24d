"""Error hierarchy for script resolution and launch."""

from __future__ import annotations

CONFIG_ERROR_EXIT_CODE = 78
SPAWN_ERROR_EXIT_CODE = 127


class ScriptsError(RuntimeError):
    """Fatal orchestrator error carrying the exit code the CLI should use."""

    exit_code: int = CONFIG_ERROR_EXIT_CODE

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(ScriptsError):
    """Declaration file is missing or malformed."""


class ScriptNotFound(ScriptsError):
    """Requested script name is empty or not declared."""

    def __init__(self, script_name: str) -> None:
        if script_name:
            message = f'script "{script_name}" not found!'
        else:
            message = "Specify a script to be executed!"
        super().__init__(message)
        self.script_name = script_name


class NoExecutionTarget(ScriptsError):
    """Script definition has neither a usable `file` nor `run` value."""

    def __init__(self, script_name: str) -> None:
        super().__init__(f'script "{script_name}" has nothing to run: set "file" or "run".')
        self.script_name = script_name


class FileNotFound(ScriptsError):
    """File-backed script points to a path that does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File {path} not found!")
        self.path = path


class EnvFileLoadError(ScriptsError):
    """Environment file could not be read."""


class LaunchError(ScriptsError):
    """Child process could not be started."""

    exit_code = SPAWN_ERROR_EXIT_CODE
