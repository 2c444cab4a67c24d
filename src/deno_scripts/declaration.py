"""TOML declaration file: loading, validation and scaffolding."""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from deno_scripts.errors import ConfigError
from deno_scripts.models import (
    ArgsValue,
    CommandScript,
    Declaration,
    EnvValue,
    FileScript,
    GlobalConfig,
    Permissions,
    ScriptDefinition,
    WatchOptions,
    WatchValue,
)

DEFAULT_DECLARATION = """\
# Scripts executed with `deno-scripts <name> [args...]`.

[global]
debug = false

[scripts.start]
run = "echo dev"

[scripts.main]
file = "./mod.ts"
"""

_COMMON_KEYS = {"env_file", "env", "args", "watch"}
_DENO_KEYS = _COMMON_KEYS | {"permissions", "tsconfig", "deno_args"}
_FILE_KEYS = _DENO_KEYS | {"file"}
_RUN_KEYS = _COMMON_KEYS | {"run"}
_GLOBAL_KEYS = _DENO_KEYS | {"debug", "import_map", "unstable", "interpreter"}
_WATCH_KEYS = {"paths", "match", "skip", "extensions", "interval", "recursive"}
_PERMISSION_FLAGS = {"allow_all", "allow_env", "allow_hrtime", "allow_plugin", "allow_run"}
_PERMISSION_LISTS = {"allow_net", "allow_read", "allow_write"}


def load_declaration(path: Path) -> Declaration:
    """Read and validate a declaration file."""

    if not path.is_file():
        raise ConfigError(f"{path} file not found!")
    try:
        payload = tomllib.loads(path.read_text("utf-8"))
    except (OSError, UnicodeDecodeError) as error:
        raise ConfigError(f"Cannot read {path}: {error}") from error
    except tomllib.TOMLDecodeError as error:
        raise ConfigError(f"Invalid TOML in {path}: {error}") from error
    return parse_declaration(payload)


def parse_declaration(payload: Mapping[str, Any]) -> Declaration:
    """Build typed script definitions from a decoded TOML document."""

    _reject_unknown(payload, {"global", "scripts"}, "declaration")
    raw_global = payload.get("global", {})
    raw_scripts = payload.get("scripts", {})
    if not isinstance(raw_global, Mapping):
        raise ConfigError("global must be a table")
    if not isinstance(raw_scripts, Mapping):
        raise ConfigError("scripts must be a table")

    scripts: dict[str, ScriptDefinition] = {}
    for name, raw in raw_scripts.items():
        if not isinstance(raw, Mapping):
            raise ConfigError(f"scripts.{name} must be a table")
        scripts[name] = parse_script(name, raw)
    return Declaration(scripts=scripts, global_config=parse_global(raw_global))


def parse_script(name: str, raw: Mapping[str, Any]) -> ScriptDefinition:
    where = f"scripts.{name}"
    if "file" in raw and "run" in raw:
        raise ConfigError(f'{where} must set either "file" or "run", not both')

    if "file" in raw:
        _reject_unknown(raw, _FILE_KEYS, where)
        return FileScript(
            file=_string(raw["file"], f"{where}.file"),
            permissions=_permissions(raw.get("permissions"), f"{where}.permissions"),
            tsconfig=_optional_string(raw.get("tsconfig"), f"{where}.tsconfig"),
            deno_args=_args(raw.get("deno_args"), f"{where}.deno_args"),
            **_common(raw, where),
        )

    # A definition without "run" still loads; it fails only when selected.
    _reject_unknown(raw, _RUN_KEYS, where)
    run = raw.get("run", "")
    return CommandScript(
        run=_args(run, f"{where}.run") or "",
        **_common(raw, where),
    )


def parse_global(raw: Mapping[str, Any]) -> GlobalConfig:
    _reject_unknown(raw, _GLOBAL_KEYS, "global")
    interpreter = raw.get("interpreter")
    if interpreter is not None:
        interpreter = _string_list(interpreter, "global.interpreter")
        if not interpreter:
            raise ConfigError("global.interpreter must not be empty")
    options: dict[str, Any] = {}
    if interpreter is not None:
        options["interpreter"] = interpreter
    return GlobalConfig(
        permissions=_permissions(raw.get("permissions"), "global.permissions"),
        tsconfig=_optional_string(raw.get("tsconfig"), "global.tsconfig"),
        deno_args=_args(raw.get("deno_args"), "global.deno_args"),
        debug=_bool(raw.get("debug", False), "global.debug"),
        import_map=_optional_string(raw.get("import_map"), "global.import_map"),
        unstable=_bool(raw.get("unstable", False), "global.unstable"),
        **options,
        **_common(raw, "global"),
    )


def write_default_declaration(path: Path) -> bool:
    """Create a starter declaration file; return False if one already exists."""

    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_DECLARATION, "utf-8")
    return True


def _common(raw: Mapping[str, Any], where: str) -> dict[str, Any]:
    return {
        "env_file": _env_file(raw.get("env_file"), f"{where}.env_file"),
        "env": _env(raw.get("env"), f"{where}.env"),
        "args": _args(raw.get("args"), f"{where}.args"),
        "watch": _watch(raw.get("watch"), f"{where}.watch"),
    }


def _reject_unknown(raw: Mapping[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ConfigError(f"{where} has unknown keys: {', '.join(unknown)}")


def _string(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{where} must be a string")
    return value


def _optional_string(value: Any, where: str) -> str | None:
    if value is None:
        return None
    return _string(value, where)


def _bool(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{where} must be a boolean")
    return value


def _string_list(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{where} must be an array of strings")
    return tuple(value)


def _args(value: Any, where: str) -> ArgsValue | None:
    if value is None or isinstance(value, str):
        return value
    return _string_list(value, where)


def _env_file(value: Any, where: str) -> bool | str | None:
    if value is None or isinstance(value, bool | str):
        return value
    raise ConfigError(f"{where} must be a boolean or a path")


def _env(value: Any, where: str) -> dict[str, EnvValue] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ConfigError(f"{where} must be a table")
    env: dict[str, EnvValue] = {}
    for key, item in value.items():
        if not isinstance(item, str | int | float | bool):
            raise ConfigError(f"{where}.{key} must be a string, number or boolean")
        env[key] = item
    return env


def _watch(value: Any, where: str) -> WatchValue | None:
    if value is None or isinstance(value, bool):
        return value
    if not isinstance(value, Mapping):
        raise ConfigError(f"{where} must be a boolean or a table")
    _reject_unknown(value, _WATCH_KEYS, where)

    interval = value.get("interval")
    if interval is not None and (
        isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0
    ):
        raise ConfigError(f"{where}.interval must be a positive integer (milliseconds)")
    recursive = value.get("recursive")
    if recursive is not None:
        recursive = _bool(recursive, f"{where}.recursive")

    lists = {
        key: _string_list(value[key], f"{where}.{key}")
        for key in ("paths", "match", "skip", "extensions")
        if value.get(key) is not None
    }
    return WatchOptions(interval=interval, recursive=recursive, **lists)


def _permissions(value: Any, where: str) -> Permissions | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ConfigError(f"{where} must be a table")
    _reject_unknown(value, _PERMISSION_FLAGS | _PERMISSION_LISTS, where)

    flags: dict[str, bool | str] = {}
    for key, item in value.items():
        if key in _PERMISSION_FLAGS:
            flags[key] = _bool(item, f"{where}.{key}")
        elif isinstance(item, bool | str):
            flags[key] = item
        else:
            flags[key] = ",".join(_string_list(item, f"{where}.{key}"))
    return Permissions(**flags)
