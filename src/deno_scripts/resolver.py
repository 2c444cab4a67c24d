"""Merge per-script definitions with global defaults."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TypeVar

from deno_scripts.errors import ScriptNotFound
from deno_scripts.models import (
    EnvValue,
    FileScript,
    GlobalConfig,
    InvocationContext,
    ResolvedScript,
    ScriptDefinition,
    WatchOptions,
    WatchValue,
)

DEFAULT_ENV_FILE = ".env"

T = TypeVar("T")


def resolve(
    context: InvocationContext,
    scripts: Mapping[str, ScriptDefinition],
    global_config: GlobalConfig,
    cwd: Path | None = None,
) -> ResolvedScript:
    """Select a script by name and resolve every field against the global config.

    Script-level values win over global ones. `env` and object-form `watch`
    are merged key-wise instead of replaced. Neither input is modified.

    Raises:
        ScriptNotFound: The name is empty or not declared.
    """

    name = context.script_name
    if not name or name not in scripts:
        raise ScriptNotFound(name)
    script = scripts[name]

    if isinstance(script, FileScript):
        permissions = _pick(script.permissions, global_config.permissions)
        tsconfig = _pick(script.tsconfig, global_config.tsconfig)
        deno_args = _pick(script.deno_args, global_config.deno_args)
    else:
        permissions = global_config.permissions
        tsconfig = global_config.tsconfig
        deno_args = global_config.deno_args

    return ResolvedScript(
        name=name,
        script=script,
        env_file=_resolve_env_file(script.env_file, global_config.env_file, cwd),
        env=_merge_env(global_config.env, script.env),
        args=_pick(script.args, global_config.args),
        watch=_resolve_watch(script.watch, global_config.watch),
        permissions=permissions,
        tsconfig=tsconfig,
        deno_args=deno_args,
        debug=global_config.debug,
        import_map=global_config.import_map,
        unstable=global_config.unstable,
        interpreter=global_config.interpreter,
    )


def _pick(local: T | None, fallback: T | None) -> T | None:
    return local if local is not None else fallback


def _resolve_env_file(
    local: bool | str | None,
    fallback: bool | str | None,
    cwd: Path | None,
) -> bool | str | None:
    picked = _pick(local, fallback)
    if picked is not None:
        return picked
    base = cwd if cwd is not None else Path.cwd()
    if (base / DEFAULT_ENV_FILE).exists():
        return True
    return None


def _merge_env(
    fallback: Mapping[str, EnvValue] | None,
    local: Mapping[str, EnvValue] | None,
) -> dict[str, EnvValue]:
    return {**(fallback or {}), **(local or {})}


def _resolve_watch(local: WatchValue | None, fallback: WatchValue | None) -> WatchOptions | None:
    if not bool(_pick(local, fallback)):
        return None
    options = WatchOptions()
    if isinstance(fallback, WatchOptions):
        options = options.merged(fallback)
    if isinstance(local, WatchOptions):
        options = options.merged(local)
    return options
