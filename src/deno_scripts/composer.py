"""Turn a resolved script into the child process argument vector."""

from __future__ import annotations

from collections.abc import Sequence

from deno_scripts.errors import NoExecutionTarget
from deno_scripts.models import (
    ArgsValue,
    CommandScript,
    FileScript,
    Permissions,
    ResolvedScript,
)


def compose(resolved: ResolvedScript, rest_args: Sequence[str] = ()) -> tuple[str, ...]:
    """Build argv for the script; `rest_args` are always appended last, verbatim.

    Pure: nothing here touches the filesystem.

    Raises:
        NoExecutionTarget: The definition carries no usable `file` or `run`.
    """

    script = resolved.script
    if isinstance(script, FileScript) and script.file:
        argv = [
            *resolved.interpreter,
            *argify_permissions(resolved.permissions),
            *argify_tsconfig(resolved.tsconfig),
            *argify_args(resolved.deno_args),
            *argify_import_map(resolved.import_map),
            *argify_unstable(resolved.unstable),
            script.file,
            *argify_args(resolved.args),
            *rest_args,
        ]
    elif isinstance(script, CommandScript) and to_args_list(script.run):
        argv = [
            *to_args_list(script.run),
            *argify_args(resolved.args),
            *rest_args,
        ]
    else:
        raise NoExecutionTarget(resolved.name)
    return tuple(argv)


def to_args_list(value: ArgsValue | None) -> list[str]:
    """Split a scalar on whitespace; sequences pass through as-is."""

    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return list(value)


def argify_args(local: ArgsValue | None, fallback: ArgsValue | None = None) -> list[str]:
    return to_args_list(local if local is not None else fallback)


def argify_tsconfig(local: str | None, fallback: str | None = None) -> list[str]:
    path = local or fallback
    return ["--config", path] if path else []


def argify_import_map(path: str | None) -> list[str]:
    return ["--import-map", path] if path else []


def argify_unstable(unstable: bool | None) -> list[str]:
    return ["--unstable"] if unstable else []


def argify_permissions(
    local: Permissions | None,
    fallback: Permissions | None = None,
) -> list[str]:
    """Emit interpreter permission flags; a local object replaces the global one."""

    permissions = local if local is not None else fallback
    if permissions is None:
        return []
    if permissions.allow_all:
        return ["--allow-all"]

    flags: list[str] = []
    for flag, value in (
        ("--allow-env", permissions.allow_env),
        ("--allow-hrtime", permissions.allow_hrtime),
        ("--allow-net", permissions.allow_net),
        ("--allow-plugin", permissions.allow_plugin),
        ("--allow-read", permissions.allow_read),
        ("--allow-run", permissions.allow_run),
        ("--allow-write", permissions.allow_write),
    ):
        if isinstance(value, str) and value:
            flags.append(f"{flag}={value}")
        elif value is True:
            flags.append(flag)
    return flags
