"""Typed models for script declarations and resolved invocations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TypeAlias

EnvValue: TypeAlias = str | int | float | bool
ArgsValue: TypeAlias = str | tuple[str, ...]

DEFAULT_INTERPRETER: tuple[str, ...] = ("deno", "run")


@dataclass(frozen=True, slots=True)
class Permissions:
    """Interpreter capability flags.

    String values of `allow_net`, `allow_read` and `allow_write` narrow the
    permission to a comma-separated allow-list.
    """

    allow_all: bool = False
    allow_env: bool = False
    allow_hrtime: bool = False
    allow_net: bool | str = False
    allow_plugin: bool = False
    allow_read: bool | str = False
    allow_run: bool = False
    allow_write: bool | str = False


@dataclass(frozen=True, slots=True)
class WatchOptions:
    """Watch-mode options; `None` means the key is not set."""

    paths: tuple[str, ...] | None = None
    match: tuple[str, ...] | None = None
    skip: tuple[str, ...] | None = None
    extensions: tuple[str, ...] | None = None
    interval: int | None = None
    recursive: bool | None = None

    def merged(self, override: WatchOptions) -> WatchOptions:
        """Return a key-wise union where keys set on `override` win."""

        values = {}
        for item in fields(self):
            local = getattr(override, item.name)
            values[item.name] = local if local is not None else getattr(self, item.name)
        return WatchOptions(**values)


WatchValue: TypeAlias = bool | WatchOptions


@dataclass(frozen=True, slots=True)
class FileScript:
    """Script executed as `<interpreter> ... <file>`."""

    file: str
    env_file: bool | str | None = None
    env: Mapping[str, EnvValue] | None = None
    args: ArgsValue | None = None
    watch: WatchValue | None = None
    permissions: Permissions | None = None
    tsconfig: str | None = None
    deno_args: ArgsValue | None = None


@dataclass(frozen=True, slots=True)
class CommandScript:
    """Script executed directly as a command line."""

    run: ArgsValue
    env_file: bool | str | None = None
    env: Mapping[str, EnvValue] | None = None
    args: ArgsValue | None = None
    watch: WatchValue | None = None


ScriptDefinition: TypeAlias = FileScript | CommandScript


@dataclass(frozen=True, slots=True)
class GlobalConfig:
    """Defaults applied to every script unless the script overrides them."""

    env_file: bool | str | None = None
    env: Mapping[str, EnvValue] | None = None
    args: ArgsValue | None = None
    watch: WatchValue | None = None
    permissions: Permissions | None = None
    tsconfig: str | None = None
    deno_args: ArgsValue | None = None
    debug: bool = False
    import_map: str | None = None
    unstable: bool = False
    interpreter: tuple[str, ...] = DEFAULT_INTERPRETER


@dataclass(frozen=True, slots=True)
class Declaration:
    """Loaded declaration file: named scripts plus global defaults."""

    scripts: Mapping[str, ScriptDefinition]
    global_config: GlobalConfig = field(default_factory=GlobalConfig)


@dataclass(frozen=True, slots=True)
class InvocationContext:
    """Script name and trailing arguments from the outer invocation."""

    script_name: str
    rest_args: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ResolvedScript:
    """Script definition with every overridable field resolved against globals."""

    name: str
    script: ScriptDefinition
    env_file: bool | str | None
    env: Mapping[str, EnvValue]
    args: ArgsValue | None
    watch: WatchOptions | None
    permissions: Permissions | None
    tsconfig: str | None
    deno_args: ArgsValue | None
    debug: bool = False
    import_map: str | None = None
    unstable: bool = False
    interpreter: tuple[str, ...] = DEFAULT_INTERPRETER

    @property
    def watch_enabled(self) -> bool:
        return self.watch is not None


@dataclass(frozen=True, slots=True)
class ResolvedInvocation:
    """Argument vector and environment overlay ready for a child process."""

    argv: tuple[str, ...]
    env: Mapping[str, str] | None


class LaunchMode(str, Enum):
    """How the child process standard streams are wired."""

    INHERIT = "inherit"
    CAPTURE = "capture"


@dataclass(frozen=True, slots=True)
class LaunchResult:
    """Outcome of one child process run."""

    exit_code: int
    stdout: str | None = None
    stderr: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One filesystem change reported by the watcher."""

    path: str
    event: str
