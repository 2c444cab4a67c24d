"""Resolve, compose and launch a declared script, once or in watch mode."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from deno_scripts.composer import compose
from deno_scripts.config import RunnerSettings
from deno_scripts.env import build_env
from deno_scripts.errors import LaunchError
from deno_scripts.launcher import ensure_target, launch
from deno_scripts.models import (
    ChangeEvent,
    Declaration,
    InvocationContext,
    LaunchMode,
    LaunchResult,
    ResolvedInvocation,
    ResolvedScript,
)
from deno_scripts.resolver import resolve
from deno_scripts.watcher import ChangeSource, WatchSupervisor, watch_paths

logger = logging.getLogger(__name__)

Launcher = Callable[
    [Sequence[str], Mapping[str, str] | None, LaunchMode, Path | None],
    LaunchResult,
]


class ScriptRunner:
    """Runs declared scripts and returns exit codes instead of exiting."""

    def __init__(  # noqa: PLR0913
        self,
        declaration: Declaration,
        *,
        cwd: Path | None = None,
        settings: RunnerSettings | None = None,
        launcher: Launcher = launch,
        change_source: ChangeSource | None = None,
        on_output: Callable[[LaunchResult], None] | None = None,
    ) -> None:
        self.declaration = declaration
        self.cwd = cwd
        self.settings = settings or RunnerSettings()
        self.launcher = launcher
        self.change_source = change_source
        self.on_output = on_output or _relay_output
        self._supervisor: WatchSupervisor | None = None

    def run(self, context: InvocationContext) -> int:
        """Run the named script and return the exit code for the outer process.

        Configuration errors raise `ScriptsError` subclasses before any child
        is spawned. In one-shot mode the child's exit code is returned; watch
        mode returns 0 once watching stops.
        """

        resolved = self.resolve(context)
        ensure_target(resolved, self.cwd)
        if resolved.watch_enabled:
            return self._watch(resolved, context)

        invocation = self.prepare(resolved, context)
        result = self.launcher(invocation.argv, invocation.env, LaunchMode.INHERIT, self.cwd)
        return result.exit_code

    def resolve(self, context: InvocationContext) -> ResolvedScript:
        return resolve(
            context,
            self.declaration.scripts,
            self.declaration.global_config,
            cwd=self.cwd,
        )

    def prepare(self, resolved: ResolvedScript, context: InvocationContext) -> ResolvedInvocation:
        """Build a fresh argv and env overlay for one launch."""

        env = build_env(resolved, self.declaration.global_config, cwd=self.cwd)
        argv = compose(resolved, context.rest_args)
        if resolved.debug:
            logger.info("cmd=%s", " ".join(argv))
            logger.info("env=%s", env)
        return ResolvedInvocation(argv=argv, env=env)

    def cancel(self) -> None:
        if self._supervisor is not None:
            self._supervisor.cancel()

    def _watch(self, resolved: ResolvedScript, context: InvocationContext) -> int:
        logger.info("Watch mode enabled.")
        self._run_cycle(resolved, context)

        def _rerun(_: tuple[ChangeEvent, ...]) -> None:
            self._run_cycle(self.resolve(context), context)

        self._supervisor = WatchSupervisor(
            paths=watch_paths(resolved, self.cwd),
            options=resolved.watch,
            on_batch=_rerun,
            source=self.change_source,
            base=self.cwd,
            default_interval_ms=self.settings.watch_interval_ms,
            force_polling=self.settings.force_polling,
        )
        try:
            self._supervisor.run()
        finally:
            self._supervisor = None
        return 0

    def _run_cycle(self, resolved: ResolvedScript, context: InvocationContext) -> None:
        invocation = self.prepare(resolved, context)
        try:
            result = self.launcher(invocation.argv, invocation.env, LaunchMode.CAPTURE, self.cwd)
        except LaunchError as error:
            logger.error("%s", error)
            return
        self.on_output(result)
        if not result.ok:
            logger.warning(
                "Script %s exited with code %d. Waiting for changes...",
                resolved.name,
                result.exit_code,
            )


def _relay_output(result: LaunchResult) -> None:
    if result.stdout:
        sys.stdout.write(result.stdout)
        sys.stdout.flush()
    if result.stderr:
        sys.stderr.write(result.stderr)
        sys.stderr.flush()
