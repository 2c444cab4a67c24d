"""Subprocess launcher for composed script commands."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from deno_scripts.errors import FileNotFound, LaunchError
from deno_scripts.models import FileScript, LaunchMode, LaunchResult, ResolvedScript

logger = logging.getLogger(__name__)


def ensure_target(resolved: ResolvedScript, cwd: Path | None = None) -> None:
    """Fail before spawning anything if a file-backed script's target is missing."""

    script = resolved.script
    if not isinstance(script, FileScript) or not script.file:
        return
    path = Path(script.file)
    if cwd is not None and not path.is_absolute():
        path = cwd / path
    if not path.exists():
        raise FileNotFound(script.file)


def launch(
    argv: Sequence[str],
    env: Mapping[str, str] | None,
    mode: LaunchMode = LaunchMode.INHERIT,
    cwd: Path | None = None,
) -> LaunchResult:
    """Run `argv` to completion and return its exit code.

    `env` is layered over the parent environment; None inherits it unchanged.
    INHERIT shares the parent's standard streams, CAPTURE collects stdout and
    stderr and detaches stdin. Captured bytes that are not valid UTF-8 are
    replaced with U+FFFD.
    """

    if not argv:
        raise LaunchError("Cannot launch an empty command.")
    child_env = None if env is None else {**os.environ, **env}
    capture = mode is LaunchMode.CAPTURE

    try:
        process = subprocess.Popen(  # noqa: S603
            list(argv),
            env=child_env,
            cwd=cwd,
            stdin=subprocess.DEVNULL if capture else None,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.PIPE if capture else None,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as error:
        raise LaunchError(f"Command not found: {argv[0]}") from error
    except OSError as error:
        raise LaunchError(f"Failed to start {argv[0]}: {error}") from error

    logger.debug("Started pid=%s: %s", process.pid, " ".join(argv))
    try:
        stdout, stderr = process.communicate()
    except KeyboardInterrupt:
        _terminate_process(process)
        raise

    return LaunchResult(
        exit_code=normalize_exit_code(process.returncode),
        stdout=stdout,
        stderr=stderr,
    )


def normalize_exit_code(returncode: int | None) -> int:
    """Map a missing or signal-derived return code to a non-zero exit code."""

    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)
