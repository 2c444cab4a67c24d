"""Build the environment overlay for a resolved script."""

from __future__ import annotations

import io
import logging
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values
from dotenv.parser import parse_stream

from deno_scripts.errors import EnvFileLoadError
from deno_scripts.models import EnvValue, GlobalConfig, ResolvedScript
from deno_scripts.resolver import DEFAULT_ENV_FILE

logger = logging.getLogger(__name__)


def build_env(
    resolved: ResolvedScript,
    global_config: GlobalConfig,
    cwd: Path | None = None,
) -> dict[str, str] | None:
    """Return env overrides for the child, or None to inherit the parent env unchanged.

    Overlay order (later wins): env file, global `env`, script `env`.
    """

    script_env = resolved.script.env or {}
    global_env = global_config.env or {}
    if not resolved.env_file and not global_env and not script_env:
        return None

    env: dict[str, str] = {}
    if resolved.env_file:
        name = resolved.env_file if isinstance(resolved.env_file, str) else DEFAULT_ENV_FILE
        path = Path(name)
        if cwd is not None and not path.is_absolute():
            path = cwd / path
        env.update(load_env_file(path))
    env.update(stringify_env(global_env))
    env.update(stringify_env(script_env))
    return env


def load_env_file(path: Path) -> dict[str, str]:
    """Load KEY=VALUE pairs; missing, unreadable or malformed files raise EnvFileLoadError."""

    if not path.is_file():
        raise EnvFileLoadError(f"Env file {path} not found!")
    try:
        content = path.read_text("utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise EnvFileLoadError(f"Cannot load env file {path}: {error}") from error

    for binding in parse_stream(io.StringIO(content)):
        if binding.error:
            raise EnvFileLoadError(
                f"Invalid env file {path} at line {binding.original.line}: "
                f"{binding.original.string.strip()!r}",
            )
    values = dotenv_values(stream=io.StringIO(content), interpolate=True)
    logger.debug("Loaded %d variables from %s", len(values), path)
    # `KEY` without `=` parses to None; treat it as an empty value.
    return {key: value if value is not None else "" for key, value in values.items()}


def stringify_env(values: Mapping[str, EnvValue]) -> dict[str, str]:
    return {key: _stringify(value) for key, value in values.items()}


def _stringify(value: EnvValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
