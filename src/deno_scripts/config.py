"""Runtime settings for the script runner."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_PATH = Path("scripts.toml")
DEFAULT_WATCH_INTERVAL_MS = 350

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(slots=True)
class RunnerSettings:
    """Process-level settings that are not part of the declaration file."""

    config_path: Path = DEFAULT_CONFIG_PATH
    log_level: str = "INFO"
    watch_interval_ms: int = DEFAULT_WATCH_INTERVAL_MS
    force_polling: bool = True

    @classmethod
    def from_env(cls, config_path: Path | None = None) -> RunnerSettings:
        """Load settings from environment with defaults suited to local development."""

        settings = cls(
            config_path=config_path
            or Path(os.getenv("DENO_SCRIPTS_CONFIG", str(DEFAULT_CONFIG_PATH))),
            log_level=os.getenv("DENO_SCRIPTS_LOG_LEVEL", "INFO").strip().upper(),
            watch_interval_ms=_env_int(
                "DENO_SCRIPTS_WATCH_INTERVAL_MS",
                default=DEFAULT_WATCH_INTERVAL_MS,
            ),
            force_polling=_env_bool("DENO_SCRIPTS_FORCE_POLLING", default=True),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid DENO_SCRIPTS_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(sorted(_LOG_LEVELS))}.",
            )
        if self.watch_interval_ms <= 0:
            raise ValueError("DENO_SCRIPTS_WATCH_INTERVAL_MS must be > 0.")

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
