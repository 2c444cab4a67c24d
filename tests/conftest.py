"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

from deno_scripts.models import LaunchMode, LaunchResult


class RecordingLauncher:
    """Launcher double that records every call instead of spawning processes."""

    def __init__(self, exit_codes: Sequence[int] = (0,)) -> None:
        self.calls: list[tuple[tuple[str, ...], Mapping[str, str] | None, LaunchMode]] = []
        self._exit_codes = list(exit_codes)

    def __call__(
        self,
        argv: Sequence[str],
        env: Mapping[str, str] | None,
        mode: LaunchMode,
        cwd: Path | None,
    ) -> LaunchResult:
        self.calls.append((tuple(argv), env, mode))
        index = min(len(self.calls) - 1, len(self._exit_codes) - 1)
        return LaunchResult(exit_code=self._exit_codes[index], stdout="", stderr="")


@pytest.fixture()
def workdir(tmp_path: Path, monkeypatch) -> Path:
    """Run the test from an empty working directory."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "DENO_SCRIPTS_CONFIG",
        "DENO_SCRIPTS_LOG_LEVEL",
        "DENO_SCRIPTS_WATCH_INTERVAL_MS",
        "DENO_SCRIPTS_FORCE_POLLING",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture()
def recording_launcher() -> RecordingLauncher:
    return RecordingLauncher()


@pytest.fixture()
def launcher_factory() -> type[RecordingLauncher]:
    """Build launcher doubles with scripted exit codes."""
    return RecordingLauncher
