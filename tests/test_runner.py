from __future__ import annotations

import logging
import sys
from pathlib import Path

import allure
import pytest
from watchfiles import Change

from deno_scripts.config import RunnerSettings
from deno_scripts.errors import (
    ConfigError,
    EnvFileLoadError,
    FileNotFound,
    LaunchError,
    ScriptNotFound,
)
from deno_scripts.models import (
    CommandScript,
    Declaration,
    FileScript,
    GlobalConfig,
    InvocationContext,
    LaunchMode,
    LaunchResult,
    WatchOptions,
)
from deno_scripts.runner import ScriptRunner

pytestmark = [
    allure.epic("Launch"),
    allure.feature("Script Runner"),
]


def _source(batches):
    def _factory(*, paths, interval_ms, recursive, stop_event):
        return iter(batches)

    return _factory


def test_one_shot_returns_child_exit_code(tmp_path: Path, launcher_factory) -> None:
    launcher = launcher_factory(exit_codes=(5,))
    runner = ScriptRunner(
        Declaration(scripts={"echo": CommandScript(run="echo hello")}),
        cwd=tmp_path,
        launcher=launcher,
    )

    exit_code = runner.run(InvocationContext("echo", ("--x",)))

    assert exit_code == 5
    assert launcher.calls == [(("echo", "hello", "--x"), None, LaunchMode.INHERIT)]


def test_unknown_script_raises_before_launch(tmp_path: Path, recording_launcher) -> None:
    runner = ScriptRunner(
        Declaration(scripts={"echo": CommandScript(run="echo")}),
        cwd=tmp_path,
        launcher=recording_launcher,
    )

    with pytest.raises(ScriptNotFound, match="other"):
        runner.run(InvocationContext("other"))
    assert recording_launcher.calls == []


def test_missing_file_raises_before_launch(tmp_path: Path, recording_launcher) -> None:
    runner = ScriptRunner(
        Declaration(scripts={"log": FileScript(file="./log.ts")}),
        cwd=tmp_path,
        launcher=recording_launcher,
    )

    with pytest.raises(FileNotFound, match=r"\./log\.ts"):
        runner.run(InvocationContext("log"))
    assert recording_launcher.calls == []


def test_env_file_error_propagates(tmp_path: Path, recording_launcher) -> None:
    runner = ScriptRunner(
        Declaration(scripts={"env": CommandScript(run="env", env_file="nope.env")}),
        cwd=tmp_path,
        launcher=recording_launcher,
    )

    with pytest.raises(EnvFileLoadError):
        runner.run(InvocationContext("env"))
    assert recording_launcher.calls == []


def test_debug_mode_logs_command_and_env(tmp_path: Path, recording_launcher, caplog) -> None:
    runner = ScriptRunner(
        Declaration(
            scripts={"echo": CommandScript(run="echo hi", env={"A": 1})},
            global_config=GlobalConfig(debug=True),
        ),
        cwd=tmp_path,
        launcher=recording_launcher,
    )

    with caplog.at_level(logging.INFO, logger="deno_scripts"):
        runner.run(InvocationContext("echo"))

    assert "cmd=echo hi" in caplog.messages
    assert "env={'A': '1'}" in caplog.messages
    assert recording_launcher.calls[0][1] == {"A": "1"}


def test_watch_mode_runs_once_then_once_per_batch(
    tmp_path: Path,
    launcher_factory,
    caplog,
) -> None:
    (tmp_path / "main.ts").write_text("", "utf-8")
    launcher = launcher_factory()
    runner = ScriptRunner(
        Declaration(scripts={"dev": FileScript(file="main.ts", watch=True)}),
        cwd=tmp_path,
        launcher=launcher,
        change_source=_source([{(Change.modified, str(tmp_path / "main.ts"))}]),
        on_output=lambda result: None,
    )

    with caplog.at_level(logging.INFO, logger="deno_scripts"):
        exit_code = runner.run(InvocationContext("dev", ("--port", "1")))

    assert exit_code == 0
    assert len(launcher.calls) == 2
    expected = (("deno", "run", "main.ts", "--port", "1"), None, LaunchMode.CAPTURE)
    assert launcher.calls == [expected, expected]
    assert "Watch mode enabled." in caplog.messages
    assert "Detected 1 change. Rerunning..." in caplog.messages


def test_watch_mode_continues_after_failures(tmp_path: Path, launcher_factory, caplog) -> None:
    launcher = launcher_factory(exit_codes=(1, 2, 0))
    runner = ScriptRunner(
        Declaration(
            scripts={
                "test": CommandScript(run="pytest", watch=WatchOptions(extensions=("py",))),
            },
        ),
        cwd=tmp_path,
        launcher=launcher,
        change_source=_source(
            [
                {(Change.modified, str(tmp_path / "a.py"))},
                {(Change.modified, str(tmp_path / "README.md"))},
                {(Change.modified, str(tmp_path / "b.py"))},
            ],
        ),
        on_output=lambda result: None,
    )

    with caplog.at_level(logging.INFO, logger="deno_scripts"):
        exit_code = runner.run(InvocationContext("test"))

    assert exit_code == 0
    assert len(launcher.calls) == 3
    assert "Script test exited with code 1. Waiting for changes..." in caplog.messages


def test_watch_mode_rebuilds_env_each_cycle(tmp_path: Path, launcher_factory) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("VERSION=1\n", "utf-8")
    launcher = launcher_factory()

    def _factory(*, paths, interval_ms, recursive, stop_event):
        env_file.write_text("VERSION=2\n", "utf-8")
        yield {(Change.modified, str(env_file))}

    runner = ScriptRunner(
        Declaration(scripts={"dev": CommandScript(run="serve", watch=True)}),
        cwd=tmp_path,
        launcher=launcher,
        change_source=_factory,
        on_output=lambda result: None,
    )
    runner.run(InvocationContext("dev"))

    assert [call[1] for call in launcher.calls] == [{"VERSION": "1"}, {"VERSION": "2"}]


def test_watch_mode_survives_spawn_failure(tmp_path: Path, caplog) -> None:
    calls: list[tuple[str, ...]] = []

    def _failing_launcher(argv, env, mode, cwd):
        calls.append(tuple(argv))
        raise LaunchError(f"Command not found: {argv[0]}")

    runner = ScriptRunner(
        Declaration(scripts={"dev": CommandScript(run="missing-tool", watch=True)}),
        cwd=tmp_path,
        launcher=_failing_launcher,
        change_source=_source([{(Change.modified, str(tmp_path / "x"))}]),
    )

    assert runner.run(InvocationContext("dev")) == 0
    assert len(calls) == 2
    assert "Command not found: missing-tool" in caplog.messages


def test_watch_mode_relays_captured_output(tmp_path: Path) -> None:
    outputs: list[LaunchResult] = []

    def _launcher(argv, env, mode, cwd):
        return LaunchResult(exit_code=0, stdout="built\n", stderr="")

    runner = ScriptRunner(
        Declaration(scripts={"dev": CommandScript(run="build", watch=True)}),
        cwd=tmp_path,
        launcher=_launcher,
        change_source=_source([]),
        on_output=outputs.append,
    )
    runner.run(InvocationContext("dev"))

    assert [result.stdout for result in outputs] == ["built\n"]


def test_watch_interval_defaults_to_settings(tmp_path: Path, launcher_factory) -> None:
    received: list[int] = []

    def _factory(*, paths, interval_ms, recursive, stop_event):
        received.append(interval_ms)
        return iter(())

    runner = ScriptRunner(
        Declaration(scripts={"dev": CommandScript(run="build", watch=True)}),
        cwd=tmp_path,
        settings=RunnerSettings(watch_interval_ms=900),
        launcher=launcher_factory(),
        change_source=_factory,
        on_output=lambda result: None,
    )
    runner.run(InvocationContext("dev"))

    assert received == [900]


def test_watch_mode_survives_non_utf8_output(tmp_path: Path) -> None:
    outputs: list[LaunchResult] = []
    script = CommandScript(
        run=(sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'\\xff')"),
        watch=True,
    )
    runner = ScriptRunner(
        Declaration(scripts={"dev": script}),
        cwd=tmp_path,
        change_source=_source([{(Change.modified, str(tmp_path / "main.ts"))}]),
        on_output=outputs.append,
    )

    assert runner.run(InvocationContext("dev")) == 0
    assert [result.stdout for result in outputs] == ["\ufffd", "\ufffd"]
    assert all(result.ok for result in outputs)


def test_watch_mode_without_existing_paths_is_fatal(tmp_path: Path, launcher_factory) -> None:
    launcher = launcher_factory()
    script = CommandScript(run="build", watch=WatchOptions(paths=("missing",)))
    runner = ScriptRunner(
        Declaration(scripts={"dev": script}),
        cwd=tmp_path,
        launcher=launcher,
        on_output=lambda result: None,
    )

    with pytest.raises(ConfigError, match="None of the watch paths exist"):
        runner.run(InvocationContext("dev"))
    assert len(launcher.calls) == 1
