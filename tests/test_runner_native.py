from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

from runcapture.config import RunnerConfig
from runcapture.execution.base import (
    CommandExecutionError,
    InvalidCommandError,
    NonZeroExitError,
    ProcessResult,
    ProcessTimeoutError,
)
from runcapture.execution.runner import CommandRunner, check_no_error

WriteProgram = Callable[[str, str], Path]


def make_runner(**overrides: Any) -> CommandRunner:
    return CommandRunner(RunnerConfig(**overrides), environ={})


@pytest.mark.parametrize("command", [None, "", "   "])
def test_run_native_rejects_missing_command(monkeypatch: Any, command: str | None) -> None:
    def fail_popen(*args: Any, **kwargs: Any) -> None:
        raise AssertionError("No process should be spawned")

    monkeypatch.setattr(subprocess, "Popen", fail_popen)

    with pytest.raises(InvalidCommandError):
        make_runner().run_native(command)


def test_invalid_command_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        make_runner().run_native(None)


def test_run_native_captures_stdout(write_program: WriteProgram, python_command: Any) -> None:
    script = write_program("hi.py", "print('hi')\n")

    result = make_runner().run_native(python_command(script))

    assert result.exit_code == 0
    assert result.stdout.rstrip("\r\n") == "hi"
    assert result.stderr == ""
    assert result.original_command == python_command(script)


def test_run_native_captures_stderr_and_exit_code(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program(
        "fail.py",
        "import sys\nsys.stdout.write('partial')\nsys.stderr.write('boom')\nsys.exit(3)\n",
    )

    result = make_runner().run_native(python_command(script))

    assert result == ProcessResult("anything", 3, "boom", "partial")


def test_run_native_passes_arguments_split_on_whitespace(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program("args.py", "import sys\nprint('|'.join(sys.argv[1:]))\n")

    result = make_runner().run_native(python_command(script, "one", "  two", "three"))

    assert result.stdout.strip() == "one|two|three"


def test_run_native_drains_output_larger_than_a_pipe_buffer(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program(
        "chatty.py",
        "import sys\nsys.stdout.write('x' * 200000)\nsys.stderr.write('y' * 100000)\n",
    )

    result = make_runner().run_native(python_command(script))

    assert result.stdout == "x" * 200000
    assert result.stderr == "y" * 100000


def test_run_native_times_out(write_program: WriteProgram, python_command: Any) -> None:
    script = write_program("sleepy.py", "import time\ntime.sleep(30)\n")
    command = python_command(script)

    with pytest.raises(ProcessTimeoutError) as excinfo:
        make_runner(timeout_s=0.5).run_native(command)

    assert isinstance(excinfo.value, AssertionError)
    assert excinfo.value.command == command
    assert "timeout running command" in str(excinfo.value)


def test_run_native_timeout_from_environment(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program("sleepy.py", "import time\ntime.sleep(30)\n")
    runner = CommandRunner(RunnerConfig(), environ={"RUNCAPTURE_TIMEOUT_S": "0.5"})

    with pytest.raises(ProcessTimeoutError):
        runner.run_native(python_command(script))


def test_run_native_kills_process_after_timeout(monkeypatch: Any) -> None:
    events: list[str] = []

    class FakeProcess:
        returncode: int | None = None

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            self.alive = True

        def wait(self, timeout: float | None = None) -> int:
            if timeout is not None and self.alive:
                raise subprocess.TimeoutExpired("fake", timeout)
            self.returncode = -9
            return -9

        def poll(self) -> int | None:
            return None if self.alive else self.returncode

        def kill(self) -> None:
            events.append("kill")
            self.alive = False

    monkeypatch.setattr(subprocess, "Popen", FakeProcess)

    with pytest.raises(ProcessTimeoutError):
        make_runner(timeout_s=1).run_native("fake-binary")

    assert events == ["kill"]


def test_run_native_wraps_spawn_failures() -> None:
    command = "/nonexistent/definitely-missing-binary --flag"

    with pytest.raises(CommandExecutionError) as excinfo:
        make_runner().run_native(command)

    assert excinfo.value.command == command
    assert command in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_run_native_logs_command(
    caplog: pytest.LogCaptureFixture, write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program("quiet.py", "")
    caplog.set_level(logging.DEBUG, logger="runcapture")

    make_runner().run_native(python_command(script))

    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("Running command:") for message in messages)
    assert any("finished with exit code 0" in message for message in messages)


def test_expect_success_returns_result(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program("ok.py", "print('fine')\n")

    result = make_runner().run_native_expect_success(python_command(script))

    assert result.exit_code == 0
    assert result.stdout.strip() == "fine"


def test_expect_success_joins_multiple_arguments(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program("echo_args.py", "import sys\nprint(' '.join(sys.argv[1:]))\n")

    result = make_runner().run_native_expect_success(sys.executable, str(script), "a", "b")

    assert result.original_command == python_command(script, "a", "b")
    assert result.stdout.strip() == "a b"


def test_expect_success_raises_on_non_zero_exit(
    write_program: WriteProgram, python_command: Any
) -> None:
    script = write_program("two.py", "import sys\nsys.stderr.write('bad input')\nsys.exit(2)\n")

    with pytest.raises(NonZeroExitError) as excinfo:
        make_runner().run_native_expect_success(python_command(script))

    message = str(excinfo.value)
    assert "2" in message
    assert "exited with value 2" in message
    assert "bad input" in message
    assert excinfo.value.result.exit_code == 2


def test_expect_success_requires_a_command() -> None:
    with pytest.raises(InvalidCommandError):
        make_runner().run_native_expect_success()


def test_check_no_error_accepts_zero_exit() -> None:
    check_no_error(ProcessResult("true", 0, "", ""))


def test_check_no_error_rejects_non_zero_exit() -> None:
    with pytest.raises(NonZeroExitError, match="false exited with value 1 nope"):
        check_no_error(ProcessResult("false", 1, "nope", ""))
