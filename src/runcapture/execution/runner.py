"""Run programs natively or in an embedded context and capture their results."""

from __future__ import annotations

import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import Mapping, Sequence

from runcapture.config import RunnerConfig, apply_environment, resolve_config
from runcapture.execution.base import (
    CommandExecutionError,
    InvalidCommandError,
    NoEntryPointError,
    NonZeroExitError,
    ProcessResult,
    ProcessTimeoutError,
)
from runcapture.execution.capture import CaptureOutput
from runcapture.execution.embedded import EmbeddedRuntime, PythonRuntime
from runcapture.execution.streams import drain_stream, join_arguments
from runcapture.util.logging import get_logger


class CommandRunner:
    """Execute programs and collect exit code, stdout and stderr.

    Configuration is read on every call: the explicit ``config`` (or the file
    configuration when none is given) with environment overrides on top.
    """

    def __init__(
        self,
        config: RunnerConfig | None = None,
        runtime: EmbeddedRuntime | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Optional base configuration. Defaults to ``resolve_config()``.
            runtime: Embedded runtime for in-process execution. Defaults to
                :class:`PythonRuntime`.
            environ: Environment used for overrides. Defaults to ``os.environ``.
        """

        self._config = config
        self._runtime = runtime or PythonRuntime()
        self._environ = environ
        self._logger = get_logger(self.__class__.__name__)

    def current_config(self) -> RunnerConfig:
        """Return the configuration in effect for the next call."""

        if self._config is None:
            return resolve_config(environ=self._environ)
        return apply_environment(self._config, self._environ)

    def run_embedded(self, program_file: Path | str, args: Sequence[str] = ()) -> int:
        """Evaluate a program in an embedded context and call its entry point.

        Args:
            program_file: Program to load.
            args: Arguments visible to the program.

        Returns:
            The integer returned by the entry point.

        Raises:
            NoEntryPointError: If the program exposes nothing callable.
        """

        source = self._runtime.load(Path(program_file))
        with self._runtime.create_context(list(args)) as context:
            entry_point = context.eval(source)
            if not entry_point.can_execute():
                raise NoEntryPointError("No main function found.")
            return entry_point.execute().as_int()

    def run_embedded_captured(
        self,
        program_file: Path | str,
        args: Sequence[str] = (),
    ) -> ProcessResult:
        """Run a program in-process and capture what it prints.

        When an ahead-of-time image is configured the program is run natively
        through that image instead.

        Args:
            program_file: Program to load.
            args: Arguments visible to the program.

        Returns:
            ProcessResult named after the program file.
        """

        config = self.current_config()
        program = Path(program_file)
        if config.aot_image:
            parts = [config.aot_image]
            if config.aot_args:
                parts.append(config.aot_args)
            parts.append(str(program.resolve()))
            parts.extend(args)
            self._logger.debug("Redirecting %s to AOT image %s.", program, config.aot_image)
            return self.run_native(join_arguments(parts))

        with CaptureOutput(encoding=config.encoding) as capture:
            exit_code = self.run_embedded(program, args)
            sys.stdout.flush()
            sys.stderr.flush()
            return ProcessResult(
                original_command=program.name,
                exit_code=exit_code,
                stderr=capture.get_stderr(),
                stdout=capture.get_stdout(),
            )

    def run_native(self, command_line: str | None) -> ProcessResult:
        """Spawn a process for a command line and wait for it.

        The command line is split on whitespace; no shell is involved.

        Args:
            command_line: Command to execute.

        Returns:
            ProcessResult with the exit code and decoded output. The exit code
            is not checked.

        Raises:
            InvalidCommandError: If the command line is None or blank.
            ProcessTimeoutError: If the process outlives the configured timeout.
            CommandExecutionError: If spawning or reading output fails.
        """

        if command_line is None or not command_line.strip():
            raise InvalidCommandError("command is null or empty!")

        config = self.current_config()
        try:
            return self._execute(command_line, config)
        except ProcessTimeoutError:
            raise
        except Exception as exc:
            raise CommandExecutionError(command_line, str(exc)) from exc

    def run_native_expect_success(self, *command: str) -> ProcessResult:
        """Run a native command and require a zero exit code.

        Several arguments are joined with single spaces before running.

        Raises:
            NonZeroExitError: If the process exits with a non-zero code.
        """

        if not command:
            raise InvalidCommandError("command is null or empty!")
        command_line = command[0] if len(command) == 1 else join_arguments(command)
        result = self.run_native(command_line)
        check_no_error(result)
        return result

    def _execute(self, command_line: str, config: RunnerConfig) -> ProcessResult:
        argv = command_line.split()
        with tempfile.TemporaryFile() as out_file, tempfile.TemporaryFile() as err_file:
            start = time.monotonic()
            self._logger.debug("Running command: %s", command_line)
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=out_file,
                stderr=err_file,
            )
            try:
                finished = _wait_for(process, config.timeout_s)
                err_file.seek(0)
                stderr = drain_stream(
                    err_file, buffer_size=config.buffer_size, encoding=config.encoding
                )
                out_file.seek(0)
                stdout = drain_stream(
                    out_file, buffer_size=config.buffer_size, encoding=config.encoding
                )
                if not finished:
                    self._logger.warning(
                        "Command exceeded %.1fs timeout: %s", config.timeout_s, command_line
                    )
                    raise ProcessTimeoutError(command_line, config.timeout_s)
                exit_code = process.returncode
            finally:
                _destroy(process)

        self._logger.debug(
            "Command finished with exit code %s in %.2fs.",
            exit_code,
            time.monotonic() - start,
        )
        return ProcessResult(
            original_command=command_line,
            exit_code=exit_code,
            stderr=stderr,
            stdout=stdout,
        )


def check_no_error(result: ProcessResult) -> None:
    """Raise NonZeroExitError unless the result has exit code 0."""

    if result.exit_code != 0:
        raise NonZeroExitError(result)


def run_native(command_line: str | None) -> ProcessResult:
    """Run a native command with a default runner."""

    return CommandRunner().run_native(command_line)


def run_native_expect_success(*command: str) -> ProcessResult:
    """Run a native command with a default runner and require exit code 0."""

    return CommandRunner().run_native_expect_success(*command)


def run_embedded(program_file: Path | str, args: Sequence[str] = ()) -> int:
    """Run a program in-process with a default runner."""

    return CommandRunner().run_embedded(program_file, args)


def run_embedded_captured(program_file: Path | str, args: Sequence[str] = ()) -> ProcessResult:
    """Run a program in-process with a default runner and capture its output."""

    return CommandRunner().run_embedded_captured(program_file, args)


def _wait_for(process: subprocess.Popen[bytes], timeout_s: float) -> bool:
    try:
        process.wait(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return False
    return True


def _destroy(process: subprocess.Popen[bytes]) -> None:
    if process.poll() is None:
        process.kill()
    process.wait()
