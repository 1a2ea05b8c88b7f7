"""Result type and error taxonomy for program execution."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, eq=False)
class ProcessResult:
    """Outcome of running a program.

    Equality and hashing cover ``exit_code``, ``stderr`` and ``stdout`` only.
    Two different commands that behave identically compare equal.

    Attributes:
        original_command: Command line or program name that produced the result.
        exit_code: Exit code returned by the program.
        stderr: Captured standard error.
        stdout: Captured standard output.
    """

    original_command: str
    exit_code: int
    stderr: str
    stdout: str

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProcessResult):
            return NotImplemented
        return (
            self.exit_code == other.exit_code
            and self.stderr == other.stderr
            and self.stdout == other.stdout
        )

    def __hash__(self) -> int:
        return hash((self.exit_code, self.stderr, self.stdout))

    def __str__(self) -> str:
        return (
            f"command: {self.original_command}\n"
            f"stderr: {self.stderr}\n"
            f"stdout: {self.stdout}\n"
            f"return value: {self.exit_code}\n"
        )


class RunnerError(RuntimeError):
    """Base exception for runner failures."""


class InvalidCommandError(RunnerError, ValueError):
    """Raised when a native command line is missing or empty."""


class NonZeroExitError(RunnerError):
    """Raised when a program expected to succeed exits with a non-zero code."""

    def __init__(self, result: ProcessResult) -> None:
        super().__init__(
            f"{result.original_command} exited with value {result.exit_code} {result.stderr}"
        )
        self.result = result


class NoEntryPointError(RunnerError):
    """Raised when an embedded program exposes no callable entry point."""


class CommandExecutionError(RunnerError):
    """Raised when spawning a process or reading its output fails."""

    def __init__(self, command: str, message: str | None = None) -> None:
        super().__init__(f"{command} {message}" if message else command)
        self.command = command


class CaptureBusyError(RunnerError):
    """Raised when output capture is started while another capture is active."""


class ProcessTimeoutError(AssertionError):
    """Raised when a native process does not finish within the timeout.

    Subclasses AssertionError so a harness reports it as a failed check.
    """

    def __init__(self, command: str, timeout_s: float) -> None:
        super().__init__(f"timeout running command: {command}")
        self.command = command
        self.timeout_s = timeout_s
