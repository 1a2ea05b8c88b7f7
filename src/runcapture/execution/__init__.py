"""Program execution package."""

from runcapture.execution.base import (
    CaptureBusyError,
    CommandExecutionError,
    InvalidCommandError,
    NoEntryPointError,
    NonZeroExitError,
    ProcessResult,
    ProcessTimeoutError,
    RunnerError,
)
from runcapture.execution.capture import CaptureOutput
from runcapture.execution.embedded import (
    EmbeddedContext,
    EmbeddedRuntime,
    EmbeddedValue,
    PythonRuntime,
)
from runcapture.execution.runner import (
    CommandRunner,
    check_no_error,
    run_embedded,
    run_embedded_captured,
    run_native,
    run_native_expect_success,
)
from runcapture.execution.streams import drain_stream, join_arguments

__all__ = [
    "CaptureBusyError",
    "CaptureOutput",
    "CommandExecutionError",
    "CommandRunner",
    "EmbeddedContext",
    "EmbeddedRuntime",
    "EmbeddedValue",
    "InvalidCommandError",
    "NoEntryPointError",
    "NonZeroExitError",
    "ProcessResult",
    "ProcessTimeoutError",
    "PythonRuntime",
    "RunnerError",
    "check_no_error",
    "drain_stream",
    "join_arguments",
    "run_embedded",
    "run_embedded_captured",
    "run_native",
    "run_native_expect_success",
]
