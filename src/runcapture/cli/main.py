"""CLI entrypoints for runcapture."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from runcapture.execution.base import (
    NonZeroExitError,
    ProcessResult,
    ProcessTimeoutError,
    RunnerError,
)
from runcapture.execution.runner import CommandRunner
from runcapture.util.logging import configure_logging

app = typer.Typer(help="Run programs and report their exit code and output.")


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    ),
) -> None:
    """Configure CLI-level options."""

    configure_logging(log_level)


@app.command("native")
def native_command(
    command_line: str = typer.Argument(..., help="Command line to execute."),
) -> None:
    """Run a native command and exit with its exit code."""

    try:
        result = CommandRunner().run_native(command_line)
    except (RunnerError, ProcessTimeoutError) as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    _report(result)
    raise typer.Exit(code=result.exit_code)


@app.command("expect-success")
def expect_success_command(
    command: List[str] = typer.Argument(..., help="Command and arguments to execute."),
) -> None:
    """Run a native command and fail unless it exits with code 0."""

    try:
        result = CommandRunner().run_native_expect_success(*command)
    except NonZeroExitError as exc:
        _report(exc.result)
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    except (RunnerError, ProcessTimeoutError) as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    _report(result)


@app.command("embedded")
def embedded_command(
    program: Path = typer.Argument(..., help="Program file to run in-process."),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments passed to the program."),
) -> None:
    """Run a program in-process with captured output."""

    try:
        result = CommandRunner().run_embedded_captured(program, args or [])
    except Exception as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    _report(result)
    raise typer.Exit(code=result.exit_code)


def _report(result: ProcessResult) -> None:
    typer.echo(str(result), nl=False)
