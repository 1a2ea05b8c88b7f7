"""Embedded execution contexts for running programs in-process."""

from __future__ import annotations

import builtins
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from types import CodeType, TracebackType
from typing import Any, Sequence

from runcapture.execution.base import RunnerError

DEFAULT_ENTRY_POINT = "main"
EMBEDDED_MODULE_NAME = "__embedded__"


class EmbeddedValue(ABC):
    """A value produced by evaluating code inside an embedded context."""

    @abstractmethod
    def can_execute(self) -> bool:
        """Return whether the value can be invoked."""

    @abstractmethod
    def execute(self, *args: Any) -> EmbeddedValue:
        """Invoke the value and wrap its return value."""

    @abstractmethod
    def as_int(self) -> int:
        """Convert the value to an integer exit code."""


class EmbeddedContext(ABC):
    """An isolated evaluation scope owned by an embedded runtime."""

    @abstractmethod
    def eval(self, source: Any) -> EmbeddedValue:
        """Evaluate a loaded program and return its entry point value."""

    @abstractmethod
    def close(self) -> None:
        """Release the context. Must be safe to call more than once."""

    def __enter__(self) -> EmbeddedContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class EmbeddedRuntime(ABC):
    """Factory for program sources and evaluation contexts."""

    @abstractmethod
    def load(self, path: Path) -> Any:
        """Load a program file into a source object the runtime can evaluate."""

    @abstractmethod
    def create_context(self, args: Sequence[str]) -> EmbeddedContext:
        """Create a context configured with program arguments."""


@dataclass(frozen=True)
class PythonSource:
    """A compiled Python program."""

    path: Path
    code: CodeType


class PythonValue(EmbeddedValue):
    """Wraps a plain Python object."""

    def __init__(self, value: Any) -> None:
        self._value = value

    def can_execute(self) -> bool:
        return callable(self._value)

    def execute(self, *args: Any) -> PythonValue:
        if not self.can_execute():
            raise TypeError(f"{type(self._value).__name__!r} object is not callable")
        try:
            return PythonValue(self._value(*args))
        except SystemExit as exc:
            return PythonValue(_exit_status(exc.code))

    def as_int(self) -> int:
        if self._value is None:
            return 0
        if isinstance(self._value, bool) or not isinstance(self._value, int):
            raise TypeError(
                f"Entry point returned {type(self._value).__name__}, expected int or None."
            )
        return self._value


class PythonContext(EmbeddedContext):
    """Runs a program in a fresh module namespace with ``sys.argv`` set."""

    def __init__(self, args: Sequence[str], entry_point: str = DEFAULT_ENTRY_POINT) -> None:
        self._args = [str(arg) for arg in args]
        self._entry_point = entry_point
        self._saved_argv: list[str] | None = None
        self._closed = False

    def eval(self, source: PythonSource) -> PythonValue:
        if self._closed:
            raise RunnerError("Embedded context is closed.")
        if self._saved_argv is None:
            self._saved_argv = sys.argv
        sys.argv = [str(source.path), *self._args]
        namespace: dict[str, Any] = {
            "__name__": EMBEDDED_MODULE_NAME,
            "__file__": str(source.path),
            "__builtins__": builtins,
        }
        try:
            exec(source.code, namespace)
        except SystemExit as exc:
            status = _exit_status(exc.code)
            return PythonValue(lambda *args: status)
        return PythonValue(namespace.get(self._entry_point))

    def close(self) -> None:
        if self._saved_argv is not None:
            sys.argv = self._saved_argv
            self._saved_argv = None
        self._closed = True


class PythonRuntime(EmbeddedRuntime):
    """Embeds the running interpreter.

    A program is a Python file whose ``main`` function is the entry point. The
    module body runs under ``__name__ == "__embedded__"`` so that
    ``if __name__ == "__main__"`` blocks stay inert.
    """

    def __init__(self, entry_point: str = DEFAULT_ENTRY_POINT) -> None:
        self._entry_point = entry_point

    def load(self, path: Path) -> PythonSource:
        program = Path(path)
        code = compile(program.read_bytes(), str(program), "exec")
        return PythonSource(path=program, code=code)

    def create_context(self, args: Sequence[str]) -> PythonContext:
        return PythonContext(args, entry_point=self._entry_point)


def _exit_status(code: Any) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return int(code)
    print(code, file=sys.stderr)
    return 1
