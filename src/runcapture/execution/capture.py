"""Process-wide capture of standard output and standard error.

Capturing works at the file-descriptor level. Descriptors 1 and 2 are pointed at
temporary files, and ``sys.stdout`` / ``sys.stderr`` are rebound to those
descriptors. Python ``print`` calls, writes from C extensions and the output of
child processes that inherit the descriptors all land in the capture.

Because descriptors are shared by the whole process, only one capture may be
active at a time.
"""

from __future__ import annotations

import locale
import os
import sys
import tempfile
import threading
from types import TracebackType
from typing import IO, TextIO

from runcapture.execution.base import CaptureBusyError
from runcapture.util.logging import get_logger

_STDOUT_FD = 1
_STDERR_FD = 2
_ACTIVE_CAPTURE = threading.Lock()

logger = get_logger(__name__)


class CaptureOutput:
    """Scoped redirection of stdout/stderr into memory-readable buffers."""

    def __init__(self, encoding: str | None = None) -> None:
        """Initialize the capture.

        Args:
            encoding: Encoding used to decode captured bytes. Defaults to the
                platform preferred encoding.
        """

        self._encoding = encoding or locale.getpreferredencoding(False)
        self._files: dict[int, IO[bytes]] = {}
        self._saved_fds: dict[int, int] = {}
        self._saved_streams: tuple[TextIO, TextIO] | None = None
        self._streams: dict[int, TextIO] = {}
        self._captured: dict[int, str] = {}
        self._active = False

    @property
    def active(self) -> bool:
        """Return whether the capture is currently redirecting output."""

        return self._active

    def start(self) -> CaptureOutput:
        """Begin redirecting output.

        Raises:
            CaptureBusyError: If this or any other capture is already active.
        """

        if self._active or not _ACTIVE_CAPTURE.acquire(blocking=False):
            raise CaptureBusyError("Another output capture is already active.")
        self._captured.clear()
        logger.debug("Starting output capture.")
        try:
            _flush_sys_streams()
            self._saved_streams = (sys.stdout, sys.stderr)
            for fd in (_STDOUT_FD, _STDERR_FD):
                self._redirect(fd)
            sys.stdout = self._streams[_STDOUT_FD]
            sys.stderr = self._streams[_STDERR_FD]
        except BaseException:
            self._restore()
            _ACTIVE_CAPTURE.release()
            raise
        self._active = True
        return self

    def get_stdout(self) -> str:
        """Return everything written to stdout so far."""

        return self._read(_STDOUT_FD)

    def get_stderr(self) -> str:
        """Return everything written to stderr so far."""

        return self._read(_STDERR_FD)

    def release(self) -> None:
        """Restore the original streams. Calling it again has no effect."""

        if not self._active:
            return
        try:
            try:
                for fd in (_STDOUT_FD, _STDERR_FD):
                    self._captured[fd] = self._read(fd)
            finally:
                self._restore()
        finally:
            self._active = False
            _ACTIVE_CAPTURE.release()
        logger.debug("Output capture released.")

    def __enter__(self) -> CaptureOutput:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def _redirect(self, fd: int) -> None:
        capture_file = tempfile.TemporaryFile()
        self._files[fd] = capture_file
        self._saved_fds[fd] = os.dup(fd)
        os.dup2(capture_file.fileno(), fd)
        self._streams[fd] = open(
            fd,
            "w",
            encoding=self._encoding,
            errors="replace",
            buffering=1,
            closefd=False,
        )

    def _read(self, fd: int) -> str:
        if fd in self._captured:
            return self._captured[fd]
        stream = self._streams.get(fd)
        capture_file = self._files.get(fd)
        if stream is None or capture_file is None:
            return ""
        stream.flush()
        return _read_whole_file(capture_file.fileno()).decode(
            self._encoding, errors="replace"
        )

    def _restore(self) -> None:
        # Descriptors and sys streams are put back even if flushing fails.
        try:
            for stream in self._streams.values():
                try:
                    stream.flush()
                finally:
                    stream.close()
        finally:
            self._streams.clear()
            if self._saved_streams is not None:
                sys.stdout, sys.stderr = self._saved_streams
                self._saved_streams = None
            for fd, saved in self._saved_fds.items():
                os.dup2(saved, fd)
                os.close(saved)
            self._saved_fds.clear()
            for capture_file in self._files.values():
                capture_file.close()
            self._files.clear()


def _flush_sys_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        if stream is not None:
            stream.flush()


def _read_whole_file(fd: int) -> bytes:
    # The offset is shared with the redirected descriptor; put it back at the end.
    size = os.fstat(fd).st_size
    os.lseek(fd, 0, os.SEEK_SET)
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = os.read(fd, remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    os.lseek(fd, size, os.SEEK_SET)
    return b"".join(chunks)
