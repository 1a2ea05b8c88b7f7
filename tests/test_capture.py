from __future__ import annotations

import os
import subprocess
import sys

import pytest

from runcapture.execution import capture as capture_module
from runcapture.execution.base import CaptureBusyError
from runcapture.execution.capture import CaptureOutput


def test_capture_collects_print_output() -> None:
    with CaptureOutput() as capture:
        print("to stdout")
        print("to stderr", file=sys.stderr)
        stdout = capture.get_stdout()
        stderr = capture.get_stderr()

    assert stdout == "to stdout\n"
    assert stderr == "to stderr\n"


def test_capture_collects_descriptor_writes_and_child_output() -> None:
    with CaptureOutput() as capture:
        os.write(1, b"raw\n")
        subprocess.run([sys.executable, "-c", "print('child')"], check=True)
        stdout = capture.get_stdout()

    assert stdout.splitlines() == ["raw", "child"]


def test_capture_restores_streams_on_release() -> None:
    original_stdout = sys.stdout
    original_stderr = sys.stderr
    capture = CaptureOutput()

    capture.start()
    assert sys.stdout is not original_stdout
    capture.release()

    assert sys.stdout is original_stdout
    assert sys.stderr is original_stderr
    assert not capture.active


def test_capture_keeps_text_after_release() -> None:
    capture = CaptureOutput()
    with capture:
        print("kept")

    assert capture.get_stdout() == "kept\n"
    assert capture.get_stderr() == ""


def test_release_is_idempotent() -> None:
    capture = CaptureOutput()
    capture.start()
    capture.release()
    capture.release()

    with CaptureOutput():
        pass


def test_only_one_capture_may_be_active() -> None:
    with CaptureOutput():
        with pytest.raises(CaptureBusyError):
            CaptureOutput().start()


def test_capture_released_when_body_raises() -> None:
    original_stdout = sys.stdout

    with pytest.raises(RuntimeError):
        with CaptureOutput():
            raise RuntimeError("boom")

    assert sys.stdout is original_stdout
    with CaptureOutput() as capture:
        print("again")
        assert capture.get_stdout() == "again\n"


def test_release_restores_streams_when_final_read_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    original_stdout = sys.stdout
    original_fd = os.fstat(1)
    capture = CaptureOutput()
    capture.start()

    def fail_read(fd: int) -> bytes:
        raise OSError("disk gone")

    with monkeypatch.context() as patch:
        patch.setattr(capture_module, "_read_whole_file", fail_read)
        with pytest.raises(OSError, match="disk gone"):
            capture.release()

    restored_fd = os.fstat(1)
    assert sys.stdout is original_stdout
    assert (restored_fd.st_dev, restored_fd.st_ino) == (original_fd.st_dev, original_fd.st_ino)
    assert not capture.active
    with CaptureOutput() as again:
        print("fresh")
        assert again.get_stdout() == "fresh\n"
