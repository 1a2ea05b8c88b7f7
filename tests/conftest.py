from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

from runcapture.config import ENV_AOT_ARGS, ENV_AOT_IMAGE, ENV_TIMEOUT_S


@pytest.fixture(autouse=True)
def clean_runner_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (ENV_AOT_IMAGE, ENV_AOT_ARGS, ENV_TIMEOUT_S):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_program(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(body, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def python_command() -> Callable[..., str]:
    def _command(script: Path, *args: str) -> str:
        return " ".join([sys.executable, str(script), *args])

    return _command
