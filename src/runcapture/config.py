"""Configuration models and loaders for runcapture."""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

DEFAULT_TIMEOUT_S: float = 60.0
DEFAULT_BUFFER_SIZE: int = 1024

ENV_AOT_IMAGE = "RUNCAPTURE_AOT_IMAGE"
ENV_AOT_ARGS = "RUNCAPTURE_AOT_ARGS"
ENV_TIMEOUT_S = "RUNCAPTURE_TIMEOUT_S"


@dataclass(frozen=True)
class RunnerConfig:
    """Settings used by the command runner.

    Attributes:
        timeout_s: Seconds to wait for a native process before failing.
        buffer_size: Chunk size used when draining process output.
        encoding: Text encoding for process output. None uses the platform default.
        aot_image: Optional ahead-of-time executable. When set, captured embedded
            runs are executed natively through this image instead.
        aot_args: Optional extra arguments placed between the image and the program.
    """

    timeout_s: float = DEFAULT_TIMEOUT_S
    buffer_size: int = DEFAULT_BUFFER_SIZE
    encoding: str | None = None
    aot_image: str | None = None
    aot_args: str | None = None


def load_config(path: Path | None = None) -> RunnerConfig:
    """Load runner configuration from disk.

    Args:
        path: Optional path to a configuration file or project directory.

    Returns:
        Parsed RunnerConfig with defaults applied when no config exists.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return RunnerConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ValueError(f"Unsupported config file type: {config_path}")

    return _parse_runner_config(raw_data)


def apply_environment(
    config: RunnerConfig,
    environ: Mapping[str, str] | None = None,
) -> RunnerConfig:
    """Return a config copy with environment overrides applied.

    Blank environment values are treated as unset.
    """

    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    aot_image = _optional_str(env.get(ENV_AOT_IMAGE))
    if aot_image is not None:
        overrides["aot_image"] = aot_image
    aot_args = _optional_str(env.get(ENV_AOT_ARGS))
    if aot_args is not None:
        overrides["aot_args"] = aot_args
    timeout = _optional_str(env.get(ENV_TIMEOUT_S))
    if timeout is not None:
        overrides["timeout_s"] = _positive_float(timeout, ENV_TIMEOUT_S)
    return replace(config, **overrides) if overrides else config


def resolve_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunnerConfig:
    """Load the file configuration and overlay the environment on top of it."""

    return apply_environment(load_config(path), environ)


def _resolve_config_path(path: Path | None) -> Path | None:
    candidate_paths: list[Path] = []
    if path is None:
        base = Path(".")
    elif path.is_dir():
        base = path
    else:
        return path if path.exists() else None

    candidate_paths.append(base / "runcapture.yaml")
    candidate_paths.append(base / "runcapture.yml")
    candidate_paths.append(base / "runcapture.toml")
    candidate_paths.append(base / "pyproject.toml")

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("runcapture", {})
        if not isinstance(tool_config, dict):
            raise ValueError("tool.runcapture must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if data is not None:
        if not isinstance(data, dict):
            raise ValueError("YAML configuration must be a mapping.")
        return data
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "PyYAML is required to parse non-JSON YAML configuration files."
        ) from exc
    parsed = yaml.safe_load(text)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("YAML configuration must be a mapping.")
    return parsed


def _parse_runner_config(raw: Any) -> RunnerConfig:
    if not isinstance(raw, dict):
        return RunnerConfig()
    buffer_size = int(raw.get("buffer_size", DEFAULT_BUFFER_SIZE))
    if buffer_size <= 0:
        raise ValueError("buffer_size must be positive.")
    return RunnerConfig(
        timeout_s=_positive_float(raw.get("timeout_s", DEFAULT_TIMEOUT_S), "timeout_s"),
        buffer_size=buffer_size,
        encoding=_optional_str(raw.get("encoding")),
        aot_image=_optional_str(raw.get("aot_image")),
        aot_args=_optional_str(raw.get("aot_args")),
    )


def _positive_float(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}.") from exc
    if number <= 0:
        raise ValueError(f"{name} must be positive.")
    return number


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
