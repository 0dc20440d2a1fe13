"""Configuration defaults and loading for rewrite-dotnet."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

from .utils import ConfigError

TOOL_NAME = "upgrade-assistant"
DEFAULT_DOTNET_HOME = Path.home() / ".dotnet"
DEFAULT_TIMEOUT_SECONDS = 20 * 60
DEFAULT_MAX_CYCLES = 3
DEFAULT_CONFIG_FILENAME = "rewrite-dotnet.yaml"
SUPPORTED_SCHEMA_VERSIONS = {"rewrite-dotnet.v1"}

PROJECT_SUFFIXES = (".csproj", ".vbproj", ".fsproj")
SOLUTION_SUFFIXES = (".sln",)

# Lines that mean the tool failed even though it exited with status 0.
DEFAULT_FATAL_PREFIXES = ("Project path does not exist",)
UNKNOWN_FRAMEWORK_PREFIX = "Unknown target framework"

TOOL_ENV_OVERRIDES = {
    "TERM": "dumb",
    "DOTNET_UPGRADEASSISTANT_TELEMETRY_OPTOUT": "1",
    "DOTNET_UPGRADEASSISTANT_SKIP_FIRST_TIME_EXPERIENCE": "1",
    "DOTNET_CLI_TELEMETRY_OPTOUT": "1",
}


@dataclass
class RunnerConfig:
    dotnet_home: Path = DEFAULT_DOTNET_HOME
    tool_name: str = TOOL_NAME
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_cycles: int = DEFAULT_MAX_CYCLES
    work_dir: Path | None = None
    keep_workspace: bool = False
    fatal_prefixes: tuple[str, ...] = field(default=DEFAULT_FATAL_PREFIXES)


def _positive_number(raw: object, *, name: str, kind: type) -> float | int:
    try:
        value = kind(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _apply_mapping(config: RunnerConfig, payload: Mapping[str, object]) -> RunnerConfig:
    updates: dict[str, object] = {}
    if "dotnet_home" in payload:
        updates["dotnet_home"] = Path(str(payload["dotnet_home"])).expanduser()
    if "tool_name" in payload:
        updates["tool_name"] = str(payload["tool_name"])
    if "timeout_seconds" in payload:
        updates["timeout_seconds"] = _positive_number(
            payload["timeout_seconds"], name="timeout_seconds", kind=float
        )
    if "max_cycles" in payload:
        updates["max_cycles"] = _positive_number(
            payload["max_cycles"], name="max_cycles", kind=int
        )
    if payload.get("work_dir"):
        updates["work_dir"] = Path(str(payload["work_dir"])).expanduser()
    if "keep_workspace" in payload:
        updates["keep_workspace"] = bool(payload["keep_workspace"])
    if "fatal_prefixes" in payload:
        prefixes = payload["fatal_prefixes"]
        if not isinstance(prefixes, list):
            raise ConfigError("fatal_prefixes must be a list when present.")
        updates["fatal_prefixes"] = tuple(str(item) for item in prefixes)
    return replace(config, **updates)


def _load_file(path: Path) -> Mapping[str, object]:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigError(f"{path} must contain a mapping at the top level.")
    schema_version = str(payload.get("schema_version", "rewrite-dotnet.v1")).strip()
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ConfigError(
            f"Unsupported config schema '{schema_version}' "
            f"(expected one of: {', '.join(sorted(SUPPORTED_SCHEMA_VERSIONS))})"
        )
    return payload


def _env_overrides() -> dict[str, object]:
    overrides: dict[str, object] = {}
    home = os.environ.get("DOTNET_HOME")
    if home and home.strip():
        overrides["dotnet_home"] = home.strip()
    timeout = os.environ.get("REWRITE_DOTNET_TIMEOUT_SECONDS")
    if timeout and timeout.strip():
        overrides["timeout_seconds"] = timeout.strip()
    cycles = os.environ.get("REWRITE_DOTNET_MAX_CYCLES")
    if cycles and cycles.strip():
        overrides["max_cycles"] = cycles.strip()
    work_dir = os.environ.get("REWRITE_DOTNET_WORK_DIR")
    if work_dir and work_dir.strip():
        overrides["work_dir"] = work_dir.strip()
    return overrides


def load_config(root: Path | None = None, path: Path | None = None) -> RunnerConfig:
    """Build a RunnerConfig from defaults, an optional YAML file and the environment.

    ``path`` must exist when given explicitly; otherwise ``rewrite-dotnet.yaml``
    under ``root`` is used if present.
    """

    config = RunnerConfig()
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        config = _apply_mapping(config, _load_file(path))
    elif root is not None and (root / DEFAULT_CONFIG_FILENAME).is_file():
        config = _apply_mapping(config, _load_file(root / DEFAULT_CONFIG_FILENAME))
    return _apply_mapping(config, _env_overrides())
