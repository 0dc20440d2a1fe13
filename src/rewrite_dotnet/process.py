"""Locate and run upgrade-assistant with captured, time-bounded output."""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

from .config import TOOL_ENV_OVERRIDES, RunnerConfig
from .utils import (
    ToolInvocationError,
    ToolNotFoundError,
    ToolTimeoutError,
    delete_quietly,
    shlex_join,
)


def _command_name(tool_name: str) -> str:
    if sys.platform.startswith("win"):
        return f"{tool_name}.exe"
    return tool_name


def find_tool_executable(config: RunnerConfig) -> Path:
    """Return the tool under ``<dotnet_home>/tools``, else the first hit on PATH."""
    cmd_name = _command_name(config.tool_name)
    candidate = config.dotnet_home / "tools" / cmd_name
    if candidate.exists():
        return candidate
    for entry in os.environ.get("PATH", "").split(os.pathsep):
        if not entry:
            continue
        candidate = Path(entry) / cmd_name
        if candidate.exists():
            return candidate
    raise ToolNotFoundError(f"Unable to find {cmd_name} on PATH")


def build_tool_env(config: RunnerConfig) -> dict[str, str]:
    env = os.environ.copy()
    env.update(TOOL_ENV_OVERRIDES)
    # dotnet_home locates the SDKs, tools/ the global tools.
    extra = [str(config.dotnet_home), str(config.dotnet_home / "tools")]
    current = env.get("PATH", "")
    env["PATH"] = os.pathsep.join([current, *extra]) if current else os.pathsep.join(extra)
    return env


def _first_fatal_line(path: Path, prefixes: Sequence[str]) -> str | None:
    if not prefixes:
        return None
    with path.open(encoding="utf-8", errors="replace") as fh:
        for line in fh:
            line = line.rstrip("\r\n")
            if line.startswith(tuple(prefixes)):
                return line
    return None


@contextmanager
def captured_invocation(
    command: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str],
    capture_dir: Path,
    timeout: float,
    fatal_prefixes: Sequence[str] = (),
) -> Iterator[Path]:
    """Run ``command`` and yield the file holding its merged stdout/stderr.

    The capture file outlives the process only for the body of the ``with``
    block so callers can parse it; it is removed on every exit path.
    """
    fd, raw_path = tempfile.mkstemp(prefix="upgrade-assistant", dir=capture_dir)
    out = Path(raw_path)
    try:
        with os.fdopen(fd, "wb") as sink:
            try:
                process = subprocess.Popen(
                    list(command),
                    cwd=cwd,
                    env=dict(env),
                    stdin=subprocess.DEVNULL,
                    stdout=sink,
                    stderr=subprocess.STDOUT,
                )
            except OSError as exc:
                raise ToolInvocationError(
                    f"Command failed to start: {shlex_join(command)}: {exc}"
                ) from exc
            try:
                returncode = process.wait(timeout=timeout)
            except subprocess.TimeoutExpired as exc:
                process.kill()
                process.wait()
                raise ToolTimeoutError(
                    f"Command timed out after {timeout:g} seconds: {shlex_join(command)}"
                ) from exc
        if returncode != 0:
            output = out.read_text(encoding="utf-8", errors="replace")
            raise ToolInvocationError(
                f"Command failed: {shlex_join(command)}\n{output}".rstrip()
            )
        fatal = _first_fatal_line(out, fatal_prefixes)
        if fatal is not None:
            raise ToolInvocationError(f"upgrade-assistant: {fatal}")
        yield out
    finally:
        delete_quietly(out)
