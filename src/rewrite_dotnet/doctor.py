"""Environment diagnostics for rewrite-dotnet."""

from __future__ import annotations

import json
import re
import subprocess
from dataclasses import dataclass
from typing import Sequence

from .config import RunnerConfig
from .process import find_tool_executable
from .utils import ToolNotFoundError, which


@dataclass(frozen=True)
class DoctorCheck:
    name: str
    status: str
    message: str
    path: str | None = None
    hint: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": self.name,
            "status": self.status,
            "message": self.message,
        }
        if self.path:
            payload["path"] = self.path
        if self.hint:
            payload["hint"] = self.hint
        return payload


def run_doctor(*, config: RunnerConfig, output: str = "text") -> list[DoctorCheck]:
    results = gather_diagnostics(config)
    if output == "json":
        print(json.dumps([check.to_dict() for check in results], indent=2))
    else:
        for check in results:
            location = f" ({check.path})" if check.path else ""
            print(f"[doctor] {check.name}: {check.status.upper()} - {check.message}{location}")
            if check.hint:
                print(f"          hint: {check.hint}")
    return results


def gather_diagnostics(config: RunnerConfig) -> list[DoctorCheck]:
    return [
        _check_tool(
            name="dotnet",
            command=["dotnet", "--version"],
            minimum=(6, 0),
            hint="Install the .NET SDK 6.0+ (https://dot.net).",
        ),
        _check_upgrade_assistant(config),
    ]


def _check_tool(
    *,
    name: str,
    command: Sequence[str],
    minimum: tuple[int, ...] | None = None,
    hint: str | None = None,
) -> DoctorCheck:
    path = which(name)
    if not path:
        return DoctorCheck(name=name, status="error", message="not found on PATH", hint=hint)

    version_output = _run_version_command(command)
    if version_output is None:
        return DoctorCheck(
            name=name,
            status="warn",
            message="unable to determine version",
            path=path,
            hint=hint,
        )

    message = version_output.splitlines()[0].strip()
    if minimum is None:
        return DoctorCheck(name=name, status="ok", message=message, path=path)

    detected = _extract_version_tuple(version_output)
    if detected is None:
        return DoctorCheck(
            name=name,
            status="warn",
            message=f"unable to parse version from: {message}",
            path=path,
            hint=hint,
        )
    if detected >= minimum:
        return DoctorCheck(name=name, status="ok", message=message, path=path)
    return DoctorCheck(
        name=name,
        status="error",
        message=f"version {'.'.join(map(str, detected))} < required {'.'.join(map(str, minimum))}",
        path=path,
        hint=hint,
    )


def _check_upgrade_assistant(config: RunnerConfig) -> DoctorCheck:
    try:
        path = find_tool_executable(config)
    except ToolNotFoundError as exc:
        return DoctorCheck(
            name=config.tool_name,
            status="error",
            message=str(exc),
            hint="Install it with `dotnet tool install -g upgrade-assistant`.",
        )
    return DoctorCheck(name=config.tool_name, status="ok", message="found", path=str(path))


def _run_version_command(cmd: Sequence[str]) -> str | None:
    try:
        completed = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            check=True,
            timeout=60,
        )
    except (FileNotFoundError, subprocess.CalledProcessError, subprocess.TimeoutExpired):
        return None
    return completed.stdout.strip() or completed.stderr.strip()


_VERSION_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def _extract_version_tuple(text: str) -> tuple[int, ...] | None:
    match = _VERSION_RE.search(text)
    if not match:
        return None
    parts = [int(part) for part in match.groups(default="0")]
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)
