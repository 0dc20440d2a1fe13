"""Shared utilities for the rewrite-dotnet package."""

from __future__ import annotations

import json
import os
import shlex
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


class RewriteError(RuntimeError):
    """Raised when a run should stop with a non-zero status."""


class WorkspaceError(RewriteError):
    """The scratch workspace could not be created or populated."""


class ToolNotFoundError(RewriteError):
    """upgrade-assistant is not installed where we look for it."""


class NoInputFilesError(RewriteError):
    """The tree holds nothing the tool can be pointed at."""


class ToolInvocationError(RewriteError):
    """A tool invocation failed, even if it exited with status 0."""


class ToolTimeoutError(ToolInvocationError):
    """A tool invocation exceeded its wall-clock budget and was killed."""


class FileTransformationError(RewriteError):
    """The tool reported a failure for a file that is being revisited."""


class ReportError(RewriteError):
    """The structured analysis report is missing or malformed."""


class ConfigError(RewriteError):
    """A configuration file or value is malformed."""


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _atomic_write(path: Path, text: str) -> None:
    """Persist ``text`` to ``path`` atomically with fsync to reduce corruption."""

    ensure_dir(path.parent)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f".{path.name}.",
    ) as handle:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())
        temp_path = Path(handle.name)
    try:
        os.replace(temp_path, path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def dump_json(
    path: Path,
    data: object,
    *,
    sort_keys: bool = True,
    ensure_ascii: bool = True,
) -> None:
    text = json.dumps(data, indent=2, sort_keys=sort_keys, ensure_ascii=ensure_ascii)
    _atomic_write(path, f"{text}\n")


def which(executable: str) -> str | None:
    from shutil import which as _which

    return _which(executable)


def shlex_join(cmd: Sequence[str]) -> str:
    return shlex.join(cmd)


def delete_quietly(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass


@dataclass(frozen=True)
class RewriteContext:
    root: Path

    @classmethod
    def discover(cls, root: Path | None = None) -> RewriteContext:
        return cls(root=(root or Path.cwd()).resolve())
