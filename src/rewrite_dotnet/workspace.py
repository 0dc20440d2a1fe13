"""Scratch workspace handling: creation, materialization, chaining and change sweeps."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from .accumulator import Accumulator
from .config import PROJECT_SUFFIXES, SOLUTION_SUFFIXES
from .tree import SourceNode, encode_node
from .utils import WorkspaceError

WORKSPACE_DIRNAME = "repo"


def create_workspace(parent: Path) -> Path:
    """Create ``<parent>/repo`` and return its real path.

    The directory must not exist yet: each step owns a fresh workspace.
    """
    target = parent / WORKSPACE_DIRNAME
    try:
        parent.mkdir(parents=True, exist_ok=True)
        target.mkdir()
        return target.resolve(strict=True)
    except OSError as exc:
        raise WorkspaceError(f"Failed to create working directory for repo: {exc}") from exc


def classify_path(path: Path | str) -> str:
    name = str(path)
    if name.endswith(PROJECT_SUFFIXES):
        return "project"
    if name.endswith(SOLUTION_SUFFIXES):
        return "solution"
    return "other"


def _register_input(path: Path, acc: Accumulator) -> None:
    kind = classify_path(path)
    if kind == "project":
        acc.project_files.append(path)
    elif kind == "solution":
        acc.solution_files.append(path)


def write_source(node: SourceNode, acc: Accumulator) -> Path:
    """Materialize ``node`` into the workspace and record its baseline."""
    path = acc.resolved_path(node)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(encode_node(node))
        acc.record_baseline(path)
    except OSError as exc:
        raise WorkspaceError(f"Failed to write {node.source_path}: {exc}") from exc
    _register_input(path, acc)
    return path


def chain_from(previous: Path, acc: Accumulator) -> None:
    """Copy the tree of a completed step's workspace into ``acc.directory``.

    Copies do not preserve metadata, so every baseline is the copy's own
    mtime. Files that disappear mid-walk are left out of the new workspace.
    """
    try:
        for dirpath, dirnames, filenames in os.walk(previous):
            dirnames.sort()
            source_dir = Path(dirpath)
            target_dir = acc.directory / source_dir.relative_to(previous)
            if target_dir != acc.directory:
                target_dir.mkdir(exist_ok=True)
            for filename in sorted(filenames):
                target = target_dir / filename
                try:
                    shutil.copyfile(source_dir / filename, target)
                    acc.record_baseline(target)
                except FileNotFoundError:
                    continue
                _register_input(target, acc)
    except OSError as exc:
        raise WorkspaceError(f"Failed to copy workspace {previous}: {exc}") from exc


def detect_changes(acc: Accumulator) -> None:
    """Flag every baselined path that vanished or whose mtime moved forward."""
    for path, baseline in acc.before_timestamps.items():
        try:
            current = path.stat().st_mtime_ns
        except FileNotFoundError:
            acc.modified_paths.add(path)
            continue
        if current > baseline:
            acc.modified_paths.add(path)
