"""State carried through the scan, execute and revisit phases of one step."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .tree import SourceNode, node_codec


@dataclass
class Accumulator:
    directory: Path
    before_timestamps: dict[Path, int] = field(default_factory=dict)
    modified_paths: set[Path] = field(default_factory=set)
    project_files: list[Path] = field(default_factory=list)
    solution_files: list[Path] = field(default_factory=list)
    file_errors: dict[Path, str] = field(default_factory=dict)
    file_results: dict[Path, list[dict[str, Any]]] = field(default_factory=dict)
    rule_labels: dict[str, str] = field(default_factory=dict)
    extension_counts: Counter[str] = field(default_factory=Counter)

    def resolved_path(self, node: SourceNode) -> Path:
        return self.directory / node.source_path

    def record_baseline(self, path: Path) -> None:
        # One baseline per path; later writes within the step never move it.
        self.before_timestamps.setdefault(path, path.stat().st_mtime_ns)

    def was_modified(self, node: SourceNode) -> bool:
        return self.resolved_path(node) in self.modified_paths

    def content(self, node: SourceNode) -> str:
        return self.resolved_path(node).read_bytes().decode(node_codec(node))

    def add_file_error(self, path: Path, error: str) -> None:
        self.file_errors[path] = error

    def file_error(self, path: Path) -> str | None:
        return self.file_errors.get(path)

    def add_file_result(self, path: Path, record: dict[str, Any]) -> None:
        self.file_results.setdefault(path, []).append(record)

    def add_rule(self, rule_id: str, label: str) -> None:
        self.rule_labels[rule_id] = label

    def rule_label(self, rule_id: str) -> str:
        return self.rule_labels.get(rule_id, rule_id)
