"""Decoding of upgrade-assistant's JSON analysis report into report rows."""

from __future__ import annotations

import csv
import json
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .accumulator import Accumulator
from .utils import ReportError, dump_json, ensure_dir

RECOMMENDATION_SNIPPET_RE = re.compile(r"(.*)\n\nRecommendation:\n\n(.*)")
CURRENT_NEW_SNIPPET_RE = re.compile(r"Current: (.*)\nNew: (.*)")


@dataclass(frozen=True)
class AnalysisRow:
    project_path: str
    source_path: str
    rule_id: str
    rule_label: str
    code_snippet: str
    recommendation: str | None
    link: str | None


@dataclass
class AnalysisTable:
    """Collects analysis rows emitted while nodes are revisited."""

    rows: list[AnalysisRow] = field(default_factory=list)

    def insert_row(self, row: AnalysisRow) -> None:
        self.rows.append(row)

    def write_csv(self, path: Path) -> None:
        ensure_dir(path.parent)
        with path.open("w", encoding="utf-8", newline="") as fh:
            writer = csv.DictWriter(fh, fieldnames=list(AnalysisRow.__dataclass_fields__))
            writer.writeheader()
            for row in self.rows:
                writer.writerow(asdict(row))

    def write_json(self, path: Path) -> None:
        dump_json(path, [asdict(row) for row in self.rows], sort_keys=False)


def report_path(acc: Accumulator, solution_file: Path) -> Path:
    return acc.directory / solution_file.name.replace(".sln", "-analyze.json")


def load_report(path: Path, acc: Accumulator) -> None:
    """Record rule labels and per-file rule instances from a report file."""
    try:
        report = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ReportError(f"Analysis report not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ReportError(f"Failed to read analysis report {path}: {exc}") from exc
    if not isinstance(report, Mapping):
        raise ReportError(f"Analysis report {path} must contain an object.")

    rules = report.get("rules") or {}
    if isinstance(rules, Mapping):
        for rule_id, rule in rules.items():
            label = rule.get("label") if isinstance(rule, Mapping) else None
            acc.add_rule(str(rule_id), str(label) if label is not None else str(rule_id))

    for project in _entries(report, "projects", path):
        for instance in _entries(project, "ruleInstances", path):
            location = instance.get("location") or {}
            if not isinstance(location, Mapping):
                raise ReportError(f"Analysis report {path} has a malformed location entry.")
            source = location.get("path")
            if not source:
                continue
            acc.add_file_result(acc.directory / str(source), instance)


def _entries(parent: Mapping[str, Any], key: str, path: Path) -> list[Mapping[str, Any]]:
    items = parent.get(key) or []
    if not isinstance(items, list) or not all(isinstance(item, Mapping) for item in items):
        raise ReportError(f"Analysis report {path} has malformed '{key}' entries.")
    return items


def split_snippet(snippet: str) -> tuple[str, str | None]:
    """Split a report snippet into its code excerpt and recommendation."""
    for pattern in (RECOMMENDATION_SNIPPET_RE, CURRENT_NEW_SNIPPET_RE):
        match = pattern.search(snippet)
        if match:
            return match.group(1), match.group(2)
    return snippet, None


def _first_link(location: Mapping[str, Any]) -> str | None:
    links = location.get("links") or []
    if not links or not isinstance(links[0], Mapping):
        return None
    url = str(links[0].get("url") or "")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return url


def build_analysis_row(record: Mapping[str, Any], acc: Accumulator) -> AnalysisRow:
    location = record.get("location") or {}
    rule_id = str(record.get("ruleId", ""))
    code_snippet, recommendation = split_snippet(str(location.get("snippet") or ""))
    return AnalysisRow(
        project_path=str(record.get("projectPath", "")),
        source_path=str(location.get("path", "")),
        rule_id=rule_id,
        rule_label=acc.rule_label(rule_id),
        code_snippet=code_snippet,
        recommendation=recommendation,
        link=_first_link(location),
    )
