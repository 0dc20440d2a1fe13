"""The upgrade and analyze variants of an upgrade-assistant step.

Both variants share one execution loop: run the tool once per discovered
input, sweep the workspace for changes, then hand the captured output to the
variant. They differ in the command line, in how output is turned into
per-file results, and in what a recorded error does when its node is
revisited.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

from .accumulator import Accumulator
from .analysis import AnalysisTable, build_analysis_row, load_report, report_path
from .config import RunnerConfig
from .events import emit_event
from .output_parser import UpgradeLogParser
from .process import build_tool_env, captured_invocation, find_tool_executable
from .tree import Annotation, SourceNode
from .utils import (
    ConfigError,
    FileTransformationError,
    NoInputFilesError,
    ReportError,
    ToolInvocationError,
    delete_quietly,
    shlex_join,
)
from .workspace import detect_changes


class UpgradeStrategy:
    """Base class for upgrade-assistant variants."""

    name = "base"
    no_inputs_message = "No input files found in repository"

    def __init__(self, target_framework: str | None = None):
        self.target_framework = target_framework

    @property
    def slug(self) -> str:
        return f"{self.name}:{self.target_framework or 'default'}"

    def inputs(self, acc: Accumulator) -> list[Path]:
        raise NotImplementedError

    def build_command(self, acc: Accumulator, executable: Path, input_path: Path) -> list[str]:
        raise NotImplementedError

    def process_output(self, acc: Accumulator, input_path: Path, output: Path) -> None:
        raise NotImplementedError

    def before_invocation(self, acc: Accumulator, input_path: Path) -> None:
        return None

    def on_file_error(self, node: SourceNode, error: str) -> SourceNode:
        raise NotImplementedError

    def execute(
        self,
        acc: Accumulator,
        *,
        config: RunnerConfig,
        capture_dir: Path,
        verbose: bool = True,
    ) -> None:
        inputs = self.inputs(acc)
        if not inputs:
            raise NoInputFilesError(self.no_inputs_message)
        executable = find_tool_executable(config)
        env = build_tool_env(config)

        for input_path in inputs:
            self.before_invocation(acc, input_path)
            command = self.build_command(acc, executable, input_path)
            if verbose:
                print(f"[{self.name}] {shlex_join(command)}")
            emit_event(
                self.name,
                "invocation_started",
                slug=self.slug,
                input=input_path,
                command=shlex_join(command),
            )
            try:
                with captured_invocation(
                    command,
                    cwd=acc.directory,
                    env=env,
                    capture_dir=capture_dir,
                    timeout=config.timeout_seconds,
                    fatal_prefixes=config.fatal_prefixes,
                ) as output:
                    self.process_output(acc, input_path, output)
            except (ToolInvocationError, ReportError) as exc:
                acc.add_file_error(input_path, str(exc))
                if verbose:
                    print(f"[{self.name}] {input_path.name}: {exc}")
                emit_event(
                    self.name,
                    "invocation_failed",
                    slug=self.slug,
                    input=input_path,
                    reason=type(exc).__name__,
                    message=str(exc),
                )
            else:
                emit_event(self.name, "invocation_completed", slug=self.slug, input=input_path)
            finally:
                detect_changes(acc)

    def reconcile_node(self, node: SourceNode, acc: Accumulator) -> SourceNode | None:
        """Return the node as it should look after this step.

        ``None`` means the tool deleted the file.
        """
        path = acc.resolved_path(node)
        error = acc.file_error(path)
        if error is not None:
            return self.on_file_error(node, error)
        if not acc.was_modified(node):
            return node
        if not path.exists():
            return None
        return node.with_content(acc.content(node))


class UpgradeVariant(UpgradeStrategy):
    """Rewrite project files in place; a failed file aborts the run."""

    name = "upgrade"
    no_inputs_message = "No project files found in repository"

    def inputs(self, acc: Accumulator) -> list[Path]:
        return list(acc.project_files)

    def build_command(self, acc: Accumulator, executable: Path, input_path: Path) -> list[str]:
        command = [
            str(executable),
            "upgrade",
            str(input_path),
            "--non-interactive",
            "--operation",
            "Inplace",
        ]
        if self.target_framework:
            command += ["--targetFramework", self.target_framework]
        return command

    def process_output(self, acc: Accumulator, input_path: Path, output: Path) -> None:
        with output.open(encoding="utf-8", errors="replace") as fh:
            result = UpgradeLogParser().feed_all(fh)
        if result.fatal_error is not None:
            acc.add_file_error(input_path, f"upgrade-assistant: {result.fatal_error}")
        project_dir = input_path.parent
        for file_name, error in result.errors.items():
            acc.add_file_error(
                Path(os.path.normpath(project_dir / file_name)),
                error or f"upgrade-assistant reported Failed for {file_name}",
            )

    def on_file_error(self, node: SourceNode, error: str) -> SourceNode:
        raise FileTransformationError(error)


class AnalyzeVariant(UpgradeStrategy):
    """Produce report rows and annotations; never aborts the run."""

    name = "analyze"
    no_inputs_message = "No solution files found in repository"

    def __init__(self, target_framework: str | None = None, table: AnalysisTable | None = None):
        if not target_framework:
            raise ConfigError("analyze requires a target framework")
        super().__init__(target_framework)
        self.table = table if table is not None else AnalysisTable()

    def inputs(self, acc: Accumulator) -> list[Path]:
        return list(acc.solution_files)

    def build_command(self, acc: Accumulator, executable: Path, input_path: Path) -> list[str]:
        return [
            str(executable),
            "analyze",
            str(input_path),
            "--source",
            "Solution",
            "--non-interactive",
            "--targetFramework",
            str(self.target_framework),
            "--serializer",
            "JSON",
            "--report",
            report_path(acc, input_path).name,
        ]

    def before_invocation(self, acc: Accumulator, input_path: Path) -> None:
        delete_quietly(report_path(acc, input_path))

    def process_output(self, acc: Accumulator, input_path: Path, output: Path) -> None:
        # No report is written once the framework is rejected.
        with output.open(encoding="utf-8", errors="replace") as fh:
            fatal = UpgradeLogParser().feed_all(fh).fatal_error
        if fatal is not None:
            raise ToolInvocationError(f"upgrade-assistant: {fatal}")
        load_report(report_path(acc, input_path), acc)

    def on_file_error(self, node: SourceNode, error: str) -> SourceNode:
        first_line = node.content.split("\n", 1)[0]
        return node.with_content(first_line).with_annotation(Annotation(error))

    def reconcile_node(self, node: SourceNode, acc: Accumulator) -> SourceNode | None:
        for record in acc.file_results.get(acc.resolved_path(node), []):
            self.table.insert_row(build_analysis_row(record, acc))
        return super().reconcile_node(node, acc)


_STRATEGY_FACTORIES: dict[str, Callable[..., UpgradeStrategy]] = {}


def register_strategy(name: str, factory: Callable[..., UpgradeStrategy]) -> None:
    _STRATEGY_FACTORIES[name.lower()] = factory


def reset_strategies() -> None:
    """Reset the registry to the built-in variants (mainly for tests)."""

    _STRATEGY_FACTORIES.clear()
    register_strategy("upgrade", UpgradeVariant)
    register_strategy("analyze", AnalyzeVariant)


def resolve_strategy(name: str, **options: object) -> UpgradeStrategy:
    factory = _STRATEGY_FACTORIES.get(name.strip().lower())
    if factory is None:
        raise ConfigError(f"Unknown strategy: {name}")
    return factory(**options)


reset_strategies()


__all__ = [
    "AnalyzeVariant",
    "UpgradeStrategy",
    "UpgradeVariant",
    "register_strategy",
    "reset_strategies",
    "resolve_strategy",
]
