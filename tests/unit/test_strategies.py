from __future__ import annotations

import subprocess
from pathlib import Path, PurePath

import pytest

from rewrite_dotnet import strategies
from rewrite_dotnet.accumulator import Accumulator
from rewrite_dotnet.analysis import AnalysisTable
from rewrite_dotnet.config import RunnerConfig
from rewrite_dotnet.strategies import (
    AnalyzeVariant,
    UpgradeStrategy,
    UpgradeVariant,
    register_strategy,
    reset_strategies,
    resolve_strategy,
)
from rewrite_dotnet.tree import Annotation, SourceNode
from rewrite_dotnet.utils import (
    ConfigError,
    FileTransformationError,
    NoInputFilesError,
    ToolInvocationError,
)
from rewrite_dotnet.workspace import create_workspace, write_source


def _node(path: str, content: str = "x") -> SourceNode:
    return SourceNode(source_path=PurePath(path), content=content)


@pytest.fixture()
def acc(tmp_path: Path) -> Accumulator:
    return Accumulator(directory=create_workspace(tmp_path))


def test_unmodified_node_is_returned_unchanged(acc: Accumulator) -> None:
    node = _node("a.cs", "hello")
    write_source(node, acc)
    assert UpgradeVariant().reconcile_node(node, acc) is node


def test_modified_node_picks_up_disk_content(acc: Accumulator) -> None:
    node = _node("a.cs", "hello")
    path = write_source(node, acc)
    path.write_text("goodbye", encoding="utf-8")
    acc.modified_paths.add(path)

    after = UpgradeVariant().reconcile_node(node, acc)
    assert after is not None
    assert after.content == "goodbye"
    assert after.id == node.id
    assert after.source_path == node.source_path


def test_deleted_node_is_dropped(acc: Accumulator) -> None:
    node = _node("a.cs")
    path = write_source(node, acc)
    path.unlink()
    acc.modified_paths.add(path)
    assert UpgradeVariant().reconcile_node(node, acc) is None


def test_upgrade_error_aborts_revisit(acc: Accumulator) -> None:
    node = _node("App.csproj")
    path = write_source(node, acc)
    acc.add_file_error(path, "upgrade-assistant: Unknown target framework: foo-bar")
    with pytest.raises(FileTransformationError, match="Unknown target framework"):
        UpgradeVariant("foo-bar").reconcile_node(node, acc)


def test_analyze_error_becomes_annotation(acc: Accumulator) -> None:
    node = _node("All.sln", "first line\nsecond line\n")
    path = write_source(node, acc)
    acc.add_file_error(path, "Analysis report not found")

    after = AnalyzeVariant("net8.0").reconcile_node(node, acc)
    assert after is not None
    assert after.content == "first line"
    assert after.annotations == (Annotation("Analysis report not found"),)


def test_analyze_inserts_rows_for_unchanged_files(acc: Accumulator) -> None:
    table = AnalysisTable()
    node = _node("Program.cs")
    path = write_source(node, acc)
    acc.add_rule("UA0001", "Label")
    acc.add_file_result(
        path,
        {"ruleId": "UA0001", "projectPath": "App.csproj", "location": {"path": "Program.cs"}},
    )

    after = AnalyzeVariant("net8.0", table=table).reconcile_node(node, acc)
    assert after is node
    assert [row.rule_label for row in table.rows] == ["Label"]


def test_upgrade_command(acc: Accumulator) -> None:
    project = acc.directory / "App.csproj"
    exe = Path("/opt/dotnet/tools/upgrade-assistant")
    assert UpgradeVariant().build_command(acc, exe, project) == [
        str(exe),
        "upgrade",
        str(project),
        "--non-interactive",
        "--operation",
        "Inplace",
    ]
    assert UpgradeVariant("net8.0").build_command(acc, exe, project)[-2:] == [
        "--targetFramework",
        "net8.0",
    ]


def test_analyze_command(acc: Accumulator) -> None:
    solution = acc.directory / "src" / "All.sln"
    exe = Path("upgrade-assistant")
    assert AnalyzeVariant("net8.0").build_command(acc, exe, solution) == [
        "upgrade-assistant",
        "analyze",
        str(solution),
        "--source",
        "Solution",
        "--non-interactive",
        "--targetFramework",
        "net8.0",
        "--serializer",
        "JSON",
        "--report",
        "All-analyze.json",
    ]


def test_analyze_requires_framework() -> None:
    with pytest.raises(ConfigError):
        AnalyzeVariant()


def test_upgrade_output_attributes_errors(acc: Accumulator) -> None:
    project = acc.directory / "src" / "App.csproj"
    output = acc.directory.parent / "capture.log"
    output.write_text(
        "file. Program.cs ...\nSucceeded\nfile. Startup.cs ...\nbad code\nFailed\n"
        "file. Other.cs ...\nFailed\n",
        encoding="utf-8",
    )
    UpgradeVariant().process_output(acc, project, output)

    assert acc.file_error(acc.directory / "src" / "Program.cs") is None
    assert acc.file_error(acc.directory / "src" / "Startup.cs") == "bad code"
    assert "Other.cs" in acc.file_error(acc.directory / "src" / "Other.cs")


def test_upgrade_output_fatal_error_is_charged_to_project(acc: Accumulator) -> None:
    project = acc.directory / "App.csproj"
    output = acc.directory.parent / "capture.log"
    output.write_text("Unknown target framework: foo-bar\n", encoding="utf-8")
    UpgradeVariant("foo-bar").process_output(acc, project, output)
    assert acc.file_error(project) == "upgrade-assistant: Unknown target framework: foo-bar"


def test_execute_without_inputs_never_starts_the_tool(
    acc: Accumulator, tmp_path: Path, monkeypatch
) -> None:
    write_source(_node("Program.cs"), acc)

    def fail_popen(*args, **kwargs):
        raise AssertionError("tool should not be started")

    monkeypatch.setattr(subprocess, "Popen", fail_popen)
    with pytest.raises(NoInputFilesError, match="No project files found in repository"):
        UpgradeVariant().execute(
            acc, config=RunnerConfig(dotnet_home=tmp_path), capture_dir=tmp_path
        )
    with pytest.raises(NoInputFilesError, match="No solution files found in repository"):
        AnalyzeVariant("net8.0").execute(
            acc, config=RunnerConfig(dotnet_home=tmp_path), capture_dir=tmp_path
        )


def test_registry_resolves_builtin_variants() -> None:
    reset_strategies()
    assert isinstance(resolve_strategy("upgrade", target_framework="net8.0"), UpgradeVariant)
    assert isinstance(resolve_strategy(" Analyze ", target_framework="net8.0"), AnalyzeVariant)
    with pytest.raises(ConfigError, match="Unknown strategy"):
        resolve_strategy("migrate")


def test_register_custom_strategy() -> None:
    class Custom(UpgradeStrategy):
        name = "custom"

    register_strategy("custom", Custom)
    try:
        strategy = resolve_strategy("custom", target_framework="net9.0")
        assert isinstance(strategy, Custom)
        assert strategy.slug == "custom:net9.0"
    finally:
        reset_strategies()
    assert "custom" not in strategies._STRATEGY_FACTORIES


def test_upgrade_errors_outside_project_directory_are_normalised(acc: Accumulator) -> None:
    project = acc.directory / "src" / "App" / "App.csproj"
    output = acc.directory.parent / "capture.log"
    output.write_text("file. ../Shared/Util.cs ...\nbad code\nFailed\n", encoding="utf-8")
    UpgradeVariant().process_output(acc, project, output)

    node = _node("src/Shared/Util.cs")
    write_source(node, acc)
    assert acc.file_error(acc.resolved_path(node)) == "bad code"
    with pytest.raises(FileTransformationError, match="bad code"):
        UpgradeVariant().reconcile_node(node, acc)


def test_analyze_surfaces_rejected_framework(acc: Accumulator) -> None:
    solution = acc.directory / "All.sln"
    output = acc.directory.parent / "capture.log"
    output.write_text("Unknown target framework: foo-bar\n", encoding="utf-8")
    with pytest.raises(ToolInvocationError, match="Unknown target framework: foo-bar"):
        AnalyzeVariant("foo-bar").process_output(acc, solution, output)
