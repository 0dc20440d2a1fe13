"""Command-line interface for rewrite-dotnet."""

from __future__ import annotations

import argparse
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

from . import __version__
from .analysis import AnalysisTable
from .config import RunnerConfig, load_config
from .doctor import run_doctor
from .orchestrator import RunResult, run_pipeline
from .strategies import UpgradeStrategy, resolve_strategy
from .tree import load_tree, write_tree
from .utils import RewriteContext, RewriteError, ensure_dir


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", nargs="?", default=".", help="Repository root")
    parser.add_argument("--work-dir", help="Parent directory for scratch workspaces")
    parser.add_argument(
        "--keep-workspace",
        action="store_true",
        help="Leave scratch workspaces on disk after the run",
    )
    parser.add_argument(
        "--timeout", type=float, default=None, help="Seconds allowed per tool invocation"
    )
    parser.add_argument(
        "--max-cycles", type=int, default=None, help="Maximum pipeline cycles"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Only print the final summary"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rewrite-dotnet",
        description="Run upgrade-assistant across a .NET repository",
    )
    parser.add_argument(
        "--version", action="version", version=f"rewrite-dotnet {__version__}"
    )
    parser.add_argument("--config", help="Path to a rewrite-dotnet.yaml file")
    sub = parser.add_subparsers(dest="command")

    upgrade_parser = sub.add_parser(
        "upgrade", help="Upgrade project files in place with upgrade-assistant"
    )
    _add_run_arguments(upgrade_parser)
    upgrade_parser.add_argument(
        "--target-framework",
        dest="target_frameworks",
        action="append",
        default=[],
        help="Target framework (repeat to chain upgrades, e.g. net7.0 then net8.0)",
    )
    upgrade_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report changed files without writing them back",
    )

    analyze_parser = sub.add_parser(
        "analyze", help="Analyze solutions and report required changes"
    )
    _add_run_arguments(analyze_parser)
    analyze_parser.add_argument("--target-framework", required=True)
    analyze_parser.add_argument("--report", help="Write findings to this file")
    analyze_parser.add_argument(
        "--format", choices=["csv", "json"], default="csv", help="Report format"
    )

    doctor_parser = sub.add_parser("doctor", help="Print environment diagnostics")
    doctor_parser.add_argument("--json", action="store_true", help="Emit JSON")

    return parser


def _resolve_config(args: argparse.Namespace, context: RewriteContext) -> RunnerConfig:
    config = load_config(
        context.root, Path(args.config).expanduser() if args.config else None
    )
    updates: dict[str, object] = {}
    if getattr(args, "work_dir", None):
        updates["work_dir"] = Path(args.work_dir).expanduser()
    if getattr(args, "keep_workspace", False):
        updates["keep_workspace"] = True
    if getattr(args, "timeout", None) is not None:
        updates["timeout_seconds"] = args.timeout
    if getattr(args, "max_cycles", None) is not None:
        updates["max_cycles"] = args.max_cycles
    return replace(config, **updates)


def _execute(
    context: RewriteContext,
    strategies: list[UpgradeStrategy],
    config: RunnerConfig,
    *,
    verbose: bool,
) -> RunResult:
    nodes = load_tree(context.root)
    base = ensure_dir(config.work_dir) if config.work_dir is not None else None
    work_root = Path(tempfile.mkdtemp(prefix="rewrite-dotnet-", dir=base))
    try:
        return run_pipeline(
            nodes, strategies, config=config, work_root=work_root, verbose=verbose
        )
    finally:
        if config.keep_workspace:
            print(f"[pipeline] Workspaces kept under {work_root}")
        else:
            shutil.rmtree(work_root, ignore_errors=True)


def _run_upgrade(args: argparse.Namespace, context: RewriteContext, config: RunnerConfig) -> int:
    frameworks = args.target_frameworks or [None]
    strategies = [
        resolve_strategy("upgrade", target_framework=framework) for framework in frameworks
    ]
    result = _execute(context, strategies, config, verbose=not args.quiet)
    if not result.changed_paths and not result.deleted_paths:
        print("[upgrade] No files changed.")
        return 0
    for path in result.changed_paths:
        print(f"[upgrade] changed {path}")
    for path in result.deleted_paths:
        print(f"[upgrade] deleted {path}")
    if args.dry_run:
        return 0
    changed = set(result.changed_paths)
    write_tree(context.root, [node for node in result.nodes if node.source_path in changed])
    for path in result.deleted_paths:
        (context.root / path).unlink(missing_ok=True)
    return 0


def _run_analyze(args: argparse.Namespace, context: RewriteContext, config: RunnerConfig) -> int:
    table = AnalysisTable()
    strategy = resolve_strategy(
        "analyze", target_framework=args.target_framework, table=table
    )
    result = _execute(context, [strategy], config, verbose=not args.quiet)
    for node in result.nodes:
        for annotation in node.annotations:
            print(f"[analyze] {node.source_path}: {annotation.message}")
    print(f"[analyze] {len(table.rows)} finding(s)")
    if args.report:
        report = Path(args.report).expanduser()
        if args.format == "json":
            table.write_json(report)
        else:
            table.write_csv(report)
        print(f"[analyze] Report written to {report}")
    else:
        for row in table.rows:
            print(f"  {row.source_path}  {row.rule_id}  {row.rule_label}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    context = RewriteContext.discover(Path(getattr(args, "path", ".")))
    try:
        config = _resolve_config(args, context)
        if args.command == "doctor":
            results = run_doctor(config=config, output="json" if args.json else "text")
            return 1 if any(check.status == "error" for check in results) else 0
        if args.command == "upgrade":
            return _run_upgrade(args, context, config)
        if args.command == "analyze":
            return _run_analyze(args, context, config)
    except RewriteError as exc:
        print(f"[rewrite-dotnet] error: {exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def app() -> None:  # pragma: no cover - console script entrypoint
    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
