"""Multi-cycle orchestration of upgrade-assistant steps over a source tree."""

from __future__ import annotations

import tempfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePath

from .accumulator import Accumulator
from .config import RunnerConfig
from .events import emit_event
from .strategies import UpgradeStrategy
from .tree import SourceNode
from .workspace import chain_from, create_workspace, write_source


@dataclass
class RunState:
    """Facts threaded from one step to the next.

    Only the first step of the first cycle writes the in-memory tree to disk;
    every other step starts from a copy of ``previous_directory``.
    """

    cycle: int = 0
    step_index: int = 0
    previous_directory: Path | None = None

    @property
    def is_materializing_step(self) -> bool:
        return self.cycle == 1 and self.step_index == 0


@dataclass
class RunResult:
    nodes: list[SourceNode]
    cycles: int
    changed_paths: list[PurePath] = field(default_factory=list)
    deleted_paths: list[PurePath] = field(default_factory=list)
    workspaces: list[Path] = field(default_factory=list)


def _scan(nodes: Sequence[SourceNode], acc: Accumulator, state: RunState) -> None:
    for node in nodes:
        suffix = PurePath(node.source_path).suffix
        if suffix:
            acc.extension_counts[suffix.lstrip(".")] += 1
        if state.is_materializing_step:
            write_source(node, acc)


def _revisit(
    nodes: Sequence[SourceNode], strategy: UpgradeStrategy, acc: Accumulator
) -> list[SourceNode]:
    revisited: list[SourceNode] = []
    for node in nodes:
        after = strategy.reconcile_node(node, acc)
        if after is not None:
            revisited.append(after)
    return revisited


def run_step(
    nodes: Sequence[SourceNode],
    strategy: UpgradeStrategy,
    state: RunState,
    *,
    config: RunnerConfig,
    work_root: Path,
    verbose: bool = True,
) -> tuple[list[SourceNode], Accumulator]:
    step_dir = work_root / f"cycle-{state.cycle}-step-{state.step_index}"
    acc = Accumulator(directory=create_workspace(step_dir))

    _scan(nodes, acc, state)
    emit_event(
        strategy.name,
        "step_scanned",
        slug=strategy.slug,
        cycle=state.cycle,
        directory=acc.directory,
        extensions=dict(acc.extension_counts),
        projects=len(acc.project_files),
        solutions=len(acc.solution_files),
    )

    if state.previous_directory is not None and not state.is_materializing_step:
        chain_from(state.previous_directory, acc)
        emit_event(
            strategy.name,
            "workspace_chained",
            slug=strategy.slug,
            cycle=state.cycle,
            source=state.previous_directory,
            files=len(acc.before_timestamps),
        )

    # A second run on an already upgraded project reports "Unknown target framework".
    if state.cycle == 1:
        strategy.execute(acc, config=config, capture_dir=step_dir, verbose=verbose)
    state.previous_directory = acc.directory

    revisited = _revisit(nodes, strategy, acc)
    emit_event(
        strategy.name,
        "step_completed",
        slug=strategy.slug,
        cycle=state.cycle,
        modified=len(acc.modified_paths),
        errors=len(acc.file_errors),
    )
    return revisited, acc


def _changes(
    before: Sequence[SourceNode], after: Sequence[SourceNode]
) -> tuple[list[PurePath], list[PurePath]]:
    after_by_id = {node.id: node for node in after}
    changed: list[PurePath] = []
    deleted: list[PurePath] = []
    for node in before:
        current = after_by_id.get(node.id)
        if current is None:
            deleted.append(node.source_path)
        elif current is not node:
            changed.append(node.source_path)
    return changed, deleted


def run_pipeline(
    nodes: Sequence[SourceNode],
    strategies: Sequence[UpgradeStrategy],
    *,
    config: RunnerConfig,
    work_root: Path | None = None,
    max_cycles: int | None = None,
    verbose: bool = True,
) -> RunResult:
    """Run ``strategies`` in order, cycle after cycle, until the tree settles.

    Scratch workspaces are left in place under ``work_root``; removing them is
    the caller's job.
    """
    if work_root is None:
        base = config.work_dir
        if base is not None:
            base.mkdir(parents=True, exist_ok=True)
        work_root = Path(tempfile.mkdtemp(prefix="rewrite-dotnet-", dir=base))
    limit = max_cycles if max_cycles is not None else config.max_cycles
    emit_event(
        "pipeline",
        "pipeline_started",
        steps=[strategy.slug for strategy in strategies],
        max_cycles=limit,
        work_root=work_root,
    )

    state = RunState()
    original = list(nodes)
    current = list(nodes)
    workspaces: list[Path] = []
    cycle = 0
    for cycle in range(1, limit + 1):
        state.cycle = cycle
        if verbose:
            print(f"[pipeline] Cycle {cycle}")
        emit_event("pipeline", "cycle_started", cycle=cycle)
        cycle_start = current
        for index, strategy in enumerate(strategies):
            state.step_index = index
            current, acc = run_step(
                current,
                strategy,
                state,
                config=config,
                work_root=work_root,
                verbose=verbose,
            )
            workspaces.append(acc.directory)
        changed, deleted = _changes(cycle_start, current)
        if not changed and not deleted:
            break

    changed, deleted = _changes(original, current)
    emit_event(
        "pipeline",
        "pipeline_completed",
        cycles=cycle,
        changed=changed,
        deleted=deleted,
    )
    return RunResult(
        nodes=current,
        cycles=cycle,
        changed_paths=changed,
        deleted_paths=deleted,
        workspaces=workspaces,
    )
