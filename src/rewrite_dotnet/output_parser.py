"""Finite-state parser for upgrade-assistant's streamed console output.

The tool reports one file at a time::

    file. src/Proj.csproj ...
        <diagnostic lines>
    Succeeded | Skipped | Failed

and does not use its exit status to signal failure, so per-file outcomes
have to be recovered from these lines.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from .config import UNKNOWN_FRAMEWORK_PREFIX


class ParserState(Enum):
    IDLE = "idle"
    REPORTING = "reporting"


class FileOutcome(Enum):
    SUCCEEDED = "Succeeded"
    SKIPPED = "Skipped"
    FAILED = "Failed"


@dataclass
class UpgradeLogResult:
    outcomes: dict[str, FileOutcome] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    fatal_error: str | None = None


@dataclass
class UpgradeLogParser:
    fatal_prefixes: tuple[str, ...] = (UNKNOWN_FRAMEWORK_PREFIX,)
    state: ParserState = ParserState.IDLE
    current_file: str | None = None
    pending_log: list[str] = field(default_factory=list)
    result: UpgradeLogResult = field(default_factory=UpgradeLogResult)

    @property
    def stopped(self) -> bool:
        return self.result.fatal_error is not None

    def _finish(self, file_name: str, outcome: FileOutcome) -> None:
        self.result.outcomes[file_name] = outcome
        if outcome is FileOutcome.FAILED:
            self.result.errors[file_name] = "\n".join(self.pending_log)
        self.state = ParserState.IDLE
        self.current_file = None
        self.pending_log = []

    def feed(self, line: str) -> bool:
        """Apply one output line; return False once parsing has stopped.

        Tokens are taken after stripping leading whitespace, so an indented
        `file.` or outcome line is still a transition.
        """
        if self.stopped:
            return False
        line = line.rstrip("\r\n")
        if line.startswith(self.fatal_prefixes):
            self.result.fatal_error = line
            return False
        tokens = line.split()
        if not tokens:
            return True
        token = tokens[0]
        if token.startswith("file.") and len(tokens) > 1:
            self.state = ParserState.REPORTING
            self.current_file = tokens[1].replace("...", "")
            self.pending_log = []
        elif self.state is ParserState.REPORTING and self.current_file is not None:
            if token in ("Succeeded", "Skipped", "Failed"):
                self._finish(self.current_file, FileOutcome(token))
            else:
                self.pending_log.append(line.lstrip())
        return True

    def feed_all(self, lines: Iterable[str]) -> UpgradeLogResult:
        for line in lines:
            if not self.feed(line):
                break
        return self.result


def parse_upgrade_log(text: str) -> UpgradeLogResult:
    return UpgradeLogParser().feed_all(text.splitlines())
