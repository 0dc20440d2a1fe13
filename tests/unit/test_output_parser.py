from __future__ import annotations

from rewrite_dotnet.output_parser import (
    FileOutcome,
    ParserState,
    UpgradeLogParser,
    parse_upgrade_log,
)


def test_failure_log_is_attributed_to_its_own_file() -> None:
    result = parse_upgrade_log(
        "file. a.cs ...\nSucceeded\nfile. b.cs ...\nsome log line\nFailed\n"
    )
    assert result.outcomes == {"a.cs": FileOutcome.SUCCEEDED, "b.cs": FileOutcome.FAILED}
    assert "a.cs" not in result.errors
    assert result.errors["b.cs"] == "some log line"
    assert result.fatal_error is None


def test_multiline_failure_is_joined_and_trimmed() -> None:
    result = parse_upgrade_log(
        "file. src/App.csproj...\n    first problem\n\n    second problem\nFailed\n"
    )
    assert result.errors["src/App.csproj"] == "first problem\nsecond problem"


def test_skipped_file_records_no_error() -> None:
    result = parse_upgrade_log("file. Lib.vbproj ...\nnothing to do\nSkipped\n")
    assert result.outcomes["Lib.vbproj"] is FileOutcome.SKIPPED
    assert result.errors == {}


def test_unknown_target_framework_stops_parsing() -> None:
    parser = UpgradeLogParser()
    lines = [
        "Unknown target framework: foo-bar",
        "file. a.cs ...",
        "Failed",
    ]
    result = parser.feed_all(lines)
    assert parser.stopped
    assert result.fatal_error == "Unknown target framework: foo-bar"
    assert result.outcomes == {}
    assert parser.feed("file. b.cs ...") is False


def test_lines_outside_a_report_are_ignored() -> None:
    result = parse_upgrade_log("Welcome to upgrade-assistant\nSucceeded\nFailed\n")
    assert result.outcomes == {}
    assert result.errors == {}


def test_unterminated_report_leaves_no_outcome() -> None:
    parser = UpgradeLogParser()
    result = parser.feed_all(["file. a.cs ...", "still working"])
    assert result.outcomes == {}
    assert parser.state is ParserState.REPORTING
    assert parser.current_file == "a.cs"
    assert parser.pending_log == ["still working"]


def test_crlf_line_endings() -> None:
    result = parse_upgrade_log("file. a.cs ...\r\nbroken\r\nFailed\r\n")
    assert result.errors["a.cs"] == "broken"


def test_indented_transition_lines_still_count() -> None:
    result = parse_upgrade_log("  file. a.cs ...\n    broken\n  Failed\n")
    assert result.outcomes == {"a.cs": FileOutcome.FAILED}
    assert result.errors["a.cs"] == "broken"
