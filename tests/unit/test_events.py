from __future__ import annotations

import json
from pathlib import Path

from rewrite_dotnet import events


def test_emit_event_writes_jsonl(tmp_path, monkeypatch) -> None:
    target = tmp_path / "nested" / "events.jsonl"
    monkeypatch.setenv("REWRITE_DOTNET_EVENTS_FILE", str(target))
    events.reset_events_cache()

    events.emit_event("upgrade", "invocation_started", slug="upgrade:net8.0", input=Path("a/App.csproj"))
    events.emit_event("pipeline", "pipeline_completed", changed={"b", "a"}, cycles=2)

    lines = target.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    second = json.loads(lines[1])

    assert first["phase"] == "upgrade"
    assert first["type"] == "invocation_started"
    assert first["slug"] == "upgrade:net8.0"
    assert first["data"]["input"] == "a/App.csproj"
    assert first["ts"].endswith("Z")

    assert second["slug"] is None
    assert second["data"] == {"changed": ["a", "b"], "cycles": 2}


def test_events_path_is_cached(tmp_path, monkeypatch) -> None:
    first = tmp_path / "first.jsonl"
    second = tmp_path / "second.jsonl"
    monkeypatch.setenv("REWRITE_DOTNET_EVENTS_FILE", str(first))
    events.reset_events_cache()
    events.emit_event("pipeline", "cycle_started", cycle=1)

    monkeypatch.setenv("REWRITE_DOTNET_EVENTS_FILE", str(second))
    events.emit_event("pipeline", "cycle_started", cycle=2)
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2
    assert not second.exists()

    events.reset_events_cache()
    events.emit_event("pipeline", "cycle_started", cycle=3)
    assert len(second.read_text(encoding="utf-8").splitlines()) == 1


def test_emit_event_ignores_unwritable_target(tmp_path, monkeypatch) -> None:
    target = tmp_path / "events.jsonl"
    target.mkdir()
    monkeypatch.setenv("REWRITE_DOTNET_EVENTS_FILE", str(target))
    events.reset_events_cache()

    events.emit_event("pipeline", "cycle_started", cycle=1)
    assert target.is_dir()
