"""Structured event stream for pipeline progress."""

from __future__ import annotations

import json
import os
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .utils import ensure_dir

_EVENTS_PATH_CACHE: Path | None = None


def _default_events_path() -> Path:
    return Path.cwd() / ".rewrite_dotnet" / "events.jsonl"


def _resolve_events_path() -> Path:
    global _EVENTS_PATH_CACHE
    if _EVENTS_PATH_CACHE is not None:
        return _EVENTS_PATH_CACHE
    raw = os.environ.get("REWRITE_DOTNET_EVENTS_FILE")
    if raw:
        candidate = Path(raw).expanduser()
    else:
        candidate = _default_events_path()
    ensure_dir(candidate.parent)
    _EVENTS_PATH_CACHE = candidate
    return candidate


def reset_events_cache() -> None:
    """Clear the cached events path (mostly for tests)."""

    global _EVENTS_PATH_CACHE
    _EVENTS_PATH_CACHE = None


def _json_default(value: Any) -> Any:
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return repr(value)


def emit_event(phase: str, type_: str, *, slug: str | None = None, **data: Any) -> None:
    """Append a structured event to the JSONL log.

    Best-effort: failures to serialise or write are swallowed so that progress
    reporting never interferes with a tool invocation or reconciliation.
    """

    record: Mapping[str, Any] = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "phase": phase,
        "type": type_,
        "slug": slug,
        "data": data,
    }
    try:
        payload = json.dumps(record, ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError):
        return
    try:
        path = _resolve_events_path()
        with path.open("a", encoding="utf-8") as fh:
            fh.write(payload)
            fh.write("\n")
    except OSError:
        return
