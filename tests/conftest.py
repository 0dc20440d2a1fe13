import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if SRC_ROOT.exists() and str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from rewrite_dotnet import events  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_events(tmp_path_factory, monkeypatch):
    # keep event streams out of the repositories under test
    events_dir = tmp_path_factory.mktemp("events")
    monkeypatch.setenv("REWRITE_DOTNET_EVENTS_FILE", str(events_dir / "events.jsonl"))
    events.reset_events_cache()
    yield
    events.reset_events_cache()
