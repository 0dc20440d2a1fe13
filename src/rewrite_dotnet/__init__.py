"""rewrite_dotnet Python package.

Runs Microsoft's upgrade-assistant against an in-memory copy of a .NET
repository and folds the tool's edits, failures and findings back into it.
"""

from __future__ import annotations

from pathlib import Path


def _read_version() -> str:
    """Resolve the project VERSION file even when the package lives under src/."""
    for parent in Path(__file__).resolve().parents:
        version_file = parent / "VERSION"
        if version_file.is_file():
            return version_file.read_text(encoding="utf-8").strip()
    return "0.0.0"


__all__ = ["__version__"]
__version__ = _read_version()
