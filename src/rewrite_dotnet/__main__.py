"""Enable `python -m rewrite_dotnet`."""

from __future__ import annotations

from .cli import app


def main() -> None:  # pragma: no cover - exercised via the console script
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
