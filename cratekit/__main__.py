"""Module entrypoint for running cratekit as ``python -m cratekit``."""

from __future__ import annotations

from cratekit.cli import main


if __name__ == "__main__":
    main()
