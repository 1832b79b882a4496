"""Module entrypoint for running Narrafix as ``python -m narrafix``."""

from __future__ import annotations

from narrafix.cli import main


if __name__ == "__main__":
    main()
