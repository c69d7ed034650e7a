"""Module entrypoint for running Bookscene as ``python -m bookscene``."""

from __future__ import annotations

from bookscene.cli import main


if __name__ == "__main__":
    main()
