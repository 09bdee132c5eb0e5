"""Command-line entry point for the animated GIF generator."""

from __future__ import annotations

from animgen.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
