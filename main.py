"""Entry point for invoking a hand-off transfer via the CLI."""

from __future__ import annotations

import sys

from handoff.cli import main as cli_main

if __name__ == "__main__":
    sys.exit(cli_main())
