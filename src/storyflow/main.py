"""Entry-point for launching the CLI application."""
from __future__ import annotations

import sys

from .config import load_config
from .logging_config import setup_logging
from .presentation.cli.app import main as cli_main


def main() -> None:
    """Run the CLI presentation layer."""
    config = load_config()
    setup_logging(config.log_level)
    sys.exit(cli_main(config=config))


if __name__ == "__main__":
    main()
