"""ircts command line.

ircts is an IRC test suite, designed to test software's compatibility with
accepted standards and common behaviour. Point the config file at a server
and run:

    ircts run [--config <file>] [--verbose]
    ircts --version
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .framework.config import ConfigError, load_config
from .framework.connection import ConnectionPool
from .framework.orchestrator import Orchestrator
from .framework.transport import ConnectError
from .scenarios import RunManager, all_test_groups

logger = logging.getLogger("ircts")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ircts",
        description="IRC test suite: checks a server against accepted standards",
    )
    parser.add_argument("--version", action="version", version=f"ircts {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the test suite against the configured server")
    run.add_argument("--config", default="ircts.yaml", metavar="FILE",
                     help="Configuration file (default: ircts.yaml)")
    run.add_argument("-v", "--verbose", action="store_true",
                     help="Show more detail while running tests")
    return parser


def run(config_path: str) -> int:
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        return 1

    rm = RunManager(config, ConnectionPool(), all_test_groups())
    try:
        Orchestrator(rm).run()
    except ConnectError as e:
        logger.error("Failed to connect to server for initial caps: %s", e)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "run":
        return run(args.config)
    return 2


if __name__ == "__main__":
    sys.exit(main())
