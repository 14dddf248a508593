"""Entry point for the `tmppg` CLI: `tmppg [options] -- command [args...]`."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

from tmppg.config import OUTPUT_MODES, load_config

logger = logging.getLogger(__name__)

USAGE = "usage: tmppg [options] -- command [args...]"


class _UsageParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad options as a usage error with exit code 1."""

    def error(self, message: str) -> NoReturn:
        _configure_logging(verbose=False)
        logger.error("%s", message)
        logger.error(USAGE)
        sys.exit(1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = _UsageParser(
        prog="tmppg",
        usage="%(prog)s [options] -- command [args...]",
        description="Run a command against a temporary, throwaway PostgreSQL server.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_MODES,
        help="Where initdb/postgres output goes (default: discard, or the config file).",
    )
    return parser


def _split_command(argv: list[str]) -> tuple[list[str], list[str] | None]:
    """Split argv at the first ``--`` into (options, command).

    The command is None when there is no ``--`` at all.
    """
    if "--" not in argv:
        return argv, None
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def main(argv: Sequence[str] | None = None) -> None:
    """Parse CLI arguments and run the wrapped command with a temporary PostgreSQL."""
    argv = list(sys.argv[1:] if argv is None else argv)
    options, command = _split_command(argv)

    parser = _build_parser()
    args, unknown = parser.parse_known_args(options)

    _configure_logging(args.verbose)

    if unknown or not command:
        logger.error(USAGE)
        sys.exit(1)

    cli_overrides: dict[str, Any] = {}
    if args.output:
        cli_overrides["output"] = {"mode": args.output}

    from tmppg.workload import run_with_postgres

    try:
        config = load_config(Path.cwd(), cli_overrides)
        run_with_postgres(command, config)
    except Exception:
        logger.exception("uncaught error")
        sys.exit(1)


def _get_version() -> str:
    from tmppg import __version__

    return __version__


if __name__ == "__main__":
    main()
