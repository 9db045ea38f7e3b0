"""tabmux command-line entry point."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from typing import cast

from instrukt_ai_logging import get_logger

from tabmux.config import load_config
from tabmux.core.multiplexer import view_processes_in_tabs
from tabmux.core.types import CommandSpec
from tabmux.errors import TabmuxError
from tabmux.logging_config import setup_logging

logger = get_logger(__name__)


class _Args(argparse.Namespace):
    commands: list[str]
    config: str | None
    viewport_height: int | None
    retention: int | None
    log_level: str | None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tabmux",
        description="Run several commands and view their output in switchable tabs",
        epilog="Example: tabmux 'ping -c 5 localhost' 'python -m http.server'",
    )
    parser.add_argument("commands", nargs="*", metavar="COMMAND", help="Command line to run in its own tab")
    parser.add_argument("--config", "-c", help="YAML config file (default: $TABMUX_CONFIG_PATH)")
    parser.add_argument("--viewport-height", type=int, help="Content lines shown per frame")
    parser.add_argument("--retention", type=int, help="Lines of history kept per process tab")
    parser.add_argument("--log-level", help="Log level override (TABMUX_LOG_LEVEL)")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = cast(_Args, parser.parse_args(argv))

    setup_logging(args.log_level)

    try:
        config = load_config(
            args.config,
            {"viewport_height": args.viewport_height, "retention": args.retention},
        )
        extra = [CommandSpec.from_string(line) for line in args.commands]
    except (TabmuxError, ValueError) as e:
        parser.exit(2, f"tabmux: {e}\n")

    commands = [*config.commands, *extra]
    if not commands:
        parser.error("no commands given (pass COMMAND arguments or a config file with 'commands')")

    logger.info("Starting tabmux with %d commands", len(commands))
    try:
        exit_code = view_processes_in_tabs(*commands, config=replace(config, commands=commands))
    except TabmuxError as e:
        sys.stderr.write(f"tabmux: {e}\n")
        raise SystemExit(1) from e

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
