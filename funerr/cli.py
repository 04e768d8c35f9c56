"""Command-line entry point: funerr <file.js> [args...]"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from funerr.core import config
from funerr.core.constants import APP_NAME, EXIT_USAGE, INTERPRETER_WORD, VERSION
from funerr.core.report_renderer import ReportRenderer, make_console
from funerr.executor.supervisor import Supervisor
from funerr.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

_META_FLAGS = ("-h", "--help", "--version")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Run a Node.js script and explain its crash in plain words.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  funerr app.js
  funerr server.js --port 3000
  funerr node test.js

Everything after funerr is passed to the interpreter unchanged.
The script's own exit code is always returned.
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("target", nargs=argparse.REMAINDER, help="script path and its arguments")
    return parser


def build_command(argv: Sequence[str], node_binary: str = config.NODE_BINARY) -> list[str]:
    """Interpreter argv for the target; a leading "node" word is dropped."""
    args = list(argv)
    if args and args[0] == INTERPRETER_WORD:
        args = args[1:]
    return [node_binary, *args]


def main(argv: Optional[Sequence[str]] = None, supervisor: Optional[Supervisor] = None) -> int:
    """Run the CLI and return the exit code to propagate."""
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()

    if not argv:
        parser.print_help()
        return EXIT_USAGE
    if argv[0] in _META_FLAGS:
        parser.parse_args(argv[:1])

    setup_logging(config.LOG_LEVEL, config.LOG_DIR)

    command = build_command(argv)
    if len(command) == 1:
        parser.print_usage(sys.stderr)
        return EXIT_USAGE

    if supervisor is None:
        supervisor = Supervisor(renderer=ReportRenderer(make_console(no_color=config.NO_COLOR)))

    result = supervisor.run(command)
    logger.debug("Exiting with %d (state=%s)", result.exit_code, result.state)
    return result.exit_code


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
