"""
datamask CLI entry point.

Evaluates names and expressions against a dataset file and an explicit set
of scope values, and lints expressions for shadowed names.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional

from datamask import __version__
from datamask.config import load_config
from datamask.errors import AmbiguousNameError, DatamaskError, NameNotFoundError

from .commands import cmd_eval, cmd_filter, cmd_lint, cmd_resolve

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _configure_logging(level_name: Optional[str]) -> None:
    """Configure the ``datamask`` logger from the CLI flag or environment."""
    log_level = (level_name or os.getenv("DATAMASK_LOG_LEVEL", "warning")).lower()
    numeric_level = _LEVELS.get(log_level, logging.WARNING)

    package_logger = logging.getLogger("datamask")
    package_logger.setLevel(numeric_level)

    if not package_logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
        package_logger.propagate = False


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--data", "-d", required=True, help="Dataset file (csv, json or parquet)")
    parser.add_argument("--format", choices=["csv", "json", "parquet"], help="Override the dataset format")
    parser.add_argument(
        "--row",
        type=int,
        default=None,
        help="Use a single row as the dataset namespace instead of whole columns",
    )
    parser.add_argument(
        "--scope",
        "-s",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Scope value; VALUE is parsed as JSON when possible (repeatable)",
    )
    parser.add_argument("--scope-json", help="Scope values as an inline JSON object")
    parser.add_argument("--scope-file", help="Path to a JSON file with scope values")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datamask",
        description="Resolve names against a dataset and an explicit scope",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a datamask.toml or .datamaskrc file")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "warning", "error"],
        default=None,
        help="Logging level (or set DATAMASK_LOG_LEVEL)",
    )
    parser.add_argument("--verbose", action="store_true", help="Re-raise errors with full tracebacks")

    subparsers = parser.add_subparsers(dest="command")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve one identifier")
    resolve_parser.add_argument("name", help="Identifier to resolve")
    resolve_parser.add_argument(
        "--namespace",
        "-n",
        choices=["dataset", "scope"],
        default=None,
        help="Restrict the lookup to one namespace",
    )
    resolve_parser.add_argument(
        "--indirect",
        action="store_true",
        help="Treat NAME as a variable holding a column name",
    )
    _add_source_arguments(resolve_parser)
    resolve_parser.set_defaults(func=cmd_resolve)

    eval_parser = subparsers.add_parser("eval", help="Evaluate an expression")
    eval_parser.add_argument("expression")
    _add_source_arguments(eval_parser)
    eval_parser.set_defaults(func=cmd_eval)

    filter_parser = subparsers.add_parser("filter", help="Keep rows matching an expression")
    filter_parser.add_argument("expression")
    filter_parser.add_argument("--output", "-o", help="Write matching rows to this CSV file")
    _add_source_arguments(filter_parser)
    filter_parser.set_defaults(func=cmd_filter)

    lint_parser = subparsers.add_parser("lint", help="Report ambiguous or unknown names")
    lint_parser.add_argument("expression")
    _add_source_arguments(lint_parser)
    lint_parser.set_defaults(func=cmd_lint)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return its exit code.

    Exit codes: 0 success, 1 general failure or lint errors, 2 when a name
    could not be resolved or was ambiguous.
    """
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if not getattr(args, "command", None):
        parser.print_help()
        return 1

    verbose = args.verbose or os.getenv("DATAMASK_VERBOSE") == "1"
    handler: Callable[..., int] = args.func
    try:
        config = load_config(Path.cwd(), Path(args.config) if args.config else None)
        return handler(args, config)
    except (NameNotFoundError, AmbiguousNameError) as exc:
        if verbose:
            raise
        print(f"Error: {exc.format()}", file=sys.stderr)
        return 2
    except DatamaskError as exc:
        if verbose:
            raise
        print(f"Error: {exc.format()}", file=sys.stderr)
        return 1


__all__ = ["main", "build_parser"]
